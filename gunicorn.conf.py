"""
Gunicorn configuration for DealByrd.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# The lifecycle scheduler runs in a single process (see SCHEDULER_RUNNING),
# so extra workers only serve HTTP
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
timeout = 60
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'dealbyrd'

# Load the app (and start the scheduler) once in the master
preload_app = True

graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting DealByrd server...")


def on_exit(server):
    print("[Gunicorn] DealByrd server shutting down...")
