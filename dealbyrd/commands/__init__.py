"""
CLI Commands for DealByrd.

Usage:
    flask lifecycle activate    # Activate offers whose start date arrived
    flask lifecycle expire      # Expire offers past their end date
    flask lifecycle extend      # Auto-extend / shortfall warnings
    flask lifecycle status      # Last successful run per sweep
"""
from .lifecycle import init_app as init_lifecycle_commands


def init_app(app):
    """Register all CLI commands with the Flask app."""
    init_lifecycle_commands(app)
