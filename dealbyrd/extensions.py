"""
Flask extensions shared across the DealByrd app.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Database (offers, merchants, ledgers, notifications, scheduler checkpoints)
db = SQLAlchemy()

# Alembic migrations via `flask db ...`
migrate = Migrate()
