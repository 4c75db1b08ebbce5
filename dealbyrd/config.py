"""
Configuration management for DealByrd.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Background sweeps (activate / expire / extend)
    ENABLE_SCHEDULER = os.getenv('ENABLE_SCHEDULER') == 'true'

    # Merchant auth: accept X-Merchant-ID header outside production
    AUTH_DEV_MODE = os.getenv('AUTH_DEV_MODE') == 'true'

    # Twilio (offer alerts to customers, SMS notifications to merchants)
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')

    # SendGrid (urgent merchant notifications)
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY')
    SENDGRID_FROM_EMAIL = os.getenv('SENDGRID_FROM_EMAIL', 'alerts@dealbyrd.app')
    SENDGRID_FROM_NAME = os.getenv('SENDGRID_FROM_NAME', 'DealByrd')

    # Used to build absolute links in notification emails
    APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:5173')


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    AUTH_DEV_MODE = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///dealbyrd_dev.db'
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False
    AUTH_DEV_MODE = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, too short or an obvious placeholder
        """
        hint = "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""

        if not cls._secret_key:
            raise RuntimeError(f"SECRET_KEY environment variable is not set. {hint}")

        lower_key = cls._secret_key.lower()
        for pattern in ('dev', 'change', 'default', 'test', 'secret', 'password'):
            if pattern in lower_key:
                raise RuntimeError(f"SECRET_KEY contains '{pattern}' and looks like a placeholder. {hint}")

        if len(cls._secret_key) < 32:
            raise RuntimeError(f"SECRET_KEY is too short (minimum 32 characters). {hint}")

        return cls._secret_key

    SECRET_KEY = _secret_key


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    AUTH_DEV_MODE = True
    ENABLE_SCHEDULER = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
    TWILIO_PHONE_NUMBER = None
    SENDGRID_API_KEY = None


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
