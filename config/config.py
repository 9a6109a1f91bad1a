"""Configuration settings for MediCourier"""
import os
from datetime import timedelta


def get_engine_options():
    """Get database engine options for PostgreSQL connection pooling"""
    return {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-change-in-production'

    # Database - Handle Render's postgres:// URL format (SQLAlchemy needs postgresql://)
    _db_url = os.environ.get('DATABASE_URL') or 'sqlite:///medicourier.db'
    if _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = get_engine_options()

    # JWT
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'jwt-secret-key-change-in-production'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=8)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Company profile
    COMPANY_NAME = os.environ.get('COMPANY_NAME', 'MediCourier International')

    # Tax
    TAX_NAME = os.environ.get('TAX_NAME', 'GST')
    HOME_COUNTRY = os.environ.get('HOME_COUNTRY', 'India')
    HOME_STATE = os.environ.get('HOME_STATE', 'Kerala')
    SURCHARGE_TAX_RATE = os.environ.get('SURCHARGE_TAX_RATE', '18')
    ALLOWED_TAX_RATES = (0, 5, 12, 18)
    DEFAULT_ITEM_TAX_RATE = 12
    DEFAULT_CURRENCY = os.environ.get('DEFAULT_CURRENCY', 'INR')
    CURRENCIES = ('USD', 'INR', 'AED', 'EUR')

    # Document lifecycle
    QUOTATION_VALIDITY_DAYS = 15
    INVOICE_DUE_DAYS = 15
    QUOTATION_PREFIX = 'QT'
    INVOICE_PREFIX = 'INV'
    SHIPMENT_PREFIX = 'SHP'
    CUSTOMER_PREFIX = 'CUST'
    DOCUMENT_NUMBER_LENGTH = 3

    # Shipments
    SHIPMENT_REQUIRES_PAYMENT = _env_bool('SHIPMENT_REQUIRES_PAYMENT', True)

    # Attachments (payment proofs, shipping documents)
    MAX_ATTACHMENT_BYTES = int(os.environ.get('MAX_ATTACHMENT_BYTES', 300 * 1024))

    # Payment proof analysis
    ANTHROPIC_API_KEY = os.environ.get('ANTHROPIC_API_KEY', '')
    PROOF_ANALYSIS_MODEL = os.environ.get('PROOF_ANALYSIS_MODEL', 'claude-sonnet-4-20250514')
    PROOF_ANALYSIS_TIMEOUT = float(os.environ.get('PROOF_ANALYSIS_TIMEOUT', 30))

    # Seed data
    SEED_ON_EMPTY = _env_bool('SEED_ON_EMPTY', True)

    # Pagination
    ITEMS_PER_PAGE = 20


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SEED_ON_EMPTY = False
    ANTHROPIC_API_KEY = ''
