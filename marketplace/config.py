import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///marketplace.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Empty string disables the file handler.
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')
    MAJOR_EVENTS_LOG_FILE = os.environ.get(
        'MAJOR_EVENTS_LOG_FILE', 'major_events.log')

    # Seller quotes sent without an explicit expiry
    QUOTE_DEFAULT_EXPIRY_DAYS = int(
        os.environ.get('QUOTE_DEFAULT_EXPIRY_DAYS', 7))

    # Return requests allowed per order
    MAX_RETURN_ATTEMPTS = int(os.environ.get('MAX_RETURN_ATTEMPTS', 3))

    # Platform commission (percent) assigned to new sellers
    DEFAULT_COMMISSION_RATE = Decimal(
        os.environ.get('DEFAULT_COMMISSION_RATE', '20.00'))

    # Per-order shipping when checkout does not supply one
    DEFAULT_SHIPPING_COST = Decimal(
        os.environ.get('DEFAULT_SHIPPING_COST', '0.00'))

    # Pagination configuration
    ITEMS_PER_PAGE = 20
