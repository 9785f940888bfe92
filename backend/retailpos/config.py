# backend/retailpos/config.py
from __future__ import annotations
import os
from decimal import Decimal


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retailpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sales tax applied to the sale subtotal (0.085 == 8.5%)
    TAX_RATE = Decimal(os.environ.get("TAX_RATE", "0.085"))
    CURRENCY = os.environ.get("CURRENCY", "USD")

    # Loyalty points earned per whole currency unit of a sale total
    LOYALTY_POINTS_PER_UNIT = int(os.environ.get("LOYALTY_POINTS_PER_UNIT", "1"))

    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    """Ephemeral in-memory store; same code paths as the durable database."""
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    TAX_RATE = Decimal("0.085")
    LOG_LEVEL = "DEBUG"
    # Minimum bcrypt cost keeps the suite fast
    BCRYPT_ROUNDS = 4
