"""
nanoedit/config_validator.py

Validate configuration on startup
"""

import logging
import sys

from nanoedit.config import settings

logger = logging.getLogger(__name__)


class ConfigValidator:
    def __init__(self, config=None):
        self.config = config or settings
        self.errors = []
        self.warnings = []

    def validate_database(self):
        """Validate database configuration"""
        if not self.config.DATABASE_URL:
            self.errors.append("DATABASE_URL not set")

        if self.config.DATABASE_URL and self.config.DATABASE_URL.startswith(
            "sqlite"
        ):
            self.warnings.append(
                "Using SQLite - not recommended for production"
            )

    def validate_security(self):
        """Validate session token settings"""
        if self.config.SECRET_KEY == "dev-only-key-change-in-production":
            self.errors.append(
                "Using default SECRET_KEY - must change for production"
            )

        if len(self.config.SECRET_KEY or "") < 32:
            self.errors.append("SECRET_KEY too short - minimum 32 characters")

    def validate_providers(self):
        """Validate third-party API credentials"""
        if not self.config.KIE_API_KEY:
            self.errors.append("KIE_API_KEY not set")

        if not self.config.IMGBB_API_KEY:
            self.errors.append("IMGBB_API_KEY not set")

        if self.config.OUTBOUND_PROXY:
            self.warnings.append(
                f"Outbound provider calls go through proxy "
                f"{self.config.OUTBOUND_PROXY}"
            )

    def validate_billing(self):
        """Validate credit amounts"""
        if self.config.IMAGE_EDIT_CREDITS < 0:
            self.errors.append("IMAGE_EDIT_CREDITS must be >= 0")

        if self.config.TASK_EXPIRY_MINUTES <= 5:
            self.warnings.append(
                "TASK_EXPIRY_MINUTES <= 5 expires tasks while "
                "clients may still be polling"
            )

    def validate_celery(self):
        """Validate Celery configuration"""
        if not self.config.CELERY_BROKER_URL:
            self.errors.append("CELERY_BROKER_URL not set")

        if not self.config.CELERY_RESULT_BACKEND:
            self.errors.append("CELERY_RESULT_BACKEND not set")

    def validate_environment(self):
        """Validate environment-specific settings"""
        if self.config.FASTAPI_CONFIG == "production":
            if self.config.DEBUG:
                self.errors.append("DEBUG=True in production")

    def validate_all(self):
        """Run all validations"""
        self.errors = []
        self.warnings = []
        self.validate_database()
        self.validate_security()
        self.validate_providers()
        self.validate_billing()
        self.validate_celery()
        self.validate_environment()

        return self.errors, self.warnings

    def check_and_exit_on_errors(self):
        """Validate and exit if critical errors found"""
        errors, warnings = self.validate_all()

        for warning in warnings:
            logger.warning(f"Configuration warning: {warning}")

        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            if self.config.FASTAPI_CONFIG != "testing":
                sys.exit(1)
            return

        logger.info("Configuration validation passed")


config_validator = ConfigValidator()
