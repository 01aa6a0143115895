"""
nanoedit/schemas/errors.py - Error code definitions
"""

from enum import Enum


class ErrorCode(str, Enum):
    # Authentication
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Billing
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    PAYMENT_FAILED = "PAYMENT_FAILED"

    # Tasks
    TASK_NOT_FOUND = "TASK_NOT_FOUND"

    # Upstream providers
    PROVIDER_ERROR = "PROVIDER_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Rate Limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # System
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


# Error messages mapping
ERROR_MESSAGES = {
    ErrorCode.LOGIN_REQUIRED: (
        "Login required. Please sign in to use AI image editing."
    ),
    ErrorCode.INVALID_TOKEN: "Invalid or expired token",
    ErrorCode.INSUFFICIENT_CREDITS: "Insufficient credits",
    ErrorCode.PAYMENT_FAILED: "Failed to process payment. Please try again.",
    ErrorCode.TASK_NOT_FOUND: "Task not found",
    ErrorCode.PROVIDER_ERROR: "Failed to create generation task",
    ErrorCode.CONFIG_ERROR: "Server configuration error",
    ErrorCode.VALIDATION_ERROR: "Validation error",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Rate limit exceeded",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
    ErrorCode.DATABASE_ERROR: "Database error occurred",
}
