"""
nanoedit/config.py

Project configuration file, with environment configs
"""

import os
import pathlib
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from kombu import Queue


def route_task(name, args, kwargs, options, task=None, **kw):
    if ":" in name:
        queue, _ = name.split(":")
        return {"queue": queue}
    return {"queue": "default"}


class BaseConfig:
    BASE_DIR: pathlib.Path = pathlib.Path(__file__).parent.parent

    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    FASTAPI_CONFIG: str = os.environ.get("FASTAPI_CONFIG", "development")
    DATABASE_CONNECT_DICT: dict = {}
    DEBUG: bool = False

    # Session tokens issued by the OAuth front end
    SECRET_KEY: str = os.environ.get(
        "SECRET_KEY", "dev-only-key-change-in-production"
    )
    ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = os.environ.get(
        "SESSION_COOKIE_NAME", "session_token"
    )

    CORS_ORIGINS: list = os.environ.get(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:8000"
    ).split(",")

    # Database Pool Settings
    DATABASE_POOL_SIZE: int = int(os.environ.get("DATABASE_POOL_SIZE", "10"))
    DATABASE_MAX_OVERFLOW: int = int(
        os.environ.get("DATABASE_MAX_OVERFLOW", "20")
    )
    DATABASE_POOL_TIMEOUT: int = int(
        os.environ.get("DATABASE_POOL_TIMEOUT", "30")
    )
    DATABASE_POOL_RECYCLE: int = int(
        os.environ.get("DATABASE_POOL_RECYCLE", "1800")
    )
    DATABASE_CONNECT_TIMEOUT: int = int(
        os.environ.get("DATABASE_CONNECT_TIMEOUT", "10")
    )

    # Image generation provider (Kie.ai)
    KIE_API_KEY: Optional[str] = os.environ.get("KIE_API_KEY")
    KIE_BASE_URL: str = os.environ.get("KIE_BASE_URL", "https://api.kie.ai")
    KIE_MODEL: str = os.environ.get("KIE_MODEL", "google/nano-banana-edit")
    KIE_OUTPUT_FORMAT: str = os.environ.get("KIE_OUTPUT_FORMAT", "png")

    # Image hosting (ImgBB)
    IMGBB_API_KEY: Optional[str] = os.environ.get("IMGBB_API_KEY")
    IMGBB_BASE_URL: str = os.environ.get(
        "IMGBB_BASE_URL", "https://api.imgbb.com"
    )
    IMGBB_EXPIRATION: int = int(os.environ.get("IMGBB_EXPIRATION", "300"))

    # Outbound HTTP
    PROVIDER_TIMEOUT: float = float(os.environ.get("PROVIDER_TIMEOUT", "60"))
    OUTBOUND_PROXY: Optional[str] = os.environ.get(
        "HTTPS_PROXY"
    ) or os.environ.get("HTTP_PROXY")

    # Billing
    IMAGE_EDIT_CREDITS: int = int(os.environ.get("IMAGE_EDIT_CREDITS", "2"))
    NEW_USER_CREDITS: int = int(os.environ.get("NEW_USER_CREDITS", "10"))
    TASKS_PAGE_LIMIT_MAX: int = 100

    # Stale task reaper
    TASK_EXPIRY_MINUTES: int = int(
        os.environ.get("TASK_EXPIRY_MINUTES", "60")
    )
    TASK_REAPER_INTERVAL: float = float(
        os.environ.get("TASK_REAPER_INTERVAL", "300")
    )

    # Rate limiting for the generation endpoint (requests, window seconds)
    GENERATE_RATE_LIMIT: int = int(
        os.environ.get("GENERATE_RATE_LIMIT", "20")
    )
    GENERATE_RATE_WINDOW: int = int(
        os.environ.get("GENERATE_RATE_WINDOW", "60")
    )

    # Celery Configuration
    CELERY_BROKER_URL: str = os.environ.get(
        "CELERY_BROKER_URL", "redis://127.0.0.1:6379/0"
    )
    CELERY_RESULT_BACKEND: str = os.environ.get(
        "CELERY_RESULT_BACKEND", "redis://127.0.0.1:6379/0"
    )
    CELERY_TASK_ALWAYS_EAGER: bool = False
    CELERY_BEAT_SCHEDULE: dict = {
        "expire-stale-tasks": {
            "task": "maintenance:expire_stale_tasks",
            "schedule": timedelta(seconds=TASK_REAPER_INTERVAL),
        },
    }
    CELERY_TASK_DEFAULT_QUEUE: str = "default"

    # Force all queues to be explicitly listed in `CELERY_TASK_QUEUES`
    # to help prevent typos
    CELERY_TASK_CREATE_MISSING_QUEUES: bool = False

    CELERY_TASK_QUEUES: list = (
        # need to define default queue here or exception would be raised
        Queue("default"),
        Queue("maintenance"),
    )
    CELERY_TASK_ROUTES = (route_task,)


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True


class ProductionConfig(BaseConfig):
    DEBUG: bool = False


class TestingConfig(BaseConfig):
    DATABASE_URL: str = "sqlite:///./test.db"
    DATABASE_CONNECT_DICT: dict = {"check_same_thread": False}
    SECRET_KEY: str = "test-secret-key-with-enough-length-123"
    KIE_API_KEY: str = "test-kie-key"
    IMGBB_API_KEY: str = "test-imgbb-key"
    OUTBOUND_PROXY: Optional[str] = None
    CELERY_TASK_ALWAYS_EAGER: bool = True
    GENERATE_RATE_LIMIT: int = 1000


@lru_cache()
def get_settings():
    config_cls_dict = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
    }

    config_name = os.environ.get("FASTAPI_CONFIG", "development")
    config_cls = config_cls_dict[config_name]
    settings = config_cls()
    settings.FASTAPI_CONFIG = config_name
    return settings


settings = get_settings()
