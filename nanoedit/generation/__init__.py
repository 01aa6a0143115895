"""
nanoedit/generation/__init__.py
"""

from fastapi import APIRouter

generation_router = APIRouter(
    prefix="/generate-image", tags=["Image Generation"]
)

from . import views  # noqa
