"""
nanoedit/generation/schemas.py - Image editing request/response bodies
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    images: Optional[List[str]] = None  # base64, optionally data URLs
    prompt: Optional[str] = None
    mode: Optional[str] = None
    aspect_ratio: Optional[str] = Field(None, alias="aspectRatio")
    turnstile_token: Optional[str] = Field(None, alias="turnstileToken")


class GenerateImageResponse(BaseModel):
    success: bool = True
    taskId: str
    recordNo: str
    status: str = "GENERATING"
    message: str = "Image editing task created successfully"


class TaskStatusResponse(BaseModel):
    success: bool
    status: str
    editedImage: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
