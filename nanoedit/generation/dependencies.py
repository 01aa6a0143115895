import httpx
from fastapi import Depends

from nanoedit.config import settings
from nanoedit.http_client import get_http_client
from .providers import ImgBBClient, KieClient


def get_kie_client(
    http: httpx.AsyncClient = Depends(get_http_client),
) -> KieClient:
    return KieClient(
        http,
        api_key=settings.KIE_API_KEY,
        base_url=settings.KIE_BASE_URL,
        model=settings.KIE_MODEL,
        output_format=settings.KIE_OUTPUT_FORMAT,
    )


def get_imgbb_client(
    http: httpx.AsyncClient = Depends(get_http_client),
) -> ImgBBClient:
    return ImgBBClient(
        http,
        api_key=settings.IMGBB_API_KEY,
        base_url=settings.IMGBB_BASE_URL,
        expiration=settings.IMGBB_EXPIRATION,
    )
