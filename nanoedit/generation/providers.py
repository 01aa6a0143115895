"""
nanoedit/generation/providers.py

Adapters for the image hosting API (ImgBB) and the image generation
job API (Kie.ai)
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Upstream API returned a non-2xx status or an unusable body"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ProviderConfigError(Exception):
    """A provider API key is missing"""


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def strip_data_url(image: str) -> str:
    """'data:image/png;base64,AAAA' -> 'AAAA'"""
    if "," in image:
        return image.split(",", 1)[1]
    return image


class ImgBBClient:
    """Uploads base64 images and returns their public URL"""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = "https://api.imgbb.com",
        expiration: int = 300,
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.expiration = expiration

    async def upload(self, image: str) -> str:
        if not self.api_key:
            raise ProviderConfigError("Missing IMGBB_API_KEY")

        form = {
            "key": self.api_key,
            "image": strip_data_url(image),
            "expiration": str(self.expiration),
        }

        try:
            response = await self.http.post(
                f"{self.base_url}/1/upload", data=form
            )
        except httpx.HTTPError as e:
            logger.error(f"ImgBB upload request failed: {e}")
            raise ProviderError(
                "Network error: Unable to connect to ImgBB API",
                status_code=502,
            ) from e

        logger.info(f"ImgBB API response status: {response.status_code}")

        if response.is_error:
            body = _response_body(response)
            logger.error(f"ImgBB API error response: {body}")
            raise ProviderError(
                f"ImgBB API error! status: {response.status_code}",
                status_code=response.status_code,
                details=body,
            )

        data = response.json()
        if not data.get("success"):
            message = (data.get("error") or {}).get(
                "message", "ImgBB API returned success: false"
            )
            logger.error(f"ImgBB API returned success: false: {data}")
            raise ProviderError(message, details=data)

        url = (data.get("data") or {}).get("url")
        if not url:
            logger.error(f"ImgBB API response missing URL: {data}")
            raise ProviderError(
                "ImgBB API response missing image URL", details=data
            )

        return url


class KieClient:
    """Kie.ai job API: createTask / recordInfo"""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = "https://api.kie.ai",
        model: str = "google/nano-banana-edit",
        output_format: str = "png",
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.output_format = output_format

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ProviderConfigError("Missing KIE_API_KEY")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def build_request(
        self,
        prompt: str,
        image_urls: List[str],
        aspect_ratio: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.model,
            "input": {"prompt": prompt, "image_urls": image_urls},
            "output_format": self.output_format,
            "image_size": aspect_ratio,
        }
        if aspect_ratio and aspect_ratio != "auto":
            body["input"]["aspect_ratio"] = aspect_ratio
        return body

    async def create_task(
        self,
        prompt: str,
        image_urls: List[str],
        aspect_ratio: Optional[str] = None,
    ) -> str:
        """Submit a generation job once and return the provider task id"""
        headers = self._headers()
        body = self.build_request(prompt, image_urls, aspect_ratio)

        try:
            response = await self.http.post(
                f"{self.base_url}/api/v1/jobs/createTask",
                json=body,
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Kie.ai createTask request failed: {e}")
            raise ProviderError(
                "Failed to create generation task", status_code=502
            ) from e

        logger.info(
            f"Kie.ai createTask response status: {response.status_code}"
        )

        if response.is_error:
            body = _response_body(response)
            logger.error(f"Kie.ai createTask error: {body}")
            raise ProviderError(
                "Failed to create generation task",
                status_code=response.status_code,
                details=body,
            )

        data = response.json()
        task_id = (data.get("data") or {}).get("taskId")
        if data.get("code") != 200 or not task_id:
            logger.error(f"Kie.ai createTask response missing task id: {data}")
            raise ProviderError(
                "Failed to create image editing task", details=data
            )

        logger.info(f"Image editing task created with ID: {task_id}")
        return task_id

    async def record_info(self, external_task_id: str) -> Dict[str, Any]:
        """Fetch the provider's view of a job"""
        headers = self._headers()

        try:
            response = await self.http.get(
                f"{self.base_url}/api/v1/jobs/recordInfo",
                params={"taskId": external_task_id},
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Kie.ai recordInfo request failed: {e}")
            raise ProviderError(
                "Failed to fetch task status", status_code=502
            ) from e

        if response.is_error:
            body = _response_body(response)
            logger.error(f"Kie.ai recordInfo error: {body}")
            raise ProviderError(
                "Failed to fetch task status",
                status_code=response.status_code,
                details=body,
            )

        data = _response_body(response)
        if not isinstance(data, dict):
            logger.error(f"Kie.ai recordInfo returned non-object: {data}")
            raise ProviderError(
                "Failed to fetch task status", status_code=502, details=data
            )
        code = data.get("code")
        if code is not None and code != 200:
            logger.error(
                f"Kie.ai recordInfo rejected {external_task_id}: {data}"
            )
            # 4xx body codes (unknown task) are final for the client
            client_error = isinstance(code, int) and 400 <= code < 500
            raise ProviderError(
                data.get("msg") or "Failed to fetch task status",
                status_code=code if client_error else 502,
                details=data,
            )

        return data


def parse_record(record: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Normalise a recordInfo body into state, result_url and error.

    The jobs API nests everything under "data" with "resultJson" as an
    encoded JSON string; older payloads put "status" and "result" at the
    top level. Both shapes are accepted.
    """
    data = record.get("data") if isinstance(record.get("data"), dict) else {}

    state = data.get("state") or record.get("status") or record.get("state")

    result_url = None
    result_json = data.get("resultJson", record.get("resultJson"))
    if isinstance(result_json, str) and result_json:
        try:
            result_json = json.loads(result_json)
        except ValueError:
            logger.warning("Unparseable resultJson in provider record")
            result_json = None
    if isinstance(result_json, dict):
        urls = result_json.get("resultUrls") or []
        if urls:
            result_url = urls[0]

    if result_url is None and isinstance(record.get("result"), dict):
        urls = record["result"].get("urls") or []
        if urls:
            result_url = urls[0]

    error = data.get("failMsg") or record.get("error")

    return {
        "state": state.lower() if isinstance(state, str) else None,
        "result_url": result_url,
        "error": error,
    }
