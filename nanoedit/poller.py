"""
nanoedit/poller.py

Client side of the edit flow: submit a job, then poll its status until it
finishes, fails or runs out of time.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate-image"
STATUS_PATH = "/api/generate-image/task-status"

DEFAULT_INTERVAL = 2.0
DEFAULT_MAX_ATTEMPTS = 150
DEFAULT_MAX_WAIT = 300.0

# Progress shown once the job has been accepted
PROGRESS_START = 25.0
PROGRESS_CAP = 95.0
PROGRESS_TIME_CONSTANT = 60.0


class PollError(Exception):
    """The status endpoint refused the request; retrying will not help"""

    def __init__(self, status_code: int, message: str, code: str = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(f"{status_code}: {message}")


class TaskFailedError(Exception):
    def __init__(self, task_id: str, error: str):
        self.task_id = task_id
        self.error = error
        super().__init__(f"Task {task_id} failed: {error}")


class PollTimeoutError(Exception):
    def __init__(self, task_id: str, attempts: int, elapsed: float):
        self.task_id = task_id
        self.attempts = attempts
        self.elapsed = elapsed
        super().__init__(
            f"Task {task_id} still running after {attempts} polls "
            f"({elapsed:.0f}s)"
        )


class LoginRequiredError(PollError):
    pass


class InsufficientCreditsError(PollError):
    pass


@dataclass
class PollResult:
    task_id: str
    record_no: Optional[str]
    image_url: Optional[str]
    attempts: int
    elapsed: float


@dataclass
class SubmittedTask:
    task_id: str
    record_no: str


def synthetic_progress(elapsed: float) -> float:
    """Time-based estimate that approaches, and never reaches, 95%"""
    if elapsed <= 0:
        return PROGRESS_START
    span = PROGRESS_CAP - PROGRESS_START
    return PROGRESS_START + span * (
        1 - math.exp(-elapsed / PROGRESS_TIME_CONSTANT)
    )


def _error_message(response: httpx.Response) -> tuple:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase, None
    if not isinstance(body, dict):
        return str(body), None
    return body.get("error") or response.reason_phrase, body.get("code")


class TaskPoller:
    """Polls the status endpoint once per interval, never overlapping"""

    def __init__(
        self,
        base_url: str,
        interval: float = DEFAULT_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        max_wait: float = DEFAULT_MAX_WAIT,
    ):
        self.base_url = base_url.rstrip("/")
        self.interval = interval
        self.max_attempts = max_attempts
        self.max_wait = max_wait
        self.client = client or httpx.Client(timeout=30.0)
        self.sleep = sleep
        self.clock = clock

    def poll(
        self,
        task_id: str,
        record_no: Optional[str] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> PollResult:
        params = {"taskId": task_id}
        if record_no:
            params["recordNo"] = record_no

        started = self.clock()
        attempts = 0

        while attempts < self.max_attempts:
            self.sleep(self.interval)
            elapsed = self.clock() - started
            if elapsed > self.max_wait:
                break

            attempts += 1
            try:
                response = self.client.get(
                    f"{self.base_url}{STATUS_PATH}", params=params
                )
            except httpx.TransportError as e:
                logger.warning(
                    f"Status poll {attempts} for {task_id} failed: {e}"
                )
                continue

            if response.status_code >= 500:
                logger.warning(
                    f"Status poll {attempts} for {task_id} returned "
                    f"{response.status_code}, retrying"
                )
                continue

            if response.status_code >= 400:
                message, code = _error_message(response)
                raise PollError(response.status_code, message, code)

            try:
                data = response.json()
            except ValueError:
                data = None
            if not isinstance(data, dict):
                # Proxy error pages and the like; try again next tick
                logger.warning(
                    f"Status poll {attempts} for {task_id} returned an "
                    f"unreadable body, retrying"
                )
                continue

            state = data.get("status")

            if state == "SUCCESS":
                if on_progress:
                    on_progress(100.0)
                return PollResult(
                    task_id=task_id,
                    record_no=record_no,
                    image_url=data.get("editedImage"),
                    attempts=attempts,
                    elapsed=self.clock() - started,
                )

            if state == "FAILED":
                raise TaskFailedError(
                    task_id, data.get("error") or "Image editing failed"
                )

            if on_progress:
                on_progress(synthetic_progress(self.clock() - started))

        elapsed = self.clock() - started
        logger.error(f"Gave up polling {task_id} after {attempts} attempts")
        raise PollTimeoutError(task_id, attempts, elapsed)


class EditorClient:
    """Submit edit jobs with an API key or session token"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        poller: Optional[TaskPoller] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=120.0)
        self.client.headers.update(headers)
        self.poller = poller or TaskPoller(self.base_url, client=self.client)

    def submit(
        self,
        images: List[str],
        prompt: str,
        aspect_ratio: Optional[str] = None,
        mode: str = "image-to-image",
        turnstile_token: Optional[str] = None,
    ) -> SubmittedTask:
        body = {"images": images, "prompt": prompt, "mode": mode}
        if aspect_ratio:
            body["aspectRatio"] = aspect_ratio
        if turnstile_token:
            body["turnstileToken"] = turnstile_token

        response = self.client.post(
            f"{self.base_url}{GENERATE_PATH}", json=body
        )

        if response.status_code >= 400:
            message, code = _error_message(response)
            if response.status_code == 401:
                raise LoginRequiredError(401, message, code)
            if response.status_code == 402:
                raise InsufficientCreditsError(402, message, code)
            raise PollError(response.status_code, message, code)

        data = response.json()
        return SubmittedTask(
            task_id=data["taskId"], record_no=data["recordNo"]
        )

    def edit(
        self,
        images: List[str],
        prompt: str,
        aspect_ratio: Optional[str] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> PollResult:
        """Submit and wait; abandoning the wait leaves the job running"""
        submitted = self.submit(images, prompt, aspect_ratio=aspect_ratio)
        if on_progress:
            on_progress(PROGRESS_START)
        return self.poller.poll(
            submitted.task_id, submitted.record_no, on_progress=on_progress
        )

    def close(self):
        self.client.close()
