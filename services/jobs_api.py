"""HTTP client for the Textify jobs API."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

import httpx

from config import TEXTIFY_API_BASE, TEXTIFY_API_PREFIX, TEXTIFY_HTTP_TIMEOUT_S
from observability.logger import get_logger
from observability.metrics import get_registry

LOGGER = get_logger("textify.services.jobs_api")
REGISTRY = get_registry()
SUBMIT_COUNTER = REGISTRY.counter("jobs.submitted_total")
SUBMIT_FAILED_COUNTER = REGISTRY.counter("jobs.submit_failed_total")
POLL_COUNTER = REGISTRY.counter("jobs.polls_total")
POLL_ERROR_COUNTER = REGISTRY.counter("jobs.poll_errors_total")


class JobsApiError(RuntimeError):
    """Base error for failed calls to the jobs API."""

    def __init__(self, detail: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class SubmissionError(JobsApiError):
    """Upload was rejected, failed in transit, or returned a malformed body."""


class PollError(JobsApiError):
    """Status check failed in transit or returned a malformed body."""


@dataclass(frozen=True)
class SubmissionResult:
    job_id: str
    status: str
    message: Optional[str] = None


@dataclass(frozen=True)
class PollResult:
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobDetails:
    """Job record returned by the per-job status and recent jobs endpoints."""

    job_id: str
    status: str
    original_filename: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    download_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "JobDetails":
        job_id = payload.get("jobId")
        status = payload.get("status")
        if not isinstance(job_id, str) or not isinstance(status, str):
            raise ValueError("job payload requires string 'jobId' and 'status'")
        return cls(
            job_id=job_id,
            status=status,
            original_filename=payload.get("originalFilename"),
            error_message=payload.get("errorMessage"),
            created_at=payload.get("createdAt"),
            download_url=payload.get("downloadUrl"),
        )


def _json_object(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise ValueError(f"response is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("response is not a JSON object")
    return payload


class JobsApiClient:
    """Thin wrapper over the upload, status and download endpoints."""

    def __init__(
        self,
        api_base: str = TEXTIFY_API_BASE,
        *,
        timeout: float = TEXTIFY_HTTP_TIMEOUT_S,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")
        self._api_base = api_base.rstrip("/")
        self._jobs_url = f"{self._api_base}{TEXTIFY_API_PREFIX}"
        if http_client is None:
            http_client = httpx.Client(
                timeout=httpx.Timeout(timeout=timeout, connect=min(10.0, timeout)),
            )
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = http_client

    @property
    def api_base(self) -> str:
        return self._api_base

    def download_url(self, job_id: str) -> str:
        return f"{self._jobs_url}/{quote(job_id, safe='')}/download"

    # ------------------------------------------------------------------
    # upload / poll
    # ------------------------------------------------------------------
    def submit(
        self,
        payload: bytes,
        identity: str,
        *,
        filename: str = "upload.bin",
        content_type: Optional[str] = None,
    ) -> SubmissionResult:
        """Upload ``payload`` as multipart field ``file``; identity goes in the query."""

        file_part = (filename, payload, content_type or "application/octet-stream")
        try:
            response = self._client.post(
                f"{self._jobs_url}/upload",
                params={"userId": identity},
                files={"file": file_part},
            )
        except httpx.HTTPError as exc:
            SUBMIT_FAILED_COUNTER.inc()
            LOGGER.warning("upload_transport_error", extra={"error": str(exc)})
            raise SubmissionError(f"API call failed: {exc}") from exc

        if not response.is_success:
            SUBMIT_FAILED_COUNTER.inc()
            LOGGER.warning("upload_rejected", extra={"http_status": response.status_code})
            raise SubmissionError(f"API call failed: {response.text}", status_code=response.status_code)

        try:
            body = _json_object(response)
        except ValueError as exc:
            SUBMIT_FAILED_COUNTER.inc()
            raise SubmissionError(f"Malformed upload response: {exc}", status_code=response.status_code) from exc

        job_id = body.get("jobId")
        status = body.get("status")
        if not isinstance(job_id, str) or not job_id or not isinstance(status, str):
            SUBMIT_FAILED_COUNTER.inc()
            raise SubmissionError(
                "Malformed upload response: missing 'jobId' or 'status'",
                status_code=response.status_code,
            )

        SUBMIT_COUNTER.inc()
        LOGGER.info("upload_accepted", extra={"job_id": job_id, "job_status": status, "size": len(payload)})
        message = body.get("message")
        return SubmissionResult(job_id=job_id, status=status, message=message if isinstance(message, str) else None)

    def check_status(self, job_id: Optional[str], identity: str) -> PollResult:
        """Query the active job of ``identity``; ``job_id`` is only logged."""

        POLL_COUNTER.inc()
        try:
            response = self._client.get(self._jobs_url, params={"userId": identity})
        except httpx.HTTPError as exc:
            POLL_ERROR_COUNTER.inc()
            raise PollError(str(exc)) from exc

        if not response.is_success:
            POLL_ERROR_COUNTER.inc()
            LOGGER.warning("status_check_rejected", extra={"job_id": job_id, "http_status": response.status_code})
            raise PollError(
                f"Status check failed with status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = _json_object(response)
        except ValueError as exc:
            POLL_ERROR_COUNTER.inc()
            raise PollError(f"Malformed status response: {exc}", status_code=response.status_code) from exc

        status = body.get("status")
        if not isinstance(status, str):
            POLL_ERROR_COUNTER.inc()
            raise PollError("Malformed status response: missing 'status'", status_code=response.status_code)
        return PollResult(status=status, raw=body)

    # ------------------------------------------------------------------
    # read-only helpers
    # ------------------------------------------------------------------
    def fetch_job(self, job_id: str) -> JobDetails:
        response = self._get(f"{self._jobs_url}/{quote(job_id, safe='')}/status")
        try:
            return JobDetails.from_payload(_json_object(response))
        except ValueError as exc:
            raise JobsApiError(f"Malformed job response: {exc}", status_code=response.status_code) from exc

    def list_recent(self, page: int = 0, size: int = 10) -> List[JobDetails]:
        response = self._get(
            f"{self._jobs_url}/recent",
            params={"page": max(0, int(page)), "size": max(1, int(size))},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise JobsApiError(f"Malformed recent jobs response: {exc}", status_code=response.status_code) from exc
        if not isinstance(payload, list):
            raise JobsApiError("Malformed recent jobs response: expected a list", status_code=response.status_code)
        jobs: List[JobDetails] = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            try:
                jobs.append(JobDetails.from_payload(entry))
            except ValueError:
                LOGGER.warning("recent_job_skipped", extra={"entry": entry})
        return jobs

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise JobsApiError(str(exc)) from exc
        if not response.is_success:
            raise JobsApiError(
                f"Request failed with status: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = [
    "JobDetails",
    "JobsApiClient",
    "JobsApiError",
    "PollError",
    "PollResult",
    "SubmissionError",
    "SubmissionResult",
]
