"""Data models describing an uploaded job and the state exposed to the UI."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

IDLE_MESSAGE = "Please select a file to upload."


def utcnow() -> datetime:
    """Return a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Status vocabulary reported by the backend."""

    IDLE = "IDLE"
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    NO_JOB_FOUND = "NO_JOB_FOUND"
    # Fallback for strings outside the vocabulary; treated as still running.
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        normalized = str(value or "").strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.NO_JOB_FOUND})

STATUS_CLASSES = {
    JobStatus.UPLOADED: "pending",
    JobStatus.PROCESSING: "pending",
    JobStatus.COMPLETED: "success",
    JobStatus.FAILED: "error",
}


def status_class(status: JobStatus) -> str:
    return STATUS_CLASSES.get(status, "neutral")


def status_message(status: JobStatus, job_id: str) -> Optional[str]:
    """Human message for a polled status; ``None`` keeps the current message."""

    if status == JobStatus.COMPLETED:
        return f"Job {job_id} is complete!"
    if status == JobStatus.FAILED:
        return f"Job {job_id} failed."
    if status == JobStatus.PROCESSING:
        return "Job is still processing..."
    if status == JobStatus.NO_JOB_FOUND:
        return "No active job found for this user."
    return None


@dataclass
class Job:
    """A submitted unit of work tracked by the controller."""

    id: str
    status: JobStatus = JobStatus.UPLOADED
    raw_status: str = JobStatus.UPLOADED.value
    filename: Optional[str] = None
    download_url: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def apply_status(self, raw_status: str, *, download_url: Optional[str] = None) -> bool:
        """Overwrite the status unless the job already reached a terminal one."""

        if self.is_terminal:
            return False
        self.raw_status = str(raw_status)
        self.status = JobStatus.parse(raw_status)
        if self.status == JobStatus.COMPLETED:
            self.download_url = download_url
        self.updated_at = utcnow()
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "raw_status": self.raw_status,
            "status_class": status_class(self.status),
            "filename": self.filename,
            "download_url": self.download_url,
            "created_at": self.created_at.strftime(ISO_FORMAT),
            "updated_at": self.updated_at.strftime(ISO_FORMAT),
        }


@dataclass(frozen=True)
class ControllerState:
    """Snapshot of everything a presentation layer needs to render."""

    job: Optional[Job] = None
    human_message: str = IDLE_MESSAGE
    last_error: Optional[str] = None
    is_busy: bool = False
    selected_file: Optional[str] = None
    download_hidden: bool = False

    @property
    def status(self) -> JobStatus:
        return self.job.status if self.job else JobStatus.IDLE

    @property
    def status_class(self) -> str:
        return status_class(self.status)

    @property
    def download_url(self) -> Optional[str]:
        if self.job is None or self.download_hidden:
            return None
        return self.job.download_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job.to_dict() if self.job else None,
            "status": self.status.value,
            "status_class": self.status_class,
            "message": self.human_message,
            "error": self.last_error,
            "is_busy": self.is_busy,
            "selected_file": self.selected_file,
            "download_url": self.download_url,
        }
