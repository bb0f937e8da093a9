"""Service layer utilities."""

from .jobs_api import (  # noqa: F401
    JobDetails,
    JobsApiClient,
    JobsApiError,
    PollError,
    PollResult,
    SubmissionError,
    SubmissionResult,
)

__all__ = [
    "JobDetails",
    "JobsApiClient",
    "JobsApiError",
    "PollError",
    "PollResult",
    "SubmissionError",
    "SubmissionResult",
]
