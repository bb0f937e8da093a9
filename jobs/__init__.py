"""Client-side tracking of uploaded processing jobs."""

from .models import ControllerState, Job, JobStatus, TERMINAL_STATUSES  # noqa: F401
from .identity import IdentityProvider, IdentityStore, IdentityUnavailable  # noqa: F401
from .poller import PollingLoop  # noqa: F401
from .controller import JobLifecycleController  # noqa: F401

__all__ = [
    "ControllerState",
    "Job",
    "JobStatus",
    "TERMINAL_STATUSES",
    "IdentityProvider",
    "IdentityStore",
    "IdentityUnavailable",
    "PollingLoop",
    "JobLifecycleController",
]
