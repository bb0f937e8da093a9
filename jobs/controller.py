"""Upload-then-poll lifecycle controller for a single tracked job."""
from __future__ import annotations

import dataclasses
import mimetypes
import threading
from pathlib import Path
from typing import Callable, List, Optional

from config import TEXTIFY_POLL_INTERVAL_S
from observability.logger import get_logger, log_transition
from services.jobs_api import JobsApiClient, PollError, SubmissionError

from .identity import IdentityProvider
from .models import IDLE_MESSAGE, ControllerState, Job, JobStatus, status_message
from .poller import PollingLoop

LOGGER = get_logger("textify.jobs.controller")

StateListener = Callable[[ControllerState], None]
LoopFactory = Callable[..., PollingLoop]


class JobLifecycleController:
    """Owns the current job, its polling loop and the state shown to the user.

    Every transition happens under ``self._lock``; the upload and each status
    check run outside it. At most one polling loop is alive at a time.
    """

    def __init__(
        self,
        api: JobsApiClient,
        identity_provider: IdentityProvider,
        *,
        poll_interval_s: float = TEXTIFY_POLL_INTERVAL_S,
        loop_factory: LoopFactory = PollingLoop,
    ) -> None:
        self._api = api
        self._identity_provider = identity_provider
        self._poll_interval_s = float(poll_interval_s)
        self._loop_factory = loop_factory
        self._lock = threading.RLock()
        self._idle = threading.Event()
        self._idle.set()
        self._listeners: List[StateListener] = []

        self._job: Optional[Job] = None
        self._loop: Optional[PollingLoop] = None
        self._message = IDLE_MESSAGE
        self._last_error: Optional[str] = None
        self._busy = False
        self._selected_file: Optional[str] = None
        self._download_hidden = False

    # ------------------------------------------------------------------
    # observation
    # ------------------------------------------------------------------
    @property
    def api(self) -> JobsApiClient:
        return self._api

    @property
    def poll_interval_s(self) -> float:
        return self._poll_interval_s

    @property
    def polling(self) -> bool:
        with self._lock:
            return self._loop is not None and self._loop.active

    @property
    def active_loop(self) -> Optional[PollingLoop]:
        with self._lock:
            return self._loop

    def state(self) -> ControllerState:
        with self._lock:
            return self._snapshot_locked()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for state snapshots; returns an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the controller is no longer busy."""

        return self._idle.wait(timeout)

    # ------------------------------------------------------------------
    # user actions
    # ------------------------------------------------------------------
    def select_file(self, filename: Optional[str]) -> ControllerState:
        with self._lock:
            self._selected_file = filename or None
            self._message = f"File selected: {filename}" if filename else IDLE_MESSAGE
            self._last_error = None
            # The previous job's link is no longer offered once a new file is picked.
            self._download_hidden = True
            state = self._snapshot_locked()
        self._notify(state)
        return state

    def submit_file(self, path: str | Path) -> ControllerState:
        file_path = Path(path)
        content_type, _ = mimetypes.guess_type(file_path.name)
        return self.submit(file_path.read_bytes(), filename=file_path.name, content_type=content_type)

    def submit(
        self,
        payload: Optional[bytes],
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ControllerState:
        """Upload ``payload`` and start tracking the job the backend assigns."""

        if not payload:
            with self._lock:
                self._last_error = "Please select a file first."
                state = self._snapshot_locked()
            self._notify(state)
            return state

        filename = filename or self._selected_file or "upload.bin"
        identity = self._identity_provider.get_or_create_identity()
        with self._lock:
            self._set_busy_locked(True)
            self._last_error = None
            self._message = "Uploading..."
            state = self._snapshot_locked()
        self._notify(state)

        try:
            result = self._api.submit(payload, identity, filename=filename, content_type=content_type)
        except SubmissionError as exc:
            LOGGER.warning("job_submit_failed", extra={"error": exc.detail, "http_status": exc.status_code})
            return self._fail_submission(exc.detail)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("job_submit_crashed")
            return self._fail_submission(_describe(exc))

        with self._lock:
            self._retire_loop_locked()
            previous = self._job.status.value if self._job else JobStatus.IDLE.value
            job = Job(id=result.job_id, filename=filename)
            job.apply_status(result.status, download_url=self._api.download_url(result.job_id))
            self._job = job
            self._last_error = None
            self._selected_file = None
            self._download_hidden = False
            self._message = f"File uploaded successfully. Job ID: {job.id}. Polling for status..."
            if job.is_terminal:
                self._set_busy_locked(False)
            else:
                self._start_loop_locked(job, identity)
            state = self._snapshot_locked()
        log_transition(LOGGER, job_id=job.id, status=job.status.value, previous=previous, source="upload")
        self._notify(state)
        return state

    def close(self) -> None:
        """Stop the polling loop, if any, without touching the backend."""

        with self._lock:
            loop = self._loop
            self._retire_loop_locked()
            self._set_busy_locked(False)
        if loop is not None:
            loop.join(timeout=self._poll_interval_s + 1.0)

    # ------------------------------------------------------------------
    # polling
    # ------------------------------------------------------------------
    def _start_loop_locked(self, job: Job, identity: str) -> None:
        holder: dict = {}

        def _tick() -> bool:
            return self._poll_tick(holder["loop"], job.id, identity)

        loop = self._loop_factory(_tick, interval_s=self._poll_interval_s, name=f"job-poller-{job.id}")
        holder["loop"] = loop
        self._loop = loop
        loop.start()
        LOGGER.info("poll_loop_started", extra={"job_id": job.id, "interval_s": self._poll_interval_s})

    def _retire_loop_locked(self) -> None:
        if self._loop is not None:
            self._loop.cancel()
            self._loop = None

    def _poll_tick(self, loop: PollingLoop, job_id: str, identity: str) -> bool:
        with self._lock:
            if loop is not self._loop:
                return False

        try:
            result = self._api.check_status(job_id, identity)
        except PollError as exc:
            LOGGER.warning("job_poll_failed", extra={"job_id": job_id, "error": exc.detail})
            return self._fail_poll(loop, exc.detail)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("job_poll_crashed", extra={"job_id": job_id})
            return self._fail_poll(loop, _describe(exc))

        with self._lock:
            if loop is not self._loop or self._job is None:
                return False
            job = self._job
            previous = job.status
            job.apply_status(result.status, download_url=self._api.download_url(job.id))
            message = status_message(job.status, job.id)
            if message is not None:
                self._message = message
            if job.status is JobStatus.COMPLETED:
                self._download_hidden = False
            if job.is_terminal:
                self._retire_loop_locked()
                self._set_busy_locked(False)
            keep_going = not job.is_terminal
            state = self._snapshot_locked()

        if job.status != previous:
            log_transition(LOGGER, job_id=job.id, status=job.status.value, previous=previous.value, raw=job.raw_status)
        self._notify(state)
        return keep_going

    def _fail_poll(self, loop: PollingLoop, detail: str) -> bool:
        with self._lock:
            if loop is not self._loop:
                return False
            self._retire_loop_locked()
            self._last_error = f"Status check error: {detail}"
            self._set_busy_locked(False)
            state = self._snapshot_locked()
        self._notify(state)
        return False

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _fail_submission(self, detail: str) -> ControllerState:
        with self._lock:
            self._retire_loop_locked()
            self._last_error = f"Failed to create job: {detail}"
            self._message = "Upload failed."
            self._selected_file = None
            self._set_busy_locked(False)
            state = self._snapshot_locked()
        self._notify(state)
        return state

    def _set_busy_locked(self, busy: bool) -> None:
        self._busy = busy
        if busy:
            self._idle.clear()
        else:
            self._idle.set()

    def _snapshot_locked(self) -> ControllerState:
        return ControllerState(
            job=dataclasses.replace(self._job) if self._job else None,
            human_message=self._message,
            last_error=self._last_error,
            is_busy=self._busy,
            selected_file=self._selected_file,
            download_hidden=self._download_hidden,
        )

    def _notify(self, state: ControllerState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                LOGGER.exception("state_listener_failed")


def _describe(exc: Exception) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


__all__ = ["JobLifecycleController", "LoopFactory", "StateListener"]
