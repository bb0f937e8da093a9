"""Flask application bridging a browser UI to the job lifecycle controller."""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

from config import (
    TEXTIFY_API_BASE,
    TEXTIFY_CORS_ENABLED,
    TEXTIFY_POLL_INTERVAL_S,
    TEXTIFY_STATE_PATH,
    TEXTIFY_UPLOAD_MAX_BYTES,
)
from jobs import IdentityProvider, IdentityStore, JobLifecycleController
from observability.logger import bind_trace_id, clear_trace_id, get_logger
from observability.metrics import get_registry
from services import JobDetails, JobsApiClient, JobsApiError

load_dotenv()

LOGGER = get_logger("textify.api")


class ApiError(Exception):
    """Exception translated into an HTTP error response."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def build_controller() -> JobLifecycleController:
    api = JobsApiClient(TEXTIFY_API_BASE)
    provider = IdentityProvider(IdentityStore(TEXTIFY_STATE_PATH))
    return JobLifecycleController(api, provider, poll_interval_s=TEXTIFY_POLL_INTERVAL_S)


def create_app(controller: Optional[JobLifecycleController] = None) -> Flask:
    controller = controller or build_controller()
    api = controller.api
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = TEXTIFY_UPLOAD_MAX_BYTES
    app.extensions["job_controller"] = controller
    if hasattr(app, "json"):
        app.json.ensure_ascii = False
    if TEXTIFY_CORS_ENABLED:
        CORS(app, resources={r"/api/*": {"origins": "*"}})

    @app.before_request
    def _bind_request_trace() -> None:
        trace_id = request.headers.get("X-Trace-Id") or uuid.uuid4().hex
        g.trace_id = trace_id
        bind_trace_id(trace_id)

    @app.after_request
    def _append_trace(response):  # type: ignore[override]
        trace_id = getattr(g, "trace_id", None)
        if trace_id:
            response.headers.setdefault("X-Trace-Id", trace_id)
        clear_trace_id()
        return response

    @app.teardown_request
    def _teardown_trace(_exc):  # type: ignore[override]
        clear_trace_id()

    @app.errorhandler(ApiError)
    def _handle_api_error(exc: ApiError):  # type: ignore[override]
        LOGGER.warning("API error", extra={"error_message": exc.message, "code": exc.status_code})
        trace_id = getattr(g, "trace_id", None)
        return (
            jsonify(
                {
                    "error": {
                        "message": exc.message,
                        "code": exc.status_code,
                        "trace_id": trace_id,
                    }
                }
            ),
            exc.status_code,
        )

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):  # type: ignore[override]
        trace_id = getattr(g, "trace_id", None)
        return (
            jsonify(
                {
                    "error": {
                        "message": exc.description or exc.name,
                        "code": exc.code,
                        "trace_id": trace_id,
                    }
                }
            ),
            exc.code or 500,
        )

    @app.errorhandler(Exception)
    def _handle_generic_error(exc: Exception):  # type: ignore[override]
        LOGGER.exception("Unhandled error")
        trace_id = getattr(g, "trace_id", None)
        return (
            jsonify(
                {
                    "error": {
                        "message": "Internal server error",
                        "trace_id": trace_id,
                    }
                }
            ),
            500,
        )

    @app.get("/api/state")
    def current_state():
        return jsonify(controller.state().to_dict())

    @app.post("/api/select")
    def select_file():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise ApiError("Expected a JSON object")
        filename = payload.get("filename")
        if filename is not None and not isinstance(filename, str):
            raise ApiError("'filename' must be a string")
        return jsonify(controller.select_file(filename).to_dict())

    @app.post("/api/upload")
    def upload():
        upload_file = request.files.get("file")
        if upload_file is None or not upload_file.filename:
            raise ApiError("Please select a file first.")
        filename = secure_filename(upload_file.filename) or "upload.bin"
        data = upload_file.read()
        if not data:
            raise ApiError("Uploaded file is empty")
        state = controller.submit(data, filename=filename, content_type=upload_file.mimetype or None)
        http_status = 502 if state.last_error else 202
        return jsonify(state.to_dict()), http_status

    @app.get("/api/jobs/recent")
    def recent_jobs():
        page = _safe_int(request.args.get("page"), 0)
        size = _safe_int(request.args.get("size"), 10)
        try:
            items = api.list_recent(page=page, size=size)
        except JobsApiError as exc:
            raise ApiError(exc.detail, status_code=502) from exc
        return jsonify({"items": [_details_to_dict(api, item) for item in items]})

    @app.get("/api/jobs/<job_id>")
    def job_details(job_id: str):
        try:
            details = api.fetch_job(job_id)
        except JobsApiError as exc:
            status_code = 404 if exc.status_code == 404 else 502
            raise ApiError(exc.detail, status_code=status_code) from exc
        return jsonify(_details_to_dict(api, details))

    @app.get("/api/health")
    def health():
        metrics_snapshot = get_registry().snapshot()
        state = controller.state()
        return jsonify(
            {
                "ok": True,
                "polling": controller.polling,
                "poll_interval_s": controller.poll_interval_s,
                "status": state.status.value,
                "metrics": metrics_snapshot,
            }
        )

    return app


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _details_to_dict(api: JobsApiClient, details: JobDetails) -> Dict[str, Any]:
    return {
        "job_id": details.job_id,
        "status": details.status,
        "original_filename": details.original_filename,
        "error_message": details.error_message,
        "created_at": details.created_at,
        "download_url": details.download_url or api.download_url(details.job_id),
    }


__all__ = ["ApiError", "build_controller", "create_app"]
