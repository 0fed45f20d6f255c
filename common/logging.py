from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone

REQUEST_ID_HEADER = "X-Request-ID"

# Probe traffic is logged at DEBUG so it does not drown the showroom's access log.
QUIET_PATH_SUFFIXES = ("/healthz/", "/readyz/")

# Attributes passed through ``extra=`` that end up as top-level JSON keys.
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "remote_addr",
    "user_id",
    "customer_id",
    "invoice_id",
    "product_id",
    "pieces",
    "amount",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; money and UUIDs are rendered with ``str``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (field, getattr(record, field))
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _authenticated_user_id(request) -> str | None:
    user = getattr(request, "user", None)
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return str(user.pk)


class RequestLogMiddleware:
    """Tags every request with an id and writes one access log line per response."""

    def __init__(self, get_response):
        self.get_response = get_response
        self.logger = logging.getLogger("api.request")

    def __call__(self, request):
        started_at = time.perf_counter()
        request.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        response = self.get_response(request)

        level = logging.DEBUG if request.path.endswith(QUIET_PATH_SUFFIXES) else logging.INFO
        self.logger.log(
            level,
            "%s %s -> %s",
            request.method,
            request.path,
            response.status_code,
            extra={
                "request_id": request.request_id,
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started_at) * 1000, 2),
                "remote_addr": request.META.get("REMOTE_ADDR"),
                "user_id": _authenticated_user_id(request),
            },
        )
        response[REQUEST_ID_HEADER] = request.request_id
        return response
