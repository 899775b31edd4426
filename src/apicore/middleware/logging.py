"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per API call, with timing, a correlation id, and the
authenticated subject when there is one.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default, combined-log style):

        127.0.0.1 - 7 [19/Oct/2026:10:04:11 +0000] "POST /products" 201 3.41ms a1b2c3d4

    JSON (one object per line, for log aggregators):

        {"request_id": "a1b2c3d4", "method": "POST", "path": "/products",
         "status_code": 201, "success": true, "subject": 7, ...}

=============================================================================
REQUEST CORRELATION
=============================================================================

An incoming X-Request-ID header is reused; otherwise a short random id
is generated. Either way it's echoed back in the X-Request-ID response
header so callers can quote it when reporting a problem.

Put this middleware FIRST in the global pipeline so it sees every call,
including those rejected by later stages.

=============================================================================
"""

from dataclasses import dataclass, asdict
from typing import Optional, Iterable
import json
import logging
import time
import uuid

from ..http.request import Request
from ..http.response import Response
from .base import Middleware, NextHandler


# Namespaced so the access log can be routed separately:
#   logging.getLogger("apicore.access").addHandler(file_handler)
logger = logging.getLogger("apicore.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

        request_id:  Correlation id (X-Request-ID)
        method:      HTTP method
        path:        Normalized request path
        query:       Raw-ish query summary ("" when none)
        client_ip:   Caller address
        user_agent:  User-Agent header or "-"
        subject:     Authenticated subject id, None for anonymous calls
        status_code: Response status
        success:     The envelope's success flag
        duration_ms: Processing time
        timestamp:   When the call finished
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    subject: Optional[int]
    status_code: int
    success: bool
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        subject = "-" if self.subject is None else str(self.subject)
        return (
            f'{self.client_ip or "-"} - {subject} [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.duration_ms:.2f}ms {self.request_id}'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Usage:
        pipeline.add(LoggingMiddleware())                     # text
        pipeline.add(LoggingMiddleware(log_format="json"))    # JSON lines
        pipeline.add(LoggingMiddleware(skip_paths=["/health"]))
    """

    REQUEST_ID_HEADER = "X-Request-ID"

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json"
            include_request_id: Echo X-Request-ID on the response
            log_level: Level the access lines are logged at
            skip_paths: Paths not logged (noisy health checks)
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got '{log_format}'")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def handle(self, request: Request, next: NextHandler) -> Response:
        request_id = request.header(self.REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        start_time = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        if self.include_request_id:
            response.set_header(self.REQUEST_ID_HEADER, request_id)

        if request.path in self.skip_paths:
            return response

        identity = request.identity
        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query="&".join(f"{k}={v}" for k, v in request.query.items()),
            client_ip=request.client_address[0],
            user_agent=request.header("User-Agent") or "-",
            subject=identity.subject_id if identity else None,
            status_code=int(response.status),
            success=bool(response.success),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict(), ensure_ascii=False))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
