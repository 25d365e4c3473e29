# Request logging middleware

import time
import uuid
import logging
from fastapi import FastAPI, Request
from typing import Dict, Any

logger = logging.getLogger(__name__)

QUIET_PATHS = {"/", "/health"}


def setup_logging_middleware(app: FastAPI, config: Dict[str, Any]):
    """
    Log each request with a request id and its processing time

    The id is taken from an incoming X-Request-ID header when the storefront
    sends one, so a checkout can be traced across both services. Requests slower
    than logging.slow_request_ms are logged as warnings.

    Args:
        app: FastAPI application
        config: config dict
    """
    slow_request_ms = config.get('logging', {}).get('slow_request_ms', 1000)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        start_time = time.time()
        quiet = request.url.path in QUIET_PATHS

        if not quiet:
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Client: {request.client.host if request.client else 'unknown'}"
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"[{request_id}] ERROR - {str(e)} - "
                         f"Time: {(time.time() - start_time) * 1000:.0f}ms")
            raise

        elapsed_ms = (time.time() - start_time) * 1000
        if elapsed_ms > slow_request_ms:
            logger.warning(f"[{request_id}] slow request {request.method} {request.url.path}: "
                           f"{response.status_code} in {elapsed_ms:.0f}ms")
        elif not quiet:
            logger.info(f"[{request_id}] {response.status_code} - Time: {elapsed_ms:.0f}ms")

        response.headers["X-Request-ID"] = request_id
        return response
