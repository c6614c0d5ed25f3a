"""
Middleware for request tracking, logging and browser sessions.
"""
import uuid
from typing import Callable
from fastapi import Request, Response
from structlog.contextvars import bind_contextvars, clear_contextvars
from study_portal.config import settings
from study_portal.logging_config import get_logger
from study_portal.services.api_client import ApiClient
import time

logger = get_logger(__name__)

# Health checks get no browser session
SESSIONLESS_PATHS = frozenset({"/health"})


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Add unique request_id to each request for tracing.
    Binds request_id to structlog context for all logs in this request.
    """
    request_id = request.headers.get('X-Request-ID', str(uuid.uuid4()))

    clear_contextvars()
    bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    request.state.request_id = request_id

    logger.info(
        "request_started",
        method=request.method,
        path=str(request.url.path),
        client_host=request.client.host if request.client else None,
    )

    start_time = time.time()

    try:
        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers['X-Request-ID'] = request_id

        return response

    except Exception as exc:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            "request_failed",
            exc_info=exc,
            duration_ms=round(duration_ms, 2),
        )
        raise
    finally:
        clear_contextvars()


async def session_middleware(request: Request, call_next: Callable) -> Response:
    """
    Attach the BrowserSession named by the session cookie, creating one
    (and setting the cookie) when it is missing or has expired.
    """
    if request.url.path in SESSIONLESS_PATHS:
        return await call_next(request)

    store = request.app.state.sessions
    session = store.get(request.cookies.get(settings.SESSION_COOKIE_NAME))
    created = session is None
    if created:
        session = store.create(
            ApiClient(request.app.state.http),
            timer_factory=request.app.state.timer_factory,
        )

    request.state.browser_session = session
    bind_contextvars(session_id=session.id[:8])

    response = await call_next(request)

    if created:
        response.set_cookie(
            settings.SESSION_COOKIE_NAME,
            session.id,
            max_age=settings.SESSION_MAX_AGE_SECONDS,
            httponly=True,
            secure=settings.SESSION_COOKIE_SECURE,
            samesite="lax",
        )
    return response
