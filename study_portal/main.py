# study_portal/main.py

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from dotenv import load_dotenv

# ---------------------------------------------
# LOAD ENVIRONMENT VARIABLES
# ---------------------------------------------
load_dotenv()

from study_portal.config import settings
from study_portal.core.timer import TimerFactory, default_timer_factory
from study_portal.deps import AdminAuthRequired
from study_portal.logging_config import get_logger
from study_portal.middleware import request_id_middleware, session_middleware
from study_portal.services.api_client import create_http_client
from study_portal.storage import SessionStore

# ---------------------------------------------
# IMPORT ROUTERS
# ---------------------------------------------
from study_portal.routers import (
    participant,
    admin,
    admin_links,
    admin_gift_cards,
    admin_enrollment,
)

logger = get_logger(__name__)


def create_app(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timer_factory: TimerFactory = default_timer_factory,
) -> FastAPI:
    """
    Build the portal. `transport` replaces the network for the backend
    client and `timer_factory` the countdown clock.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.http = create_http_client(transport)
        app.state.sessions = SessionStore(settings.SESSION_MAX_AGE_SECONDS)
        logger.info(
            "portal_started",
            environment=settings.ENVIRONMENT,
            backend=settings.API_BASE_URL or settings.DEV_PROXY_URL,
        )
        try:
            yield
        finally:
            app.state.sessions.clear()
            await app.state.http.aclose()
            logger.info("portal_stopped")

    # ---------------------------------------------
    # APP INIT
    # ---------------------------------------------
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.timer_factory = timer_factory

    # ---------------------------------------------
    # CORS
    # ---------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last added runs first: request ids wrap the session lookup
    app.middleware("http")(session_middleware)
    app.middleware("http")(request_id_middleware)

    @app.exception_handler(AdminAuthRequired)
    async def admin_auth_required(request: Request, exc: AdminAuthRequired):
        logger.info("admin_redirect_to_login", expired=exc.expired)
        return RedirectResponse(exc.redirect_url, status_code=303)

    # ---------------------------------------------
    # ROUTERS
    # ---------------------------------------------

    # Participant flow
    app.include_router(participant.router, tags=["Participant"])

    # Admin console
    app.include_router(admin.router, tags=["Admin"])
    app.include_router(admin_links.router, tags=["Admin Links"])
    app.include_router(admin_gift_cards.router, tags=["Admin Gift Cards"])
    app.include_router(admin_enrollment.router, tags=["Admin Enrollment"])

    return app


app = create_app()
