from typing import Optional

import httpx
from fastapi import Depends, Request

from study_portal.logging_config import get_logger
from study_portal.security import is_token_expired, token_subject
from study_portal.services.admin_api import AdminService
from study_portal.services.api_client import ApiClient, ApiError
from study_portal.storage import BrowserSession

logger = get_logger(__name__)


class AdminAuthRequired(Exception):
    """Raised by admin routes; mapped to a redirect to /admin-login."""

    def __init__(self, expired: bool = False):
        super().__init__("admin login required")
        self.expired = expired

    @property
    def redirect_url(self) -> str:
        return "/admin-login?expired=true" if self.expired else "/admin-login"


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_browser_session(request: Request) -> BrowserSession:
    """
    The session attached by session_middleware.
    Present on every route except /health.
    """
    return request.state.browser_session


def current_admin_token(session: BrowserSession) -> Optional[str]:
    """The held token if it is still usable; an expired one is dropped."""
    token = session.admin_token
    if token and is_token_expired(token):
        logger.info("admin_token_expired", admin=token_subject(token))
        session.admin_token = None
        return None
    return token


def require_admin(
    request: Request,
    session: BrowserSession = Depends(get_browser_session),
) -> AdminService:
    """
    Route guard for the admin console.

    Usage:
        @router.get("/admin-dashboard")
        async def dashboard(admin: AdminService = Depends(require_admin)):
            ...
    """
    if not session.admin_token:
        raise AdminAuthRequired()

    token = current_admin_token(session)
    if token is None:
        raise AdminAuthRequired(expired=True)

    return AdminService(ApiClient(get_http_client(request), token=token))


def check_admin_error(session: BrowserSession, e: ApiError) -> str:
    """
    Turn a failed admin call into a flash message.
    A rejected token ends the admin session instead.
    """
    if e.status in (401, 403):
        logger.warning("admin_token_rejected", status=e.status)
        session.admin_token = None
        raise AdminAuthRequired(expired=True)
    return e.message
