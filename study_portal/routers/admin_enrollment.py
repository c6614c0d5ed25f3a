"""
Enrollment cap and on/off switch (/admin-enrollment)
"""
from fastapi import APIRouter, Depends, Form
from fastapi.responses import RedirectResponse

from study_portal.admin_pages import enrollment_page
from study_portal.deps import check_admin_error, get_browser_session, require_admin
from study_portal.logging_config import get_logger
from study_portal.schemas import EnrollmentConfig
from study_portal.services.admin_api import AdminService
from study_portal.services.api_client import ApiError
from study_portal.session import error, success
from study_portal.storage import BrowserSession

logger = get_logger(__name__)

router = APIRouter()


@router.get("/admin-enrollment")
async def enrollment(
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    config = EnrollmentConfig()
    try:
        config = await admin.enrollment_config()
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return enrollment_page(config, session.pop_flash())


@router.post("/admin-enrollment")
async def update_enrollment(
    max_participants: str = Form(""),
    is_active: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    limit = None
    if max_participants.strip():
        try:
            limit = int(max_participants)
        except ValueError:
            limit = -1
        if limit < 0:
            session.flash = error("Maximum participants must be a whole number of 0 or more.")
            return RedirectResponse("/admin-enrollment", status_code=303)

    try:
        config = await admin.update_enrollment_config(limit, bool(is_active))
        logger.info("enrollment_config_updated", max_participants=limit, active=config.is_enrollment_active)
        session.flash = success("Enrollment settings saved.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return RedirectResponse("/admin-enrollment", status_code=303)
