"""
Admin login and the participant dashboard
"""
from typing import List

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse

from study_portal.admin_pages import dashboard_page, delete_user_page, login_page
from study_portal.deps import (
    check_admin_error,
    current_admin_token,
    get_browser_session,
    require_admin,
)
from study_portal.logging_config import get_logger
from study_portal.schemas import AdminStats
from study_portal.security import token_subject
from study_portal.services.admin_api import AdminService
from study_portal.services.api_client import ApiClient, ApiError
from study_portal.services.tables import DEFAULT_PER_PAGE, filter_invitations, paginate
from study_portal.session import error, success
from study_portal.storage import BrowserSession

logger = get_logger(__name__)

router = APIRouter()


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


# ---------------------------------------------
# Login / logout
# ---------------------------------------------

@router.get("/admin-login")
async def admin_login_form(expired: bool = False, session: BrowserSession = Depends(get_browser_session)):
    if current_admin_token(session):
        return redirect("/admin-dashboard")
    return login_page(expired=expired)


@router.post("/admin-login")
async def admin_login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    session: BrowserSession = Depends(get_browser_session),
):
    if not username or not password:
        return login_page("Please enter both username and password.", username=username)

    service = AdminService(ApiClient(request.app.state.http))
    try:
        result = await service.login(username, password)
    except ApiError as e:
        logger.warning("admin_login_failed", username=username, status=e.status)
        return login_page(e.message or "Login failed", username=username)

    if not result.success or not result.token:
        return login_page(result.message or result.error or "Invalid credentials", username=username)

    session.admin_token = result.token
    logger.info("admin_logged_in", admin=token_subject(result.token) or username)
    return redirect("/admin-dashboard")


@router.post("/admin/logout")
async def admin_logout(request: Request, session: BrowserSession = Depends(get_browser_session)):
    token = session.admin_token
    session.admin_token = None
    if token:
        try:
            await AdminService(ApiClient(request.app.state.http, token=token)).logout()
        except ApiError as e:
            # The token is gone locally either way
            logger.info("admin_logout_call_failed", status=e.status, error=e.message)
    return redirect("/admin-login")


# ---------------------------------------------
# Dashboard
# ---------------------------------------------

@router.get("/admin-dashboard")
async def dashboard(
    q: str = "",
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    stats = AdminStats()
    rows = []
    load_error = ""
    try:
        stats = await admin.stats()
        rows = await admin.invitations()
    except ApiError as e:
        load_error = check_admin_error(session, e)

    page_rows = paginate(filter_invitations(rows, q), page, per_page)
    return dashboard_page(stats, page_rows, q, session.pop_flash(), load_error)


@router.post("/admin-dashboard/invitations/{participant_id}/email")
async def update_email(
    participant_id: str,
    email: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    try:
        result = await admin.update_user_email(participant_id, email.strip())
        if result.succeeded:
            session.flash = success("Email updated.")
        else:
            session.flash = error(result.error or result.message or "Failed to update email.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect("/admin-dashboard")


@router.get("/admin-dashboard/invitations/{participant_id}/delete")
async def confirm_delete_user(
    participant_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    try:
        info = await admin.delete_user_info(participant_id)
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
        return redirect("/admin-dashboard")
    return delete_user_page(participant_id, info)


@router.post("/admin-dashboard/invitations/{participant_id}/delete")
async def delete_user(
    participant_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    try:
        result = await admin.delete_user(participant_id)
        if result.succeeded:
            session.flash = success("Participant deleted.")
        else:
            session.flash = error(result.error or result.message or "Failed to delete participant.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect("/admin-dashboard")


@router.post("/admin-dashboard/invitations/{invitation_id}/remind")
async def remind(
    invitation_id: str,
    phone: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    if not phone:
        session.flash = error("No phone number on this record.")
        return redirect("/admin-dashboard")
    try:
        result = await admin.remind(phone)
        if result.ok:
            session.flash = success(result.message or "Reminder sent.")
        else:
            session.flash = error(result.message or result.error or "Failed to send reminder.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect("/admin-dashboard")


async def _set_completed(admin: AdminService, session: BrowserSession, invitation_id: str, completed: bool):
    try:
        result = await admin.mark_completed(invitation_id, completed)
        if result.succeeded:
            session.flash = success("Marked completed." if completed else "Marked not completed.")
        else:
            session.flash = error(result.error or result.message or "Failed to update invitation.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect("/admin-dashboard")


@router.post("/admin-dashboard/invitations/{invitation_id}/complete")
async def complete(
    invitation_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _set_completed(admin, session, invitation_id, True)


@router.post("/admin-dashboard/invitations/{invitation_id}/uncomplete")
async def uncomplete(
    invitation_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _set_completed(admin, session, invitation_id, False)


@router.post("/admin-dashboard/invitations/bulk")
async def bulk_complete(
    action: str = Form("complete"),
    ids: List[str] = Form([]),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    if not ids:
        session.flash = error("Select at least one record.")
        return redirect("/admin-dashboard")

    completed = action != "uncomplete"
    try:
        result = await admin.bulk_mark_completed(ids, completed)
        if result.succeeded:
            session.flash = success(result.message or f"Updated {len(ids)} records.")
        else:
            session.flash = error(result.error or result.message or "Bulk update failed.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect("/admin-dashboard")
