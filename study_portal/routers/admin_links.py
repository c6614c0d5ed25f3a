"""
Survey link inventory (/admin-ops)
"""
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import RedirectResponse

from study_portal.admin_pages import ops_page
from study_portal.deps import check_admin_error, get_browser_session, require_admin
from study_portal.logging_config import get_logger
from study_portal.services.admin_api import AdminService
from study_portal.services.api_client import ApiError
from study_portal.services.tables import DEFAULT_PER_PAGE, filter_links, paginate
from study_portal.session import error, success
from study_portal.storage import BrowserSession

logger = get_logger(__name__)

router = APIRouter()


def redirect(url: str = "/admin-ops") -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


@router.get("/admin-ops")
async def links_page(
    q: str = "",
    status: str = "",
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    rows = []
    load_error = ""
    try:
        rows = await admin.links(status=status or None)
    except ApiError as e:
        load_error = check_admin_error(session, e)

    page_rows = paginate(filter_links(rows, q), page, per_page)
    return ops_page(page_rows, q, status, session.pop_flash(), load_error)


@router.post("/admin-ops/links/{link_id}/update")
async def update_link(
    link_id: str,
    link: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    link = link.strip()
    if not link:
        session.flash = error("Link cannot be empty.")
        return redirect()
    try:
        result = await admin.update_link(link_id, link)
        if result.succeeded:
            session.flash = success("Link updated.")
        else:
            session.flash = error(result.error or result.message or "Failed to update link.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect()


@router.post("/admin-ops/links/{link_id}/delete")
async def delete_link(
    link_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    try:
        result = await admin.delete_link(link_id)
        if result.succeeded:
            session.flash = success("Link deleted.")
        else:
            session.flash = error(result.error or result.message or "Failed to delete link.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect()


@router.post("/admin-ops/links/upload")
async def upload_links(
    file: UploadFile = File(...),
    batch_label: str = Form(""),
    uploaded_by: str = Form(""),
    notes: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    content = await file.read()
    if not content:
        session.flash = error("Please choose a CSV file to upload.")
        return redirect()
    try:
        result = await admin.upload_links(file.filename or "links.csv", content, batch_label, uploaded_by, notes)
        if result.get("success"):
            session.flash = success(f"Uploaded {result.get('inserted', 0)} links.")
        else:
            session.flash = error(result.get("error") or result.get("message") or "Upload failed.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect()
