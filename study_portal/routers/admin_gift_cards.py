"""
Gift-card incentives (/admin-gift-cards)

Allocation rules live in the backend; these routes only forward the
admin's choices and re-render from fresh data.
"""
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from study_portal.admin_pages import gift_card_logs_page, gift_cards_page
from study_portal.deps import check_admin_error, get_browser_session, require_admin
from study_portal.logging_config import get_logger
from study_portal.schemas import ActionResult, AddGiftCardIn, PageOut, PoolStatus, SendGiftCardIn
from study_portal.services.admin_api import AdminService
from study_portal.services.api_client import ApiError
from study_portal.session import error, success
from study_portal.storage import BrowserSession

logger = get_logger(__name__)

router = APIRouter()


def redirect(url: str = "/admin-gift-cards") -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


async def _run(
    session: BrowserSession,
    call: Callable[[], Awaitable[ActionResult]],
    done: str,
    failed: str,
) -> RedirectResponse:
    """Run one mutation, record the outcome as a flash and go back to the list."""
    try:
        result = await call()
        if result.succeeded:
            session.flash = success(result.message or done)
        else:
            session.flash = error(result.error or result.message or failed)
    except ApiError as e:
        session.flash = error(check_admin_error(session, e) or failed)
    return redirect()


@router.get("/admin-gift-cards")
async def gift_cards(
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    pool = PoolStatus()
    eligible = []
    sent = PageOut()
    available = PageOut()
    try:
        pool = await admin.pool_status()
        eligible = await admin.eligible_participants()
        sent = await admin.sent_gift_cards(size=50)
        available = await admin.available_gift_cards(size=50)
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return gift_cards_page(pool, eligible, sent, available, session.pop_flash())


@router.post("/admin-gift-cards/pool/add")
async def add_gift_card(
    card_code: str = Form(""),
    card_type: str = Form("AMAZON"),
    card_value: str = Form(""),
    redemption_url: str = Form(""),
    batch_label: str = Form(""),
    notes: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    try:
        card = AddGiftCardIn(
            card_code=card_code.strip(),
            card_type=card_type,
            card_value=card_value,
            redemption_url=redemption_url or None,
            batch_label=batch_label or None,
            notes=notes or None,
        )
    except ValidationError:
        session.flash = error("Card code and a positive value are required.")
        return redirect()

    return await _run(session, lambda: admin.add_gift_card(card), "Gift card added to pool.", "Failed to add gift card.")


@router.post("/admin-gift-cards/pool/upload")
async def upload_gift_cards(
    file: UploadFile = File(...),
    batch_label: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    content = await file.read()
    if not content or not batch_label.strip():
        session.flash = error("Please choose a file and enter a batch label.")
        return redirect()
    try:
        result = await admin.upload_gift_cards(file.filename or "cards.csv", content, batch_label.strip())
        if result.get("error"):
            session.flash = error(result["error"])
        else:
            session.flash = success(result.get("message") or "Gift cards uploaded.")
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
    return redirect()


@router.post("/admin-gift-cards/pool/{pool_id}/delete")
async def delete_pool_card(
    pool_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _run(session, lambda: admin.delete_pool_card(pool_id), "Pool card deleted.", "Failed to delete pool card.")


@router.post("/admin-gift-cards/send/{participant_id}")
async def send_gift_card(
    participant_id: str,
    invitation_id: str = Form(""),
    pool_id: str = Form(""),
    delivery_method: str = Form("BOTH"),
    notes: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    if invitation_id:
        try:
            if await admin.has_gift_card(invitation_id):
                session.flash = error("This participant already has a gift card.")
                return redirect()
        except ApiError as e:
            session.flash = error(check_admin_error(session, e))
            return redirect()

    request = SendGiftCardIn(
        invitation_id=invitation_id or None,
        pool_id=pool_id or None,
        delivery_method=delivery_method,
        notes=notes or None,
    )
    logger.info("gift_card_send_requested", participant_id=participant_id, from_pool=bool(pool_id))
    return await _run(
        session,
        lambda: admin.send_gift_card(participant_id, request),
        "Gift card sent.",
        "Failed to send gift card.",
    )


@router.post("/admin-gift-cards/{gift_card_id}/resend")
async def resend_gift_card(
    gift_card_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _run(session, lambda: admin.resend_gift_card(gift_card_id), "Gift card resent.", "Failed to resend gift card.")


@router.post("/admin-gift-cards/{gift_card_id}/unsend")
async def unsend_gift_card(
    gift_card_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _run(
        session,
        lambda: admin.unsend_gift_card(gift_card_id),
        "Gift card returned to the pool.",
        "Failed to unsend gift card.",
    )


@router.post("/admin-gift-cards/{gift_card_id}/notes")
async def gift_card_notes(
    gift_card_id: str,
    notes: str = Form(""),
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _run(session, lambda: admin.add_gift_card_notes(gift_card_id, notes), "Notes saved.", "Failed to save notes.")


@router.post("/admin-gift-cards/{gift_card_id}/delete")
async def delete_gift_card(
    gift_card_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    return await _run(session, lambda: admin.delete_gift_card(gift_card_id), "Gift card deleted.", "Failed to delete gift card.")


@router.get("/admin-gift-cards/{gift_card_id}/logs")
async def gift_card_logs(
    gift_card_id: str,
    admin: AdminService = Depends(require_admin),
    session: BrowserSession = Depends(get_browser_session),
):
    try:
        logs = await admin.gift_card_logs(gift_card_id)
    except ApiError as e:
        session.flash = error(check_admin_error(session, e))
        return redirect()
    return gift_card_logs_page(gift_card_id, logs)
