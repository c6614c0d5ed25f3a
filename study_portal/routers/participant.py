"""
Participant pages: landing, eligibility survey, phone verification.

Every form post redirects back to its page (POST-redirect-GET); flow state
lives in the BrowserSession between requests.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse

from study_portal.config import settings
from study_portal.deps import get_browser_session
from study_portal.logging_config import get_logger
from study_portal.pages import landing_page, survey_page, verify_page
from study_portal.services.otp_flow import Dialog
from study_portal.services.screening_flow import ScreeningStep
from study_portal.storage import BrowserSession

logger = get_logger(__name__)

router = APIRouter()


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


@router.get("/health")
async def health():
    return {"status": "ok", "service": settings.APP_NAME, "version": settings.APP_VERSION}


# ---------------------------------------------
# Landing
# ---------------------------------------------

@router.get("/")
async def landing(session: BrowserSession = Depends(get_browser_session)):
    session.reset_participant()
    return landing_page()


@router.post("/start")
async def start(consent: str = Form(""), session: BrowserSession = Depends(get_browser_session)):
    if not consent:
        return landing_page("Please agree to receive messages to continue.")
    session.has_consented = True
    return redirect("/survey")


# ---------------------------------------------
# Survey
# ---------------------------------------------

@router.get("/survey")
async def survey(session: BrowserSession = Depends(get_browser_session)):
    if not session.has_consented:
        return redirect("/")

    flow = session.screening
    if flow.step == ScreeningStep.VERIFY:
        return redirect("/verify")

    await flow.check_enrollment()
    return survey_page(flow, session.verification)


@router.post("/survey/screening")
async def submit_screening(
    used_ai: str = Form(""),
    lives_in_us: str = Form(""),
    is_adult: str = Form(""),
    session: BrowserSession = Depends(get_browser_session),
):
    flow = session.screening
    flow.set_answers(used_ai=used_ai, lives_in_us=lives_in_us, is_adult=is_adult)
    flow.submit_screening()
    return redirect("/survey")


@router.post("/survey/contact")
async def submit_contact(
    phone: str = Form(""),
    email: str = Form(""),
    session: BrowserSession = Depends(get_browser_session),
):
    session.verification = await session.screening.submit_contact(session.verification, phone, email)
    return redirect("/survey")


@router.post("/survey/back")
async def back_to_screening(session: BrowserSession = Depends(get_browser_session)):
    session.screening.back()
    return redirect("/survey")


@router.post("/survey/edit")
async def edit_contact(session: BrowserSession = Depends(get_browser_session)):
    session.screening.edit_contact()
    return redirect("/survey")


@router.post("/survey/confirm")
async def confirm_contact(session: BrowserSession = Depends(get_browser_session)):
    flow = session.screening
    session.verification = flow.confirm_contact(session.verification)
    if flow.step != ScreeningStep.VERIFY:
        return redirect("/survey")

    # A fresh verification attempt for the confirmed number
    session.discard_otp_flow()
    return redirect("/verify")


@router.post("/survey/reset")
async def close_ineligible(session: BrowserSession = Depends(get_browser_session)):
    session.verification = session.screening.close_ineligible(session.verification)
    return redirect("/survey")


@router.post("/survey/carrier-rejected/close")
async def close_carrier_rejected(session: BrowserSession = Depends(get_browser_session)):
    session.verification = session.screening.close_carrier_rejected(session.verification)
    return redirect("/survey")


@router.post("/survey/already-used/resend")
async def resend_existing_link(session: BrowserSession = Depends(get_browser_session)):
    session.verification = await session.screening.resend_existing_link(session.verification)
    return redirect("/survey")


@router.post("/survey/already-used/close")
async def close_already_used(session: BrowserSession = Depends(get_browser_session)):
    session.verification = session.screening.close_already_used(session.verification)
    return redirect("/survey")


# ---------------------------------------------
# Verification
# ---------------------------------------------

def verify_gate(session: BrowserSession) -> Optional[RedirectResponse]:
    """Verification opens only for a confirmed number; otherwise send the participant back."""
    if not session.verification.has_phone:
        return redirect("/")
    if session.screening.step != ScreeningStep.VERIFY:
        return redirect("/survey")
    return None


@router.get("/verify")
async def verify(session: BrowserSession = Depends(get_browser_session)):
    blocked = verify_gate(session)
    if blocked is not None:
        return blocked
    flow = session.otp_flow()
    return verify_page(flow, session.verification, flow.pop_notification())


@router.get("/verify/state")
async def verify_state(session: BrowserSession = Depends(get_browser_session)):
    """Countdown poll used by the verification page."""
    if session.otp is None:
        return JSONResponse({"step": None}, status_code=404)
    return session.otp.snapshot()


@router.post("/verify/send")
async def send_code(session: BrowserSession = Depends(get_browser_session)):
    blocked = verify_gate(session)
    if blocked is not None:
        return blocked
    session.verification = await session.otp_flow().send_code(session.verification)
    return redirect("/verify")


@router.post("/verify/resend")
async def resend_code(session: BrowserSession = Depends(get_browser_session)):
    if session.otp is not None:
        session.verification = await session.otp.resend_code(session.verification)
    return redirect("/verify")


@router.post("/verify/code")
async def submit_code(request: Request, session: BrowserSession = Depends(get_browser_session)):
    flow = session.otp
    if flow is None:
        return redirect("/verify")

    form = await request.form()
    if form.get("code"):
        flow.set_code(str(form["code"]))
    else:
        for index in range(flow.code_length):
            flow.enter_digit(index, str(form.get(f"d{index}", "")))

    session.verification = await flow.verify(session.verification)
    return redirect("/verify")


@router.post("/verify/retry-link")
async def retry_link(session: BrowserSession = Depends(get_browser_session)):
    if session.otp is not None:
        session.verification = await session.otp.retry_invitation(session.verification)
    return redirect("/verify")


@router.post("/verify/cancel")
async def cancel_code(session: BrowserSession = Depends(get_browser_session)):
    if session.otp is not None:
        session.otp.cancel()
    return redirect("/verify")


@router.post("/verify/back")
async def back_to_contact(session: BrowserSession = Depends(get_browser_session)):
    session.discard_otp_flow()
    session.screening.return_to_contact()
    return redirect("/survey")


@router.post("/verify/already-used")
async def open_already_used(session: BrowserSession = Depends(get_browser_session)):
    blocked = verify_gate(session)
    if blocked is not None:
        return blocked
    session.otp_flow().open_dialog(Dialog.ALREADY_USED)
    return redirect("/verify")


@router.post("/verify/resend-link")
async def resend_link(session: BrowserSession = Depends(get_browser_session)):
    if session.otp is not None and session.verification.has_phone:
        session.verification = await session.otp.resend_link(session.verification)
    return redirect("/verify")


@router.post("/verify/dialog/close")
async def close_dialog(session: BrowserSession = Depends(get_browser_session)):
    if session.otp is not None:
        session.otp.close_dialog()
    return redirect("/verify")
