"""
Server-rendered participant pages.

Plain f-string HTML; every value that came from a user or the backend
goes through esc().
"""
from html import escape
from typing import Optional

from fastapi.responses import HTMLResponse

from study_portal.config import settings
from study_portal.services.otp_flow import Dialog, OtpStep, OtpVerificationFlow, format_time
from study_portal.services.screening_flow import QUESTIONS, ScreeningFlow, ScreeningStep
from study_portal.session import Notification, VerificationSession, format_phone


def esc(value) -> str:
    return escape("" if value is None else str(value), quote=True)


def is_web_url(value: str) -> bool:
    """Only http(s) URLs are ever put into an href."""
    return (value or "").strip().lower().startswith(("http://", "https://"))


STYLE = """
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; background: #eef2ff; margin: 0; color: #1f2937; }
.wrap { max-width: 640px; margin: 0 auto; padding: 2rem 1rem; }
.wide { max-width: 1100px; }
.card { background: white; border-radius: 1rem; box-shadow: 0 4px 6px -1px rgba(0,0,0,0.1); padding: 1.5rem; margin-bottom: 1.5rem; }
h1, h2, h3 { margin-top: 0; }
.btn { background: #1d4ed8; color: white; border: none; padding: 0.6rem 1.2rem; border-radius: 0.5rem; font-weight: 600; cursor: pointer; }
.btn:disabled { background: #9ca3af; cursor: not-allowed; }
.btn.secondary { background: #e5e7eb; color: #111827; }
.btn.danger { background: #b91c1c; }
.btn.small { padding: 0.3rem 0.6rem; font-size: 0.8rem; }
.error { background: #fef2f2; border-left: 4px solid #ef4444; padding: 0.75rem; color: #b91c1c; }
.note { padding: 0.75rem 1rem; border-radius: 0.5rem; margin-bottom: 1rem; }
.note.success { background: #f0fdf4; border-left: 4px solid #22c55e; color: #15803d; }
.note.error { background: #fef2f2; border-left: 4px solid #ef4444; color: #b91c1c; }
.note.info { background: #eff6ff; border-left: 4px solid #3b82f6; color: #1d4ed8; }
.dialog { border: 2px solid #1d4ed8; }
.digits input { width: 2.5rem; height: 3rem; text-align: center; font-size: 1.5rem; margin-right: 0.25rem; }
label { display: block; margin: 0.75rem 0 0.25rem; font-weight: 500; }
input[type=text], input[type=tel], input[type=email], input[type=password], input[type=number], select { padding: 0.5rem; border: 1px solid #d1d5db; border-radius: 0.4rem; }
table { width: 100%; border-collapse: collapse; font-size: 0.9rem; }
th, td { text-align: left; padding: 0.5rem; border-bottom: 1px solid #e5e7eb; vertical-align: top; }
nav a { margin-right: 1rem; }
.inline { display: inline; }
.stats { display: flex; gap: 1rem; }
.stat { flex: 1; text-align: center; }
.stat b { display: block; font-size: 1.8rem; }
"""


def render_notification(note: Optional[Notification]) -> str:
    if note is None:
        return ""
    return f'<div class="note {esc(note.kind)}" role="status">{esc(note.message)}</div>'


def render_error(message: str) -> str:
    return f'<div class="error">{esc(message)}</div>' if message else ""


def render_resend_result(message: str) -> str:
    return f'<div class="note info">{esc(message)}</div>' if message else ""


def render_page(
    title: str,
    body: str,
    notification: Optional[Notification] = None,
    wide: bool = False,
    status_code: int = 200,
) -> HTMLResponse:
    html = f"""<!DOCTYPE html>
<html>
<head>
    <title>{esc(title)} | {esc(settings.APP_NAME)}</title>
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>{STYLE}</style>
</head>
<body>
    <div class="wrap{' wide' if wide else ''}">
        {render_notification(notification)}
        {body}
    </div>
</body>
</html>"""
    return HTMLResponse(html, status_code=status_code)


def support_line() -> str:
    line = f"call {esc(settings.SUPPORT_PHONE)}"
    if settings.SUPPORT_EMAIL:
        line += f' or email <a href="mailto:{esc(settings.SUPPORT_EMAIL)}">{esc(settings.SUPPORT_EMAIL)}</a>'
    return line


# -------------------------------------------
# Landing
# -------------------------------------------

def landing_page(error_message: str = "") -> HTMLResponse:
    body = f"""
    <div class="card">
        <h1>Welcome to Our Research Study</h1>
        <p>Exploring AI in Healthcare Decision Making</p>
        <p>We are conducting an academic research study on how individuals use generative AI tools
        to seek and explore health-related information.</p>
    </div>
    <div class="card">
        <h2>How It Works</h2>
        <ol>
            <li><b>Complete Eligibility Form</b>: a short questionnaire to determine if you qualify</li>
            <li><b>Verify Your Number</b>: receive a one-time verification code via SMS</li>
            <li><b>Take the Survey</b>: receive your unique survey link via SMS or email</li>
        </ol>
    </div>
    <div class="card">
        <h2>Consent to Receive Messages</h2>
        <p>By submitting your phone number you agree to receive SMS messages from the study for
        a one-time verification code and your survey link. Your number will not be used for marketing
        or shared. Message and data rates may apply. Reply STOP to opt out.</p>
        {render_error(error_message)}
        <form method="post" action="/start">
            <label><input type="checkbox" name="consent" value="yes"> I agree to receive these messages</label>
            <p><button class="btn" type="submit">Get Started</button></p>
        </form>
    </div>
    """
    return render_page("Welcome", body)


# -------------------------------------------
# Survey: screening + contact
# -------------------------------------------

def _question(key: str, text: str, answer: str) -> str:
    options = "".join(
        f'<label class="inline"><input type="radio" name="{key}" value="{value}"'
        f'{" checked" if answer == value else ""}> {value.capitalize()}</label> '
        for value in ("yes", "no")
    )
    return f"<fieldset><legend>{esc(text)}</legend>{options}</fieldset>"


def _screening_step(flow: ScreeningFlow) -> str:
    questions = "".join(_question(key, text, flow.answers.get(key, "")) for key, text in QUESTIONS.items())
    return f"""
    <div class="card">
        <h2>Eligibility Screening</h2>
        <form method="post" action="/survey/screening">
            {questions}
            {render_error(flow.error_message)}
            <p><button class="btn" type="submit">Continue</button></p>
        </form>
    </div>
    """


def _contact_step(flow: ScreeningFlow, session: VerificationSession) -> str:
    disabled = " disabled" if flow.loading else ""
    return f"""
    <div class="card">
        <h2>Contact Information</h2>
        <div class="note success">You are eligible to participate in our study. Please enter your
        10-digit mobile phone number and, optionally, your email address.</div>
        <form method="post" action="/survey/contact">
            <label for="phone">Mobile Phone Number *</label>
            +1 <input id="phone" name="phone" type="tel" inputmode="numeric" maxlength="14"
                placeholder="(555) 555-5555" value="{esc(session.phone_number)}">
            <label for="email">Email Address (optional)</label>
            <input id="email" name="email" type="email" placeholder="your@email.com" value="{esc(session.email)}">
            <p><small>If you haven't received our email, kindly check your spam or junk folder.</small></p>
            {render_error(flow.error_message)}
            <p>
                <button class="btn" type="submit"{disabled}>Continue</button>
            </p>
        </form>
        <form method="post" action="/survey/back"><button class="btn secondary" type="submit">Back</button></form>
    </div>
    """


def _confirm_step(session: VerificationSession) -> str:
    email = esc(session.email) if session.email else "<i>not provided</i>"
    return f"""
    <div class="card dialog">
        <h2>Please Review Your Information</h2>
        <p>Phone: <b>{esc(format_phone(session.phone_number))}</b></p>
        <p>Email: <b>{email}</b></p>
        <form class="inline" method="post" action="/survey/confirm"><button class="btn" type="submit">Confirm</button></form>
        <form class="inline" method="post" action="/survey/edit"><button class="btn secondary" type="submit">Edit</button></form>
    </div>
    """


def _ineligible_notice() -> str:
    return f"""
    <div class="card dialog">
        <h2>Not Eligible</h2>
        <p>Thank you for your interest. Unfortunately, you do not meet the eligibility criteria for this survey.
        For questions, {support_line()}.</p>
        <form method="post" action="/survey/reset"><button class="btn danger" type="submit">Close</button></form>
    </div>
    """


def _enrollment_closed_notice() -> str:
    return f"""
    <div class="card dialog">
        <h2>Enrollment Currently Full</h2>
        <p>Thank you for your interest. Enrollment for this study is currently closed.
        For questions, {support_line()}.</p>
        <p><a href="/">Return to home</a></p>
    </div>
    """


def _carrier_rejected_dialog(action: str) -> str:
    return f"""
    <div class="card dialog">
        <h2>Invalid Phone Number Type</h2>
        <p class="error">We can only accept mobile phone numbers from standard cellular carriers
        (such as Verizon, T-Mobile, AT&amp;T, etc.). VOIP and landline numbers are not supported.</p>
        <form method="post" action="{action}"><button class="btn danger" type="submit">Try Different Number</button></form>
    </div>
    """


def _already_used_dialog(info: str, had_link: bool, resend_action: str, close_action: str) -> str:
    if info:
        title = "Link Sent Successfully" if had_link else "Already Verified"
        return f"""
        <div class="card dialog">
            <h2>{title}</h2>
            <div class="note info">{esc(info)}</div>
            <form method="post" action="{close_action}"><button class="btn" type="submit">Close</button></form>
        </div>
        """
    return f"""
    <div class="card dialog">
        <h2>Already Verified!</h2>
        <p>This phone number has already been verified. We can resend your survey link.</p>
        <form class="inline" method="post" action="{resend_action}"><button class="btn" type="submit">Resend Survey Link</button></form>
        <form class="inline" method="post" action="{close_action}"><button class="btn secondary" type="submit">Close</button></form>
    </div>
    """


def survey_page(flow: ScreeningFlow, session: VerificationSession) -> HTMLResponse:
    if flow.step == ScreeningStep.ENROLLMENT_CLOSED:
        return render_page("Enrollment Full", _enrollment_closed_notice())
    if flow.step == ScreeningStep.INELIGIBLE:
        return render_page("Not Eligible", _ineligible_notice())

    if flow.dialog == Dialog.CARRIER_REJECTED:
        body = _carrier_rejected_dialog("/survey/carrier-rejected/close")
    elif flow.dialog == Dialog.ALREADY_USED:
        body = _already_used_dialog(
            flow.used_resend_info,
            flow.resend_had_link,
            "/survey/already-used/resend",
            "/survey/already-used/close",
        )
    elif flow.step == ScreeningStep.CONFIRM_CONTACT:
        body = _confirm_step(session)
    elif flow.step == ScreeningStep.CONTACT:
        body = _contact_step(flow, session)
    else:
        body = _screening_step(flow)

    return render_page("Eligibility Survey", body)


# -------------------------------------------
# Verification
# -------------------------------------------

COUNTDOWN_SCRIPT = """
<script>
(function () {
    var timeLeft = document.getElementById('time-left');
    var resend = document.getElementById('resend-code');
    if (!timeLeft) { return; }
    var poll = setInterval(function () {
        fetch('/verify/state', {credentials: 'same-origin'})
            .then(function (r) { return r.json(); })
            .then(function (s) {
                timeLeft.textContent = s.timeLeft;
                if (s.canResend || s.step !== 'enterCode') {
                    if (resend) { resend.disabled = !s.canResend; }
                    clearInterval(poll);
                }
            });
    }, 1000);
    document.querySelectorAll('.digits input').forEach(function (input, i, all) {
        input.addEventListener('input', function () {
            if (input.value && i < all.length - 1) { all[i + 1].focus(); }
        });
        input.addEventListener('keydown', function (e) {
            if (e.key === 'Backspace' && !input.value && i > 0) { all[i - 1].focus(); }
        });
    });
})();
</script>
"""


def _send_code_step(flow: OtpVerificationFlow, session: VerificationSession) -> str:
    disabled = " disabled" if flow.loading else ""
    return f"""
    <div class="card">
        <h2>Phone Verification</h2>
        <p>We'll send a 6-digit code to verify your phone number.</p>
        <p>Phone: <b>{esc(format_phone(session.phone_number))}</b></p>
        {render_error(flow.phone_error)}
        <form method="post" action="/verify/send"><button class="btn" type="submit"{disabled}>Send Code</button></form>
        <div>
            <form class="inline" method="post" action="/verify/back"><button class="btn secondary small" type="submit">Change number</button></form>
            <form class="inline" method="post" action="/verify/already-used"><button class="btn secondary small" type="submit">Already verified? Resend my link</button></form>
        </div>
        {render_resend_result(flow.resend_result)}
    </div>
    """


def _link_retry_step(flow: OtpVerificationFlow, session: VerificationSession) -> str:
    disabled = " disabled" if flow.loading else ""
    return f"""
    <div class="card">
        <h2>Phone Verification</h2>
        <div class="note success">Your phone number {esc(format_phone(session.phone_number))} is verified.</div>
        <p>We could not get your survey link yet. You do not need a new code.</p>
        {render_error(flow.verification_error)}
        <form method="post" action="/verify/retry-link">
            <button id="retry-link" class="btn" type="submit"{disabled}>Get my survey link</button>
        </form>
        <p>If this keeps failing, {support_line()}.</p>
    </div>
    """


def _enter_code_step(flow: OtpVerificationFlow, session: VerificationSession) -> str:
    if flow.otp_consumed:
        return _link_retry_step(flow, session)
    attempt = flow.attempt
    digits = attempt.digits if attempt else [""] * flow.code_length
    cells = "".join(
        f'<input name="d{i}" type="text" inputmode="numeric" maxlength="1" value="{esc(d)}"'
        f'{" autofocus" if i == flow.focus_index else ""} aria-label="Digit {i + 1}">'
        for i, d in enumerate(digits)
    )
    seconds = attempt.seconds_remaining if attempt else flow.resend_seconds
    can_resend = bool(attempt and attempt.can_resend)
    disabled = " disabled" if flow.loading else ""
    resend_disabled = "" if can_resend else " disabled"
    return f"""
    <div class="card">
        <h2>Phone Verification</h2>
        <p>Enter the 6-digit code we sent to <b>{esc(format_phone(session.phone_number))}</b>.</p>
        <form method="post" action="/verify/code">
            <div class="digits">{cells}</div>
            {render_error(flow.verification_error)}
            <p><button class="btn" type="submit"{disabled}>Verify</button></p>
        </form>
        <p>Resend available in <span id="time-left">{format_time(seconds)}</span></p>
        <form class="inline" method="post" action="/verify/resend">
            <button id="resend-code" class="btn secondary" type="submit"{resend_disabled}>Resend Code</button>
        </form>
        <form class="inline" method="post" action="/verify/cancel"><button class="btn secondary" type="submit">Cancel</button></form>
    </div>
    {COUNTDOWN_SCRIPT}
    """


def _done_step(flow: OtpVerificationFlow) -> str:
    if flow.assigned_link:
        link = esc(flow.assigned_link)
        if is_web_url(flow.assigned_link):
            shown = f'<a id="survey-link" href="{link}" target="_blank" rel="noopener">{link}</a>'
        else:
            shown = f'<code id="survey-link-text">{link}</code>'
        result = f"""
        <p>Your unique survey link:</p>
        <p>{shown}</p>
        <p>We have also sent this link to your phone.</p>
        """
    else:
        result = f"""
        <div class="note info">You're verified, but no survey link is available right now.
        A link will be assigned to you shortly. For help, {support_line()}.</div>
        """
    return f"""
    <div class="card">
        <h2>Verification Complete</h2>
        {result}
        <p><a href="/">Return to home</a></p>
    </div>
    """


def verify_page(
    flow: OtpVerificationFlow,
    session: VerificationSession,
    notification: Optional[Notification] = None,
) -> HTMLResponse:
    if flow.step == OtpStep.DONE:
        return render_page("Verification Complete", _done_step(flow), notification)

    if flow.dialog == Dialog.ALREADY_USED:
        body = _already_used_dialog(
            flow.resend_result, False, "/verify/resend-link", "/verify/dialog/close"
        )
    elif flow.dialog == Dialog.CARRIER_REJECTED:
        body = _carrier_rejected_dialog("/verify/dialog/close")
    elif flow.step == OtpStep.ENTER_CODE:
        body = _enter_code_step(flow, session)
    else:
        body = _send_code_step(flow, session)

    return render_page("Phone Verification", body, notification)
