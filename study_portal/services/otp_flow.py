"""
OTP verification flow

sendCode -> enterCode -> done, with the alreadyUsed / carrierRejected
dialogs layered over the first two steps. Every handler takes the current
VerificationSession and returns the (possibly new) value.
"""
import re
from enum import Enum
from typing import Any, Dict, List, Optional

from study_portal.config import settings
from study_portal.core.timer import CountdownTimer, TimerFactory, default_timer_factory
from study_portal.logging_config import get_logger, mask_phone
from study_portal.services.api_client import ApiClient, ApiError
from study_portal.session import (
    MarkVerified,
    Notification,
    PHONE_DIGITS,
    VerificationSession,
    error,
    reduce,
    success,
)

logger = get_logger(__name__)

_DIGIT = re.compile(r"\d")

INVALID_PHONE = "Please enter a valid 10-digit US phone number."
SEND_FAILED = "We were unable to send the verification code. Please check your phone number and try again."
NETWORK_ERROR = "Network error: Please check your connection and try again."
RESEND_FAILED = "Unable to send a new code. Please try again in a few minutes."
NEW_CODE_SENT = "A new code has been sent to your phone."
INCOMPLETE_CODE = "Please enter all 6 digits."
WRONG_CODE = "That code didn't work. Try again or resend."
NO_LINK = "Could not retrieve survey link."
LINK_SENT = "Survey link sent successfully!"


class OtpStep(str, Enum):
    SEND_CODE = "sendCode"
    ENTER_CODE = "enterCode"
    DONE = "done"


class Dialog(str, Enum):
    ALREADY_USED = "alreadyUsed"
    CARRIER_REJECTED = "carrierRejected"


class OtpAttempt:
    """Digit buffer plus resend countdown for one sent code."""

    def __init__(self, length: int, seconds: int):
        self.digits: List[str] = [""] * length
        self.seconds_remaining = seconds
        self.can_resend = False

    @property
    def code(self) -> str:
        return "".join(self.digits)

    @property
    def is_complete(self) -> bool:
        return all(self.digits)

    def clear(self):
        self.digits = [""] * len(self.digits)


def format_time(seconds: int) -> str:
    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins:02d}:{secs:02d}"


class OtpVerificationFlow:

    def __init__(
        self,
        api: ApiClient,
        timer_factory: TimerFactory = default_timer_factory,
        code_length: int = settings.OTP_CODE_LENGTH,
        resend_seconds: int = settings.OTP_RESEND_SECONDS,
    ):
        self.api = api
        self.code_length = code_length
        self.resend_seconds = resend_seconds
        self._timer: CountdownTimer = timer_factory(self.tick)

        self.step = OtpStep.SEND_CODE
        self.dialog: Optional[Dialog] = None
        self.attempt: Optional[OtpAttempt] = None
        self.focus_index = 0
        self.loading = False

        self.phone_error = ""
        self.verification_error = ""
        self.resend_result = ""
        self.notification: Optional[Notification] = None

        self.assigned_link: Optional[str] = None
        # Set once check_otp accepted the code, even if the invitation then failed
        self.otp_consumed = False

    # -------------------------------------------
    # Internal helpers
    # -------------------------------------------

    def _begin(self, action: str) -> bool:
        if self.loading:
            logger.info("otp_action_ignored_while_loading", action=action)
            return False
        self.loading = True
        return True

    def _restart_countdown(self):
        self.attempt = OtpAttempt(self.code_length, self.resend_seconds)
        self.focus_index = 0
        self._timer.start()

    @property
    def timer_active(self) -> bool:
        return self._timer.active

    def tick(self) -> bool:
        """One countdown second. Returns False once the timer should stop."""
        attempt = self.attempt
        if self.step != OtpStep.ENTER_CODE or attempt is None or attempt.can_resend:
            return False

        attempt.seconds_remaining -= 1
        if attempt.seconds_remaining <= 0:
            attempt.seconds_remaining = 0
            attempt.can_resend = True
            logger.debug("otp_resend_available")
            return False
        return True

    def pop_notification(self) -> Optional[Notification]:
        note, self.notification = self.notification, None
        return note

    # -------------------------------------------
    # Step 1: send code
    # -------------------------------------------

    async def send_code(self, session: VerificationSession) -> VerificationSession:
        if self.step != OtpStep.SEND_CODE:
            return session

        self.phone_error = ""
        self.verification_error = ""
        self.resend_result = ""
        self.dialog = None

        if len(session.phone_number) != PHONE_DIGITS or not session.phone_number.isdigit():
            self.phone_error = INVALID_PHONE
            return session

        if not self._begin("send_code"):
            return session
        try:
            result = await self.api.start_otp(session.phone_number)
            if result.ok:
                self.step = OtpStep.ENTER_CODE
                self._restart_countdown()
                self.notification = success("Verification code sent successfully!")
                logger.info("otp_code_sent", phone=mask_phone(session.phone_number))
            else:
                self.phone_error = result.error or SEND_FAILED
                self.notification = error("Failed to send verification code. Please try again.")
        except ApiError as e:
            logger.warning("otp_start_failed", error=e.message, status=e.status)
            self.phone_error = NETWORK_ERROR
            self.notification = error(e.message or "Network error. Please try again.")
        finally:
            self.loading = False
        return session

    # -------------------------------------------
    # Step 2: enter code
    # -------------------------------------------

    async def resend_code(self, session: VerificationSession) -> VerificationSession:
        if self.step != OtpStep.ENTER_CODE or self.attempt is None or not self.attempt.can_resend:
            return session

        self.verification_error = ""
        if not self._begin("resend_code"):
            return session
        try:
            result = await self.api.start_otp(session.phone_number)
            if result.ok:
                self._restart_countdown()
                self.notification = success(NEW_CODE_SENT)
            else:
                self.verification_error = result.error or RESEND_FAILED
                self.notification = error("Failed to resend verification code")
        except ApiError as e:
            logger.warning("otp_resend_failed", error=e.message, status=e.status)
            self.notification = error(e.message or "Failed to resend verification code")
        finally:
            self.loading = False
        return session

    def enter_digit(self, index: int, value: str) -> int:
        """Store at most one digit in a cell; returns the cell to focus next."""
        if self.attempt is None or not 0 <= index < self.code_length:
            return self.focus_index

        found = _DIGIT.findall(value or "")
        digit = found[-1] if found else ""
        self.attempt.digits[index] = digit

        if digit and index < self.code_length - 1:
            self.focus_index = index + 1
        else:
            self.focus_index = index
        return self.focus_index

    def backspace(self, index: int) -> int:
        if self.attempt is None or not 0 <= index < self.code_length:
            return self.focus_index

        if not self.attempt.digits[index] and index > 0:
            self.focus_index = index - 1
        else:
            self.attempt.digits[index] = ""
            self.focus_index = index
        return self.focus_index

    def set_code(self, text: str):
        """Fill the cells from a whole typed or pasted code."""
        if self.attempt is None:
            return
        self.attempt.clear()
        for index, digit in enumerate(_DIGIT.findall(text or "")[: self.code_length]):
            self.attempt.digits[index] = digit
        filled = sum(1 for d in self.attempt.digits if d)
        self.focus_index = min(filled, self.code_length - 1)

    async def verify(self, session: VerificationSession) -> VerificationSession:
        if self.step != OtpStep.ENTER_CODE or self.attempt is None:
            return session

        if self.otp_consumed:
            return await self.retry_invitation(session)

        if not self.attempt.is_complete:
            self.verification_error = INCOMPLETE_CODE
            self.notification = error("Please enter all 6 digits of the verification code.")
            return session

        if not self._begin("verify"):
            return session
        try:
            result = await self.api.check_otp(
                session.phone_number, self.attempt.code, session.email or None
            )
            if result.verified:
                self.otp_consumed = True
                session = reduce(session, MarkVerified())
                await self._request_invitation(session)
            else:
                self.verification_error = WRONG_CODE
                self.notification = error("Invalid verification code. Please try again.")
                self.attempt.clear()
                self.focus_index = 0
        except ApiError as e:
            logger.warning("otp_check_failed", error=e.message, status=e.status)
            self.verification_error = f"Error: {e.message}"
            self.notification = error(e.message or "Verification failed. Please try again.")
        finally:
            self.loading = False
        return session

    async def retry_invitation(self, session: VerificationSession) -> VerificationSession:
        """The code was already accepted; ask for the survey link again without re-checking it."""
        if self.step != OtpStep.ENTER_CODE or not self.otp_consumed:
            return session
        if not self._begin("retry_invitation"):
            return session
        try:
            self.verification_error = ""
            await self._request_invitation(session)
        finally:
            self.loading = False
        return session

    async def _request_invitation(self, session: VerificationSession):
        try:
            invitation = await self.api.send_survey_invitation(session.phone_number)
        except ApiError as e:
            logger.warning("survey_invitation_failed", error=e.message, status=e.status)
            self.verification_error = f"Error: {e.message}"
            self.notification = error("Failed to get survey link. Please try again.")
            return

        if invitation.ok:
            self._finish(invitation.link_url or "")
        else:
            self.verification_error = invitation.error or NO_LINK
            self.notification = error("Could not retrieve survey link. Please try again.")

    def _finish(self, link: str):
        self._timer.cancel()
        self.step = OtpStep.DONE
        self.assigned_link = link
        self.verification_error = ""
        if link:
            self.notification = success("Verification successful! Your survey link is ready.")
        else:
            self.notification = success("Verification successful!")
        logger.info("otp_flow_done", link_assigned=bool(link))

    def cancel(self):
        if self.step != OtpStep.ENTER_CODE:
            return
        self._timer.cancel()
        self.step = OtpStep.SEND_CODE
        self.attempt = None
        self.focus_index = 0
        self.verification_error = ""
        self.phone_error = ""

    # -------------------------------------------
    # Dialogs
    # -------------------------------------------

    def open_dialog(self, dialog: Dialog):
        if self.step == OtpStep.DONE:
            return
        self.dialog = dialog
        self.resend_result = ""

    def close_dialog(self):
        self.dialog = None

    async def resend_link(self, session: VerificationSession) -> VerificationSession:
        """Already-used recovery: re-issue the existing link without running OTP."""
        self.resend_result = ""
        if not self._begin("resend_link"):
            return session
        try:
            invitation = await self.api.send_survey_invitation(session.phone_number)
            if invitation.ok:
                self.resend_result = invitation.message or LINK_SENT
                self.notification = success(LINK_SENT)
            else:
                self.resend_result = invitation.message or invitation.error or "Failed to resend survey link."
                self.notification = error("Failed to resend survey link")
            self.dialog = None
        except ApiError as e:
            self.resend_result = f"Server error: {e.message or 'Failed to resend link'}"
            self.notification = error("Failed to resend survey link")
        finally:
            self.loading = False
        return session

    # -------------------------------------------
    # Lifecycle
    # -------------------------------------------

    def dispose(self):
        self._timer.cancel()

    def snapshot(self) -> Dict[str, Any]:
        attempt = self.attempt
        return {
            "step": self.step.value,
            "dialog": self.dialog.value if self.dialog else None,
            "loading": self.loading,
            "secondsRemaining": attempt.seconds_remaining if attempt else self.resend_seconds,
            "canResend": attempt.can_resend if attempt else False,
            "timeLeft": format_time(attempt.seconds_remaining if attempt else self.resend_seconds),
            "focusIndex": self.focus_index,
            "otpConsumed": self.otp_consumed,
        }
