"""
Eligibility screening and contact details, ending in the hand-off to /verify
"""
import re
from enum import Enum
from typing import Dict, Optional

from study_portal.logging_config import get_logger, mask_phone
from study_portal.services.api_client import ApiClient, ApiError
from study_portal.services.otp_flow import Dialog
from study_portal.session import (
    MarkVerified,
    PHONE_DIGITS,
    Reset,
    SetEmail,
    SetPhone,
    VerificationSession,
    reduce,
)

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

QUESTIONS = {
    "used_ai": "Have you used generative AI for health-related queries?",
    "lives_in_us": "Do you live in the US?",
    "is_adult": "Are you 18 years of age or older?",
}

ANSWERS = ("yes", "no")


class ScreeningStep(str, Enum):
    SCREENING = "screening"
    CONTACT = "contact"
    CONFIRM_CONTACT = "confirmContact"
    VERIFY = "verify"
    INELIGIBLE = "ineligible"
    ENROLLMENT_CLOSED = "enrollmentClosed"


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.search(email))


class ScreeningFlow:

    def __init__(self, api: ApiClient):
        self.api = api
        self.step = ScreeningStep.SCREENING
        self.answers: Dict[str, str] = {key: "" for key in QUESTIONS}
        self.dialog: Optional[Dialog] = None
        self.error_message = ""
        self.loading = False
        self.enrollment_checked = False

        # Already-used dialog
        self.used_resend_info = ""
        self.resend_had_link = False

    def _begin(self) -> bool:
        if self.loading:
            return False
        self.loading = True
        return True

    async def check_enrollment(self):
        """Block the survey when enrollment is full or switched off; errors fail open."""
        if self.enrollment_checked:
            return
        try:
            status = await self.api.get_enrollment_status()
            if status.is_blocked:
                logger.info("enrollment_blocked", full=status.full, active=status.enrollment_active)
                self.step = ScreeningStep.ENROLLMENT_CLOSED
        except ApiError as e:
            logger.warning("enrollment_status_unavailable", error=e.message, status=e.status)
        self.enrollment_checked = True

    # -------------------------------------------
    # Step 1: screening questions
    # -------------------------------------------

    def set_answers(self, **answers: str):
        for key, value in answers.items():
            if key in self.answers:
                value = (value or "").strip().lower()
                self.answers[key] = value if value in ANSWERS else ""

    def submit_screening(self):
        if self.step != ScreeningStep.SCREENING:
            return
        self.error_message = ""

        if not all(self.answers.values()):
            self.error_message = "Please answer all questions"
            return

        if "no" in self.answers.values():
            self.step = ScreeningStep.INELIGIBLE
            return

        self.step = ScreeningStep.CONTACT

    def close_ineligible(self, session: VerificationSession) -> VerificationSession:
        return self.reset(session)

    def reset(self, session: VerificationSession) -> VerificationSession:
        self.answers = {key: "" for key in QUESTIONS}
        self.step = ScreeningStep.SCREENING
        self.dialog = None
        self.error_message = ""
        self.used_resend_info = ""
        self.resend_had_link = False
        return reduce(session, Reset())

    # -------------------------------------------
    # Step 2: contact details
    # -------------------------------------------

    async def submit_contact(self, session: VerificationSession, phone: str, email: str) -> VerificationSession:
        if self.step != ScreeningStep.CONTACT:
            return session

        self.error_message = ""
        session = reduce(session, SetPhone(phone))
        session = reduce(session, SetEmail(email))

        if not session.phone_number:
            self.error_message = "Phone number is required"
            return session
        if len(session.phone_number) != PHONE_DIGITS:
            self.error_message = "Please enter a complete 10-digit phone number"
            return session
        if session.email and not is_valid_email(session.email):
            self.error_message = "Please enter a valid email address"
            return session

        if not self._begin():
            return session
        try:
            try:
                validation = await self.api.validate_phone(session.phone_number)
            except ApiError as e:
                logger.warning("phone_validation_failed", error=e.message, status=e.status)
                self.error_message = "Unable to validate phone number. Please try again."
                return session

            if not validation.valid:
                logger.info("phone_rejected_by_carrier_check", phone=mask_phone(session.phone_number))
                self.dialog = Dialog.CARRIER_REJECTED
                return session

            # Lookup is an optimization, not a gate
            try:
                lookup = await self.api.check_verification(session.phone_number)
                if lookup.verified:
                    self.dialog = Dialog.ALREADY_USED
                    self.used_resend_info = ""
                    return session
            except ApiError as e:
                logger.info("verification_lookup_skipped", error=e.message, status=e.status)

            self.step = ScreeningStep.CONFIRM_CONTACT
        finally:
            self.loading = False
        return session

    def back(self):
        if self.step == ScreeningStep.CONTACT:
            self.error_message = ""
            self.step = ScreeningStep.SCREENING

    def edit_contact(self):
        if self.step == ScreeningStep.CONFIRM_CONTACT:
            self.step = ScreeningStep.CONTACT

    def confirm_contact(self, session: VerificationSession) -> VerificationSession:
        if self.step != ScreeningStep.CONFIRM_CONTACT:
            return session
        self.step = ScreeningStep.VERIFY
        return reduce(session, MarkVerified(False))

    def return_to_contact(self):
        """Back button on the verification page."""
        if self.step == ScreeningStep.VERIFY:
            self.step = ScreeningStep.CONTACT

    # -------------------------------------------
    # Dialogs
    # -------------------------------------------

    def close_carrier_rejected(self, session: VerificationSession) -> VerificationSession:
        self.dialog = None
        session = reduce(session, SetPhone(""))
        return reduce(session, SetEmail(""))

    async def resend_existing_link(self, session: VerificationSession) -> VerificationSession:
        if self.dialog != Dialog.ALREADY_USED:
            return session

        self.used_resend_info = ""
        self.resend_had_link = False
        if len(session.phone_number) != PHONE_DIGITS:
            self.used_resend_info = "Error: Invalid phone number. Please try again."
            return session

        if not self._begin():
            return session
        try:
            result = await self.api.send_survey_invitation(session.phone_number)
            if result.ok and result.link_url:
                self.resend_had_link = True
                self.used_resend_info = result.message or "Survey link sent successfully!"
            elif result.ok:
                self.used_resend_info = result.message or "Verified! A survey link will be assigned shortly."
            else:
                self.used_resend_info = result.message or result.error or "Failed to resend survey link."
        except ApiError as e:
            self.used_resend_info = f"Server error: {e.message or 'Failed to resend link'}"
        finally:
            self.loading = False
        return session

    def close_already_used(self, session: VerificationSession) -> VerificationSession:
        return self.reset(session)
