import itertools
import unittest

from study_portal.services.otp_flow import Dialog
from study_portal.services.screening_flow import QUESTIONS, ScreeningFlow, ScreeningStep, is_valid_email
from study_portal.session import VerificationSession

from fakes import FakeBackend

CHECK_PATH = "/api/participants/check-verification/+15551234567"


class ScreeningTest(unittest.TestCase):

    def setUp(self):
        self.flow = ScreeningFlow(api=None)

    def test_only_all_yes_reaches_contact(self):
        for combo in itertools.product(("yes", "no"), repeat=len(QUESTIONS)):
            flow = ScreeningFlow(api=None)
            flow.set_answers(**dict(zip(QUESTIONS, combo)))

            flow.submit_screening()

            expected = ScreeningStep.CONTACT if set(combo) == {"yes"} else ScreeningStep.INELIGIBLE
            self.assertEqual(flow.step, expected, combo)

    def test_missing_answer_blocks(self):
        self.flow.set_answers(used_ai="yes", lives_in_us="yes")

        self.flow.submit_screening()

        self.assertEqual(self.flow.step, ScreeningStep.SCREENING)
        self.assertEqual(self.flow.error_message, "Please answer all questions")

    def test_unknown_answer_values_are_ignored(self):
        self.flow.set_answers(used_ai="maybe", lives_in_us="YES", is_adult="yes", other="yes")

        self.assertEqual(self.flow.answers, {"used_ai": "", "lives_in_us": "yes", "is_adult": "yes"})

    def test_close_ineligible_resets_everything(self):
        self.flow.set_answers(used_ai="no", lives_in_us="yes", is_adult="yes")
        self.flow.submit_screening()

        session = self.flow.close_ineligible(VerificationSession(phone_number="5551234567"))

        self.assertEqual(self.flow.step, ScreeningStep.SCREENING)
        self.assertEqual(set(self.flow.answers.values()), {""})
        self.assertEqual(session, VerificationSession())

    def test_back_and_edit_navigation(self):
        self.flow.step = ScreeningStep.CONTACT
        self.flow.back()
        self.assertEqual(self.flow.step, ScreeningStep.SCREENING)

        self.flow.step = ScreeningStep.CONFIRM_CONTACT
        self.flow.edit_contact()
        self.assertEqual(self.flow.step, ScreeningStep.CONTACT)

    def test_confirm_moves_to_verify_unverified(self):
        self.flow.step = ScreeningStep.CONFIRM_CONTACT

        session = self.flow.confirm_contact(VerificationSession(phone_number="5551234567", is_verified=True))

        self.assertEqual(self.flow.step, ScreeningStep.VERIFY)
        self.assertFalse(session.is_verified)
        self.assertEqual(session.phone_number, "5551234567")

    def test_return_to_contact_from_verify(self):
        self.flow.step = ScreeningStep.VERIFY

        self.flow.return_to_contact()

        self.assertEqual(self.flow.step, ScreeningStep.CONTACT)

    def test_email_pattern(self):
        self.assertTrue(is_valid_email("a@b.co"))
        self.assertFalse(is_valid_email("a@b"))
        self.assertFalse(is_valid_email("not an email"))


class ContactTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.backend = FakeBackend()
        self.api = self.backend.client()
        self.flow = ScreeningFlow(self.api)
        self.flow.step = ScreeningStep.CONTACT
        self.session = VerificationSession()

    async def asyncTearDown(self):
        await self.api.http.aclose()

    async def submit(self, phone="(555) 123-4567", email=""):
        self.session = await self.flow.submit_contact(self.session, phone, email)

    async def test_missing_phone(self):
        await self.submit(phone="")

        self.assertEqual(self.flow.error_message, "Phone number is required")
        self.assertEqual(self.backend.requests, [])

    async def test_short_phone(self):
        await self.submit(phone="555-123")

        self.assertEqual(self.flow.error_message, "Please enter a complete 10-digit phone number")
        self.assertEqual(self.flow.step, ScreeningStep.CONTACT)

    async def test_bad_email(self):
        await self.submit(email="nobody@")

        self.assertEqual(self.flow.error_message, "Please enter a valid email address")
        self.assertEqual(self.backend.requests, [])

    async def test_valid_contact_reaches_confirm(self):
        self.backend.script_happy_path()

        await self.submit(email=" p@example.com ")

        self.assertEqual(self.flow.step, ScreeningStep.CONFIRM_CONTACT)
        self.assertEqual(self.session.phone_number, "5551234567")
        self.assertEqual(self.session.email, "p@example.com")
        self.assertEqual(self.backend.last_json("/api/participants/validate-phone"), {"phone": "+15551234567"})

    async def test_carrier_rejected_opens_dialog(self):
        self.backend.on("POST", "/api/participants/validate-phone", {"valid": False, "reason": "voip"})

        await self.submit()

        self.assertEqual(self.flow.dialog, Dialog.CARRIER_REJECTED)
        self.assertEqual(self.flow.step, ScreeningStep.CONTACT)
        self.assertEqual(self.backend.calls(CHECK_PATH), [])

        self.session = self.flow.close_carrier_rejected(self.session)

        self.assertIsNone(self.flow.dialog)
        self.assertEqual(self.session.phone_number, "")
        self.assertEqual(self.session.email, "")

    async def test_validation_error_blocks(self):
        self.backend.on("POST", "/api/participants/validate-phone", {"error": "boom"}, status=500)

        await self.submit()

        self.assertEqual(self.flow.error_message, "Unable to validate phone number. Please try again.")
        self.assertEqual(self.flow.step, ScreeningStep.CONTACT)
        self.assertFalse(self.flow.loading)

    async def test_already_verified_opens_dialog(self):
        self.backend.on("POST", "/api/participants/validate-phone", {"valid": True})
        self.backend.on("GET", CHECK_PATH, {"verified": True})

        await self.submit()

        self.assertEqual(self.flow.dialog, Dialog.ALREADY_USED)
        self.assertEqual(self.flow.step, ScreeningStep.CONTACT)

    async def test_lookup_error_still_proceeds(self):
        self.backend.on("POST", "/api/participants/validate-phone", {"valid": True})
        self.backend.on("GET", CHECK_PATH, {"error": "down"}, status=502)

        await self.submit()

        self.assertIsNone(self.flow.dialog)
        self.assertEqual(self.flow.step, ScreeningStep.CONFIRM_CONTACT)


class EnrollmentTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.backend = FakeBackend()
        self.api = self.backend.client()
        self.flow = ScreeningFlow(self.api)

    async def asyncTearDown(self):
        await self.api.http.aclose()

    async def test_full_enrollment_closes_survey(self):
        self.backend.on("GET", "/api/enrollment/status", {"full": True, "enrollmentActive": True})

        await self.flow.check_enrollment()

        self.assertEqual(self.flow.step, ScreeningStep.ENROLLMENT_CLOSED)

    async def test_inactive_enrollment_closes_survey(self):
        self.backend.on("GET", "/api/enrollment/status", {"full": False, "enrollmentActive": False})

        await self.flow.check_enrollment()

        self.assertEqual(self.flow.step, ScreeningStep.ENROLLMENT_CLOSED)

    async def test_status_error_fails_open(self):
        self.backend.on("GET", "/api/enrollment/status", {"error": "down"}, status=500)

        await self.flow.check_enrollment()

        self.assertEqual(self.flow.step, ScreeningStep.SCREENING)
        self.assertTrue(self.flow.enrollment_checked)

    async def test_status_is_checked_once(self):
        self.backend.on("GET", "/api/enrollment/status", {"full": False})

        await self.flow.check_enrollment()
        await self.flow.check_enrollment()

        self.assertEqual(len(self.backend.calls("/api/enrollment/status")), 1)


class ResendExistingLinkTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.backend = FakeBackend()
        self.api = self.backend.client()
        self.flow = ScreeningFlow(self.api)
        self.flow.step = ScreeningStep.CONTACT
        self.flow.dialog = Dialog.ALREADY_USED
        self.session = VerificationSession(phone_number="5551234567")

    async def asyncTearDown(self):
        await self.api.http.aclose()

    def answer(self, body, status=200):
        self.backend.on("POST", "/api/participants/resend-survey-link", body, status=status)

    async def test_link_resent(self):
        self.answer({"ok": True, "linkUrl": "https://x/y"})

        await self.flow.resend_existing_link(self.session)

        self.assertTrue(self.flow.resend_had_link)
        self.assertEqual(self.flow.used_resend_info, "Survey link sent successfully!")

    async def test_verified_without_link(self):
        self.answer({"ok": True})

        await self.flow.resend_existing_link(self.session)

        self.assertFalse(self.flow.resend_had_link)
        self.assertEqual(self.flow.used_resend_info, "Verified! A survey link will be assigned shortly.")

    async def test_refused_uses_server_message(self):
        self.answer({"ok": False, "message": "Please wait before requesting again"})

        await self.flow.resend_existing_link(self.session)

        self.assertEqual(self.flow.used_resend_info, "Please wait before requesting again")

    async def test_server_error(self):
        self.answer({"error": "boom"}, status=500)

        await self.flow.resend_existing_link(self.session)

        self.assertEqual(self.flow.used_resend_info, "Server error: boom")

    async def test_invalid_phone_makes_no_call(self):
        await self.flow.resend_existing_link(VerificationSession(phone_number="555"))

        self.assertEqual(self.flow.used_resend_info, "Error: Invalid phone number. Please try again.")
        self.assertEqual(self.backend.requests, [])

    async def test_close_resets_flow(self):
        self.session = self.flow.close_already_used(self.session)

        self.assertIsNone(self.flow.dialog)
        self.assertEqual(self.flow.step, ScreeningStep.SCREENING)
        self.assertEqual(self.session.phone_number, "")


if __name__ == "__main__":
    unittest.main()
