import unittest

import httpx

from study_portal.services.api_client import ApiError, normalize_phone_number

from fakes import FakeBackend


class NormalizePhoneNumberTest(unittest.TestCase):

    def test_ten_digits_get_country_code(self):
        self.assertEqual(normalize_phone_number("5551234567"), "+15551234567")

    def test_eleven_digits_with_leading_one(self):
        self.assertEqual(normalize_phone_number("15551234567"), "+15551234567")

    def test_already_e164_is_unchanged(self):
        self.assertEqual(normalize_phone_number("+15551234567"), "+15551234567")

    def test_punctuation_is_stripped(self):
        self.assertEqual(normalize_phone_number("(555) 123-4567"), "+15551234567")

    def test_foreign_number_with_plus_kept_verbatim(self):
        self.assertEqual(normalize_phone_number("+44 20 7946 0958"), "+44 20 7946 0958")

    def test_short_number_falls_back_to_plus_one(self):
        self.assertEqual(normalize_phone_number("555-1234"), "+15551234")


class ApiClientTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.backend = FakeBackend()
        self.api = self.backend.client(token="tok-123")

    async def asyncTearDown(self):
        await self.api.http.aclose()

    async def test_error_body_becomes_api_error_with_status(self):
        self.backend.on("GET", "/api/admin/stats", {"error": "forbidden"}, status=403)

        with self.assertRaises(ApiError) as ctx:
            await self.api.get("/api/admin/stats")

        self.assertEqual(ctx.exception.message, "forbidden")
        self.assertEqual(ctx.exception.status, 403)

    async def test_message_field_used_when_no_error_field(self):
        self.backend.on("POST", "/api/otp/start", {"message": "Too many attempts"}, status=429)

        with self.assertRaises(ApiError) as ctx:
            await self.api.post("/api/otp/start", {})

        self.assertEqual(ctx.exception.message, "Too many attempts")

    async def test_status_fallback_messages(self):
        cases = {
            400: "Invalid request. Please check your input.",
            403: "Access denied. Please check your permissions.",
            404: "Resource not found.",
            502: "Server error. Please try again later.",
            418: "An error occurred",
        }
        for status, expected in cases.items():
            self.backend.on("GET", "/api/enrollment/status",
                            handler=lambda r, s=status: httpx.Response(s, text="<html>oops</html>"))
            with self.assertRaises(ApiError) as ctx:
                await self.api.get("/api/enrollment/status")
            self.assertEqual(ctx.exception.message, expected)
            self.assertEqual(ctx.exception.status, status)

    async def test_malformed_success_body_raises(self):
        self.backend.on("GET", "/api/enrollment/status", handler=lambda r: httpx.Response(200, text="not json"))

        with self.assertRaises(ApiError) as ctx:
            await self.api.get_enrollment_status()

        self.assertEqual(ctx.exception.message, "Malformed response from server")

    async def test_empty_success_body_is_none(self):
        self.backend.on("DELETE", "/api/admin/delete-link/7", handler=lambda r: httpx.Response(204))

        self.assertIsNone(await self.api.delete("/api/admin/delete-link/7"))

    async def test_transport_failure_has_no_status(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.backend.on("POST", "/api/otp/start", handler=refuse)

        with self.assertRaises(ApiError) as ctx:
            await self.api.start_otp("5551234567")

        self.assertIsNone(ctx.exception.status)
        self.assertTrue(ctx.exception.message.startswith("Network error"))

    async def test_bearer_token_only_on_admin_paths(self):
        self.backend.on("GET", "/api/admin/stats", {"totalVerifications": 3})
        self.backend.on("GET", "/api/enrollment/status", {"full": False})

        await self.api.get("/api/admin/stats")
        await self.api.get("/api/enrollment/status")

        admin_call = self.backend.calls("/api/admin/stats")[0]
        public_call = self.backend.calls("/api/enrollment/status")[0]
        self.assertEqual(admin_call.headers["Authorization"], "Bearer tok-123")
        self.assertNotIn("Authorization", public_call.headers)

    async def test_json_content_type_only_with_body(self):
        self.backend.on("POST", "/api/otp/start", {"ok": True})
        self.backend.on("GET", "/api/enrollment/status", {"full": False})

        await self.api.start_otp("5551234567")
        await self.api.get("/api/enrollment/status")

        self.assertEqual(self.backend.calls("/api/otp/start")[0].headers["Content-Type"], "application/json")
        self.assertNotIn("Content-Type", self.backend.calls("/api/enrollment/status")[0].headers)

    async def test_start_otp_sends_normalized_phone(self):
        self.backend.on("POST", "/api/otp/start", {"ok": True})

        result = await self.api.start_otp("5551234567")

        self.assertTrue(result.ok)
        self.assertEqual(self.backend.last_json("/api/otp/start"), {"phone": "+15551234567", "channel": "sms"})

    async def test_check_otp_sends_null_for_blank_email(self):
        self.backend.on("POST", "/api/otp/check", {"verified": False, "error": "Invalid code"})

        result = await self.api.check_otp("5551234567", "123456", "")

        self.assertFalse(result.verified)
        self.assertEqual(result.error, "Invalid code")
        self.assertEqual(
            self.backend.last_json("/api/otp/check"),
            {"phone": "+15551234567", "code": "123456", "email": None, "name": None},
        )

    async def test_invitation_maps_link_url(self):
        self.backend.on("POST", "/api/participants/resend-survey-link",
                        {"ok": True, "message": "sent", "linkUrl": "https://x/y"})

        result = await self.api.send_survey_invitation("5551234567")

        self.assertEqual(result.link_url, "https://x/y")
        self.assertEqual(self.backend.last_json("/api/participants/resend-survey-link"),
                         {"phone": "+15551234567", "body": "resend"})

    async def test_check_verification_encodes_phone_in_path(self):
        self.backend.on("GET", "/api/participants/check-verification/+15551234567", {"verified": True})

        result = await self.api.check_verification("5551234567")

        self.assertTrue(result.verified)
        request = self.backend.requests[-1]
        self.assertIn(b"%2B15551234567", request.url.raw_path)

    async def test_upload_is_multipart(self):
        self.backend.on("POST", "/api/admin/upload-links", {"success": True, "inserted": 2})

        result = await self.api.upload(
            "/api/admin/upload-links",
            files={"file": ("links.csv", b"https://a\nhttps://b\n", "text/csv")},
            data={"batchLabel": "b1"},
        )

        self.assertEqual(result["inserted"], 2)
        request = self.backend.calls("/api/admin/upload-links")[0]
        self.assertTrue(request.headers["Content-Type"].startswith("multipart/form-data"))
        self.assertIn(b"https://a", request.content)

    async def test_schema_mismatch_is_api_error(self):
        self.backend.on("POST", "/api/otp/start", {"ok": {"nested": "nonsense"}})

        with self.assertRaises(ApiError):
            await self.api.start_otp("5551234567")


if __name__ == "__main__":
    unittest.main()
