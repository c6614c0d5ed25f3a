import json
import unittest

from fastapi.testclient import TestClient

from study_portal.main import create_app

from fakes import FakeBackend, TimerRecorder, make_token


def invitation(id, phone, email=""):
    return {
        "id": id,
        "participant": {"phone": phone, "email": email},
        "linkUrl": f"https://s/{id}",
        "messageStatus": "SENT",
    }


class RoutesTestCase(unittest.TestCase):

    def setUp(self):
        self.backend = FakeBackend()
        self.timers = TimerRecorder()
        self.app = create_app(transport=self.backend.transport(), timer_factory=self.timers)
        self.client = TestClient(self.app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)

    def post(self, url, data=None):
        return self.client.post(url, data=data or {}, follow_redirects=False)

    def get(self, url):
        return self.client.get(url, follow_redirects=False)


class HealthTest(RoutesTestCase):

    def test_health(self):
        response = self.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertIn("X-Request-ID", response.headers)

    def test_health_creates_no_session(self):
        for _ in range(3):
            response = self.get("/health")
            self.assertNotIn("set-cookie", response.headers)

        self.assertEqual(len(self.app.state.sessions), 0)


class ParticipantFlowTest(RoutesTestCase):

    def reach_verify_page(self, link="https://x/y"):
        self.backend.script_happy_path(link=link)
        self.get("/")
        self.assertEqual(self.post("/start", {"consent": "yes"}).headers["location"], "/survey")
        self.post("/survey/screening", {"used_ai": "yes", "lives_in_us": "yes", "is_adult": "yes"})
        self.post("/survey/contact", {"phone": "(555) 123-4567", "email": ""})

        confirm = self.get("/survey")
        self.assertIn("(555) 123-4567", confirm.text)

        response = self.post("/survey/confirm")
        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/verify")

    def test_consent_is_required(self):
        response = self.post("/start")

        self.assertEqual(response.status_code, 200)
        self.assertIn("Please agree to receive messages to continue.", response.text)
        self.assertEqual(self.get("/survey").headers["location"], "/")

    def test_verify_without_phone_goes_home(self):
        response = self.get("/verify")

        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/")

    def test_state_without_flow_is_404(self):
        response = self.get("/verify/state")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"step": None})

    def test_end_to_end_verification(self):
        self.reach_verify_page()

        self.assertIn("Send Code", self.get("/verify").text)
        self.post("/verify/send")

        state = self.get("/verify/state").json()
        self.assertEqual(state["step"], "enterCode")
        self.assertEqual(state["secondsRemaining"], 60)
        self.assertFalse(state["canResend"])
        self.assertIn('id="time-left"', self.get("/verify").text)

        self.timers.last.fire(60)
        self.assertTrue(self.get("/verify/state").json()["canResend"])

        self.post("/verify/code", {f"d{i}": d for i, d in enumerate("123456")})

        page = self.get("/verify").text
        self.assertIn('id="survey-link"', page)
        self.assertIn("https://x/y", page)
        self.assertEqual(self.get("/verify/state").json()["step"], "done")
        self.assertEqual(self.backend.last_json("/api/otp/check")["code"], "123456")

    def test_back_from_verify_keeps_contact_details(self):
        self.reach_verify_page()
        self.post("/verify/send")

        response = self.post("/verify/back")

        self.assertEqual(response.headers["location"], "/survey")
        self.assertFalse(self.timers.last.active)
        self.assertIn('value="5551234567"', self.get("/survey").text)

    def test_enrollment_full_blocks_survey(self):
        self.backend.on("GET", "/api/enrollment/status", {"full": True})
        self.get("/")
        self.post("/start", {"consent": "yes"})

        self.assertIn("Enrollment Currently Full", self.get("/survey").text)

    def start_contact_step(self):
        self.get("/")
        self.post("/start", {"consent": "yes"})
        self.post("/survey/screening", {"used_ai": "yes", "lives_in_us": "yes", "is_adult": "yes"})

    def test_unconfirmed_number_cannot_open_verify(self):
        self.backend.script_happy_path()
        self.start_contact_step()
        self.post("/survey/contact", {"phone": "5551234567"})

        self.assertEqual(self.get("/verify").headers["location"], "/survey")
        self.assertEqual(self.post("/verify/send").headers["location"], "/survey")
        self.assertEqual(self.backend.calls("/api/otp/start"), [])

    def test_already_used_number_cannot_open_verify(self):
        self.backend.script_happy_path()
        self.backend.on("GET", "/api/participants/check-verification/+15551234567", {"verified": True})
        self.start_contact_step()
        self.post("/survey/contact", {"phone": "5551234567"})

        self.assertEqual(self.get("/verify").headers["location"], "/survey")
        self.assertEqual(self.backend.calls("/api/otp/start"), [])

    def test_link_retry_after_accepted_code(self):
        self.reach_verify_page()
        self.backend.on("POST", "/api/participants/resend-survey-link", {"ok": False, "error": "No links left"})
        self.post("/verify/send")
        self.post("/verify/code", {"code": "123456"})

        page = self.get("/verify").text
        self.assertIn('id="retry-link"', page)
        self.assertIn("is verified", page)
        self.assertIn("No links left", page)
        self.assertNotIn('name="d0"', page)

        self.backend.on("POST", "/api/participants/resend-survey-link", {"ok": True, "linkUrl": "https://x/y"})
        self.post("/verify/retry-link")

        self.assertIn('id="survey-link"', self.get("/verify").text)
        self.assertEqual(len(self.backend.calls("/api/otp/check")), 1)

    def test_non_web_link_is_not_clickable(self):
        self.reach_verify_page(link="javascript:alert(1)")
        self.post("/verify/send")
        self.post("/verify/code", {"code": "123456"})

        page = self.get("/verify").text
        self.assertNotIn('href="javascript', page)
        self.assertIn('id="survey-link-text"', page)


class AdminGuardTest(RoutesTestCase):

    def login(self, token=None):
        token = token or make_token()
        self.backend.on("POST", "/api/admin/login", {"success": True, "token": token})
        response = self.post("/admin-login", {"username": "admin", "password": "pw"})
        self.assertEqual(response.headers["location"], "/admin-dashboard")
        return token

    def script_dashboard(self):
        self.backend.on("GET", "/api/admin/stats", {"totalVerifications": 2, "usedLinks": 1, "availableLinks": 5})
        self.backend.on("GET", "/api/admin/invitations", {"content": [
            invitation("11", "+15551234567", "ann@example.com"),
            invitation("12", "+15559990000"),
        ]})

    def test_dashboard_without_token_redirects_to_login(self):
        response = self.get("/admin-dashboard")

        self.assertEqual(response.status_code, 303)
        self.assertEqual(response.headers["location"], "/admin-login")
        self.assertEqual(self.backend.requests, [])

    def test_expired_token_redirects_with_notice(self):
        self.login(make_token(expires_in=-60))

        response = self.get("/admin-dashboard")

        self.assertEqual(response.headers["location"], "/admin-login?expired=true")
        self.assertIn("Your session has expired", self.get("/admin-login?expired=true").text)

    def test_empty_credentials(self):
        response = self.post("/admin-login", {"username": "admin"})

        self.assertIn("Please enter both username and password.", response.text)
        self.assertEqual(self.backend.requests, [])

    def test_rejected_credentials(self):
        self.backend.on("POST", "/api/admin/login", {"success": False, "message": "Invalid credentials"})

        response = self.post("/admin-login", {"username": "admin", "password": "nope"})

        self.assertEqual(response.status_code, 200)
        self.assertIn("Invalid credentials", response.text)

    def test_dashboard_sends_bearer_token_and_lists_rows(self):
        token = self.login()
        self.script_dashboard()

        response = self.get("/admin-dashboard")

        self.assertEqual(response.status_code, 200)
        self.assertIn("+15551234567", response.text)
        self.assertIn("+15559990000", response.text)
        stats_call = self.backend.calls("/api/admin/stats")[0]
        self.assertEqual(stats_call.headers["Authorization"], f"Bearer {token}")

    def test_dashboard_search(self):
        self.login()
        self.script_dashboard()

        response = self.get("/admin-dashboard?q=ann@")

        self.assertIn("+15551234567", response.text)
        self.assertNotIn("+15559990000", response.text)

    def test_forbidden_response_ends_admin_session(self):
        self.login()
        self.backend.on("GET", "/api/admin/stats", {"error": "forbidden"}, status=403)

        response = self.get("/admin-dashboard")

        self.assertEqual(response.headers["location"], "/admin-login?expired=true")
        self.assertEqual(self.get("/admin-dashboard").headers["location"], "/admin-login")

    def test_mark_completed_flashes_and_refetches(self):
        self.login()
        self.script_dashboard()
        self.backend.on("POST", "/api/admin/invitations/11/complete", {"success": True})

        response = self.post("/admin-dashboard/invitations/11/complete")

        self.assertEqual(response.headers["location"], "/admin-dashboard")
        page = self.get("/admin-dashboard").text
        self.assertIn("Marked completed.", page)
        self.assertNotIn("Marked completed.", self.get("/admin-dashboard").text)

    def test_bulk_without_selection(self):
        self.login()
        self.script_dashboard()

        self.post("/admin-dashboard/invitations/bulk", {"action": "complete"})

        self.assertIn("Select at least one record.", self.get("/admin-dashboard").text)

    def test_enrollment_update_body(self):
        self.login()
        self.backend.on("PUT", "/api/admin/enrollment/config", {"maxParticipants": 150, "isEnrollmentActive": True})
        self.backend.on("GET", "/api/admin/enrollment/config", {"maxParticipants": 150, "isEnrollmentActive": True})

        self.post("/admin-enrollment", {"max_participants": "150", "is_active": "on"})

        self.assertEqual(
            json.loads(self.backend.calls("/api/admin/enrollment/config", "PUT")[0].content),
            {"maxParticipants": 150, "isEnrollmentActive": True},
        )
        self.assertIn("Enrollment settings saved.", self.get("/admin-enrollment").text)

    def test_invalid_enrollment_limit(self):
        self.login()
        self.backend.on("GET", "/api/admin/enrollment/config", {})

        self.post("/admin-enrollment", {"max_participants": "-3"})

        self.assertEqual(self.backend.calls("/api/admin/enrollment/config", "PUT"), [])
        self.assertIn("whole number", self.get("/admin-enrollment").text)

    def test_logout_drops_token(self):
        self.login()
        self.backend.on("POST", "/api/admin/logout", {"success": True})

        response = self.post("/admin/logout")

        self.assertEqual(response.headers["location"], "/admin-login")
        self.assertEqual(len(self.backend.calls("/api/admin/logout")), 1)
        self.assertEqual(self.get("/admin-dashboard").headers["location"], "/admin-login")


if __name__ == "__main__":
    unittest.main()
