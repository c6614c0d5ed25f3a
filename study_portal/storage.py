"""
In-memory browser sessions

Progress lives only as long as the process and the session cookie;
the backend stays the source of truth for verification status.
"""
import secrets
import time
from typing import Dict, Optional

from study_portal.core.timer import TimerFactory, default_timer_factory
from study_portal.logging_config import get_logger
from study_portal.services.api_client import ApiClient
from study_portal.services.otp_flow import OtpVerificationFlow
from study_portal.services.screening_flow import ScreeningFlow
from study_portal.session import Action, Notification, VerificationSession, reduce

logger = get_logger(__name__)


class BrowserSession:

    def __init__(self, session_id: str, api: ApiClient, timer_factory: TimerFactory = default_timer_factory):
        self.id = session_id
        self.api = api
        self.timer_factory = timer_factory
        self.verification = VerificationSession()
        self.has_consented = False
        self.screening = ScreeningFlow(api)
        self.otp: Optional[OtpVerificationFlow] = None
        self.admin_token: Optional[str] = None
        self.flash: Optional[Notification] = None
        self.touched_at = time.monotonic()

    def dispatch(self, action: Action) -> VerificationSession:
        self.verification = reduce(self.verification, action)
        return self.verification

    def otp_flow(self) -> OtpVerificationFlow:
        if self.otp is None:
            self.otp = OtpVerificationFlow(self.api, timer_factory=self.timer_factory)
        return self.otp

    def discard_otp_flow(self):
        if self.otp is not None:
            self.otp.dispose()
            self.otp = None

    def reset_participant(self):
        """Back on the landing page: start a fresh survey attempt."""
        self.discard_otp_flow()
        self.verification = VerificationSession()
        self.screening = ScreeningFlow(self.api)
        self.has_consented = False

    def pop_flash(self) -> Optional[Notification]:
        note, self.flash = self.flash, None
        return note

    def dispose(self):
        self.discard_otp_flow()


class SessionStore:

    def __init__(self, max_age_seconds: float):
        self.max_age_seconds = max_age_seconds
        self._sessions: Dict[str, BrowserSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: Optional[str]) -> Optional[BrowserSession]:
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if time.monotonic() - session.touched_at > self.max_age_seconds:
            self.discard(session_id)
            return None
        session.touched_at = time.monotonic()
        return session

    def create(self, api: ApiClient, timer_factory: TimerFactory = default_timer_factory) -> BrowserSession:
        self.prune()
        session = BrowserSession(secrets.token_urlsafe(24), api, timer_factory)
        self._sessions[session.id] = session
        return session

    def discard(self, session_id: str):
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.dispose()

    def prune(self):
        now = time.monotonic()
        expired = [sid for sid, s in self._sessions.items() if now - s.touched_at > self.max_age_seconds]
        for sid in expired:
            self.discard(sid)
        if expired:
            logger.info("sessions_pruned", count=len(expired))

    def clear(self):
        for sid in list(self._sessions):
            self.discard(sid)
