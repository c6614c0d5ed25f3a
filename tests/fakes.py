"""
Test doubles: a scripted study backend behind httpx.MockTransport and a
hand-driven countdown timer.
"""
import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from jose import jwt

from study_portal.services.api_client import ApiClient

Handler = Callable[[httpx.Request], httpx.Response]


class FakeBackend:

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, body: Any = None, status: int = 200, handler: Optional[Handler] = None):
        if handler is None:
            def handler(request, body=body, status=status):
                return httpx.Response(status, json=body)
        self.routes[(method, path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": f"unscripted {request.method} {request.url.path}"})
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self, token: Optional[str] = None) -> ApiClient:
        http = httpx.AsyncClient(transport=self.transport(), base_url="http://backend.test")
        return ApiClient(http, token=token, base_url="")

    def calls(self, path: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.path == path and (method is None or r.method == method)
        ]

    def last_json(self, path: str) -> Any:
        return json.loads(self.calls(path)[-1].content)

    def script_happy_path(self, link: str = "https://x/y"):
        """Every participant endpoint answering the success case."""
        self.on("GET", "/api/enrollment/status", {"full": False, "enrollmentActive": True})
        self.on("POST", "/api/participants/validate-phone", {"valid": True})
        self.on("GET", "/api/participants/check-verification/+15551234567", {"verified": False})
        self.on("POST", "/api/otp/start", {"ok": True})
        self.on("POST", "/api/otp/check", {"verified": True})
        self.on("POST", "/api/participants/resend-survey-link", {"ok": True, "linkUrl": link})


class FakeTimer:
    """Stands in for CountdownTimer; fire() plays the one-second ticks."""

    def __init__(self, on_tick):
        self.on_tick = on_tick
        self.active = False
        self.starts = 0
        self.cancels = 0

    def start(self):
        self.active = True
        self.starts += 1

    def cancel(self):
        self.active = False
        self.cancels += 1

    def fire(self, times: int = 1):
        for _ in range(times):
            if not self.active:
                return
            if not self.on_tick():
                self.active = False


class TimerRecorder:
    """Timer factory that keeps every timer it hands out."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, on_tick) -> FakeTimer:
        timer = FakeTimer(on_tick)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


def make_token(expires_in: int = 3600, sub: str = "admin") -> str:
    return jwt.encode({"sub": sub, "exp": int(time.time()) + expires_in}, "test-secret", algorithm="HS256")
