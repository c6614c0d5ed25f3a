"""
HTTP client for the study backend
Wraps httpx with URL building, admin bearer tokens and phone normalization
"""
import re
from typing import Any, Dict, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from study_portal.config import settings
from study_portal.logging_config import get_logger, mask_phone
from study_portal.schemas import (
    EnrollmentStatus,
    InvitationResult,
    OtpCheckResult,
    OtpStartResult,
    PhoneValidation,
    VerificationLookup,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_NON_DIGITS = re.compile(r"\D")

# Sentinel so an explicit JSON null body can still be sent
_NO_BODY = object()


class ApiError(Exception):
    """Raised for non-2xx responses, transport failures and malformed bodies."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"ApiError({self.message!r}, status={self.status})"


def normalize_phone_number(phone: str) -> str:
    """
    Normalize a phone number to E.164.

    The participant pages store raw digits; this runs once, right before
    a number is sent to the backend.
    """
    digits = _NON_DIGITS.sub("", phone)

    if len(digits) == 10:
        return f"+1{digits}"

    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"

    if phone.startswith("+"):
        return phone

    return f"+1{digits}"


def _error_message(data: Any, status: int) -> str:
    if isinstance(data, dict):
        if data.get("error"):
            return str(data["error"])
        if data.get("message"):
            return str(data["message"])
    if status == 403:
        return "Access denied. Please check your permissions."
    if status == 400:
        return "Invalid request. Please check your input."
    if status == 404:
        return "Resource not found."
    if status >= 500:
        return "Server error. Please try again later."
    return "An error occurred"


def create_http_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Shared AsyncClient for the whole process.

    With an empty API_BASE_URL endpoints stay relative and resolve against
    the development proxy target.
    """
    return httpx.AsyncClient(
        base_url=settings.API_BASE_URL or settings.DEV_PROXY_URL,
        timeout=settings.API_TIMEOUT_SECONDS,
        transport=transport,
    )


class ApiClient:
    """Backend client bound to one browser session's admin token."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.http = http
        self.token = token
        self.base_url = settings.API_BASE_URL if base_url is None else base_url.rstrip("/")

    def get_api_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _is_admin_endpoint(self, endpoint: str) -> bool:
        return endpoint.startswith(settings.ADMIN_API_PREFIX)

    def _build_headers(self, endpoint: str, has_json: bool, extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if has_json:
            headers["Content-Type"] = "application/json"
        if extra:
            headers.update(extra)

        if self._is_admin_endpoint(endpoint):
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            else:
                logger.warning("admin_request_without_token", endpoint=endpoint)
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Any = _NO_BODY,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        has_json = body is not _NO_BODY
        request_headers = self._build_headers(endpoint, has_json, headers)

        kwargs: Dict[str, Any] = {"headers": request_headers}
        if has_json:
            kwargs["json"] = body
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v not in (None, "")}
        if files:
            kwargs["files"] = files
        if data:
            kwargs["data"] = data

        try:
            response = await self.http.request(method, self.get_api_url(endpoint), **kwargs)
        except httpx.HTTPError as e:
            logger.error("api_transport_error", method=method, endpoint=endpoint, error=str(e))
            raise ApiError(f"Network error: {e}") from e

        return self._handle_response(method, endpoint, response)

    def _handle_response(self, method: str, endpoint: str, response: httpx.Response) -> Any:
        payload = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                if response.is_success:
                    logger.error("api_malformed_response", method=method, endpoint=endpoint,
                                 status=response.status_code)
                    raise ApiError("Malformed response from server", response.status_code)

        if not response.is_success:
            message = _error_message(payload, response.status_code)
            logger.warning(
                "api_error_response",
                method=method,
                endpoint=endpoint,
                status=response.status_code,
                error=message,
            )
            raise ApiError(message, response.status_code)

        return payload

    async def get(self, endpoint: str, headers: Optional[Dict[str, str]] = None,
                  params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, headers=headers, params=params)

    async def post(self, endpoint: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("POST", endpoint, body=body, headers=headers)

    async def put(self, endpoint: str, body: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("PUT", endpoint, body=body, headers=headers)

    async def delete(self, endpoint: str, headers: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("DELETE", endpoint, headers=headers)

    async def upload(self, endpoint: str, files: Dict[str, Any], data: Optional[Dict[str, Any]] = None) -> Any:
        """Multipart POST; the backend parses the file."""
        return await self.request("POST", endpoint, files=files, data=data)

    @staticmethod
    def parse(model: Type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload if payload is not None else {})
        except ValidationError as e:
            raise ApiError(f"Malformed response from server: {model.__name__}") from e

    # -------------------------------------------
    # Participant flow
    # -------------------------------------------

    async def start_otp(self, phone: str) -> OtpStartResult:
        normalized = normalize_phone_number(phone)
        logger.info("otp_start", phone=mask_phone(normalized))
        data = await self.post("/api/otp/start", {"phone": normalized, "channel": "sms"})
        return self.parse(OtpStartResult, data)

    async def check_otp(
        self,
        phone: str,
        code: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> OtpCheckResult:
        normalized = normalize_phone_number(phone)
        data = await self.post("/api/otp/check", {
            "phone": normalized,
            "code": code,
            "email": email or None,
            "name": name or None,
        })
        return self.parse(OtpCheckResult, data)

    async def send_survey_invitation(self, phone: str) -> InvitationResult:
        normalized = normalize_phone_number(phone)
        logger.info("survey_invitation_requested", phone=mask_phone(normalized))
        data = await self.post("/api/participants/resend-survey-link", {
            "phone": normalized,
            "body": "resend",
        })
        return self.parse(InvitationResult, data)

    async def check_verification(self, phone: str) -> VerificationLookup:
        normalized = normalize_phone_number(phone)
        data = await self.get(f"/api/participants/check-verification/{quote(normalized, safe='')}")
        return self.parse(VerificationLookup, data)

    async def validate_phone(self, phone: str) -> PhoneValidation:
        normalized = normalize_phone_number(phone)
        data = await self.post("/api/participants/validate-phone", {"phone": normalized})
        return self.parse(PhoneValidation, data)

    async def get_enrollment_status(self) -> EnrollmentStatus:
        data = await self.get("/api/enrollment/status")
        return self.parse(EnrollmentStatus, data)
