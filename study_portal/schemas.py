from typing import Optional, Any, Dict, List
from pydantic import BaseModel, Field, ConfigDict


class BackendModel(BaseModel):
    """Backend payloads are camelCase and may carry fields we never read."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ------------------------------------------------------
# OTP + INVITATION
# ------------------------------------------------------

class OtpStartResult(BackendModel):
    ok: bool = False
    error: Optional[str] = None


class OtpCheckResult(BackendModel):
    verified: bool = False
    error: Optional[str] = None


class InvitationResult(BackendModel):
    """Response of /api/participants/resend-survey-link"""
    ok: bool = False
    message: Optional[str] = None
    link_url: Optional[str] = Field(None, alias="linkUrl")
    error: Optional[str] = None


class VerificationLookup(BackendModel):
    verified: bool = False
    message: Optional[str] = None
    participant: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class PhoneValidation(BackendModel):
    valid: bool = False
    message: Optional[str] = None
    error: Optional[str] = None


class EnrollmentStatus(BackendModel):
    full: bool = False
    enrollment_active: bool = Field(True, alias="enrollmentActive")
    current_count: int = Field(0, alias="currentCount")
    max_participants: Optional[int] = Field(None, alias="maxParticipants")
    remaining_spots: int = Field(-1, alias="remainingSpots")
    status: Optional[str] = None

    @property
    def is_blocked(self) -> bool:
        return self.full or not self.enrollment_active


# ------------------------------------------------------
# ADMIN
# ------------------------------------------------------

class AdminLoginResult(BackendModel):
    success: bool = False
    token: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class ActionResult(BackendModel):
    """Generic {success|ok, message, error} envelope of admin mutations."""
    success: Optional[bool] = None
    ok: Optional[bool] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        if self.success is not None:
            return self.success
        if self.ok is not None:
            return self.ok
        return self.error is None


class AdminStats(BackendModel):
    total_verifications: int = Field(0, alias="totalVerifications")
    total_links: int = Field(0, alias="totalLinks")
    used_links: int = Field(0, alias="usedLinks")
    available_links: int = Field(0, alias="availableLinks")


class PageOut(BackendModel):
    """Spring-style page of records"""
    content: List[Dict[str, Any]] = Field(default_factory=list)
    total_elements: int = Field(0, alias="totalElements")
    total_pages: int = Field(0, alias="totalPages")
    number: int = 0
    size: int = 0


class InvitationRow(BaseModel):
    """Dashboard row derived from an invitation record"""
    id: str
    phone_number: str = ""
    email: str = ""
    assigned_link: str = ""
    short_link: Optional[str] = None
    status: str = "pending"
    sms_sent_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_invitation(cls, invitation: Dict[str, Any]) -> "InvitationRow":
        participant = invitation.get("participant") or {}
        return cls(
            id=str(invitation.get("id", "")),
            phone_number=participant.get("phone") or "",
            email=participant.get("email") or "",
            assigned_link=invitation.get("linkUrl") or "",
            short_link=invitation.get("shortLinkUrl"),
            status=invitation.get("messageStatus") or "pending",
            sms_sent_at=invitation.get("sentAt") or invitation.get("queuedAt"),
            completed_at=invitation.get("completedAt"),
        )


class LinkRow(BaseModel):
    id: str
    link_url: str = ""
    status: str = ""
    batch_label: Optional[str] = None
    uploaded_at: Optional[str] = None

    @classmethod
    def from_link(cls, link: Dict[str, Any]) -> "LinkRow":
        return cls(
            id=str(link.get("id", "")),
            link_url=link.get("linkUrl") or link.get("link") or "",
            status=link.get("status") or "",
            batch_label=link.get("batchLabel"),
            uploaded_at=link.get("uploadedAt"),
        )


class PoolStatus(BackendModel):
    total_cards: int = Field(0, alias="totalCards")
    available_cards: int = Field(0, alias="availableCards")
    assigned_cards: int = Field(0, alias="assignedCards")
    expired_cards: int = Field(0, alias="expiredCards")
    invalid_cards: int = Field(0, alias="invalidCards")
    cards_by_type: Dict[str, int] = Field(default_factory=dict, alias="cardsByType")
    cards_by_batch: Dict[str, int] = Field(default_factory=dict, alias="cardsByBatch")


class AddGiftCardIn(BackendModel):
    card_code: str = Field(..., min_length=1, alias="cardCode")
    card_type: str = Field("AMAZON", alias="cardType")
    card_value: float = Field(..., gt=0, alias="cardValue")
    redemption_url: Optional[str] = Field(None, alias="redemptionUrl")
    redemption_instructions: Optional[str] = Field(None, alias="redemptionInstructions")
    batch_label: Optional[str] = Field(None, alias="batchLabel")
    expires_at: Optional[str] = Field(None, alias="expiresAt")
    notes: Optional[str] = None


class SendGiftCardIn(BackendModel):
    invitation_id: Optional[str] = Field(None, alias="invitationId")
    pool_id: Optional[str] = Field(None, alias="poolId")
    delivery_method: str = Field("BOTH", alias="deliveryMethod")
    source: str = "POOL"
    notes: Optional[str] = None


class EnrollmentConfig(BackendModel):
    max_participants: Optional[int] = Field(None, alias="maxParticipants")
    is_enrollment_active: bool = Field(True, alias="isEnrollmentActive")
    current_count: int = Field(0, alias="currentCount")
    remaining_spots: int = Field(-1, alias="remainingSpots")
    status: Optional[str] = None
    updated_by: Optional[str] = Field(None, alias="updatedBy")


__all__ = [
    # Participant flow
    "OtpStartResult",
    "OtpCheckResult",
    "InvitationResult",
    "VerificationLookup",
    "PhoneValidation",
    "EnrollmentStatus",

    # Admin
    "AdminLoginResult",
    "ActionResult",
    "AdminStats",
    "PageOut",
    "InvitationRow",
    "LinkRow",
    "PoolStatus",
    "AddGiftCardIn",
    "SendGiftCardIn",
    "EnrollmentConfig",
]
