"""
Admin console calls against /api/admin/*

The bearer token comes from the ApiClient the service wraps.
"""
from typing import Any, Dict, List, Optional

from study_portal.logging_config import get_logger
from study_portal.services.api_client import ApiClient
from study_portal.schemas import (
    ActionResult,
    AddGiftCardIn,
    AdminLoginResult,
    AdminStats,
    EnrollmentConfig,
    InvitationResult,
    InvitationRow,
    LinkRow,
    PageOut,
    PoolStatus,
    SendGiftCardIn,
)

logger = get_logger(__name__)


class AdminService:

    def __init__(self, api: ApiClient):
        self.api = api

    # -------------------------------------------
    # Auth
    # -------------------------------------------

    async def login(self, username: str, password: str) -> AdminLoginResult:
        data = await self.api.post("/api/admin/login", {"username": username, "password": password})
        return self.api.parse(AdminLoginResult, data)

    async def logout(self) -> ActionResult:
        data = await self.api.post("/api/admin/logout", {})
        return self.api.parse(ActionResult, data)

    # -------------------------------------------
    # Dashboard
    # -------------------------------------------

    async def stats(self) -> AdminStats:
        return self.api.parse(AdminStats, await self.api.get("/api/admin/stats"))

    async def invitations(self, status: Optional[str] = None, phone: Optional[str] = None,
                          page: int = 0, size: int = 200) -> List[InvitationRow]:
        data = await self.api.get("/api/admin/invitations", params={
            "status": status, "phone": phone, "page": page, "size": size,
        })
        page_out = self.api.parse(PageOut, data)
        return [InvitationRow.from_invitation(item) for item in page_out.content]

    async def update_user_email(self, participant_id: str, email: str) -> ActionResult:
        data = await self.api.put(f"/api/admin/update-user/{participant_id}", {"email": email})
        return self.api.parse(ActionResult, data)

    async def delete_user_info(self, participant_id: str) -> Dict[str, Any]:
        return await self.api.get(f"/api/admin/delete-user-info/{participant_id}") or {}

    async def delete_user(self, participant_id: str) -> ActionResult:
        data = await self.api.delete(f"/api/admin/delete-user/{participant_id}")
        return self.api.parse(ActionResult, data)

    async def remind(self, phone: str) -> InvitationResult:
        """Resend the survey link to an invited participant."""
        return await self.api.send_survey_invitation(phone)

    async def mark_completed(self, invitation_id: str, completed: bool = True) -> ActionResult:
        action = "complete" if completed else "uncomplete"
        data = await self.api.post(f"/api/admin/invitations/{invitation_id}/{action}")
        return self.api.parse(ActionResult, data)

    async def bulk_mark_completed(self, invitation_ids: List[str], completed: bool = True) -> ActionResult:
        action = "bulk-complete" if completed else "bulk-uncomplete"
        data = await self.api.post(f"/api/admin/invitations/{action}", invitation_ids)
        return self.api.parse(ActionResult, data)

    # -------------------------------------------
    # Survey links
    # -------------------------------------------

    async def links(self, status: Optional[str] = None, batch: Optional[str] = None,
                    page: int = 0, size: int = 200) -> List[LinkRow]:
        data = await self.api.get("/api/admin/links", params={
            "status": status, "batch": batch, "page": page, "size": size,
        })
        page_out = self.api.parse(PageOut, data)
        return [LinkRow.from_link(item) for item in page_out.content]

    async def update_link(self, link_id: str, link_url: str) -> ActionResult:
        data = await self.api.put(f"/api/admin/update-link/{link_id}", {"link": link_url})
        return self.api.parse(ActionResult, data)

    async def delete_link(self, link_id: str) -> ActionResult:
        data = await self.api.delete(f"/api/admin/delete-link/{link_id}")
        return self.api.parse(ActionResult, data)

    async def upload_links(self, filename: str, content: bytes, batch_label: str = "",
                           uploaded_by: str = "", notes: str = "") -> Dict[str, Any]:
        """Forward a CSV of survey links; the backend answers {success, inserted}."""
        result = await self.api.upload(
            "/api/admin/upload-links",
            files={"file": (filename, content, "text/csv")},
            data={"batchLabel": batch_label, "uploadedBy": uploaded_by, "notes": notes},
        )
        logger.info("links_uploaded", filename=filename, inserted=(result or {}).get("inserted"))
        return result or {}

    # -------------------------------------------
    # Gift cards
    # -------------------------------------------

    async def pool_status(self) -> PoolStatus:
        return self.api.parse(PoolStatus, await self.api.get("/api/admin/gift-cards/pool/status"))

    async def available_gift_cards(self, page: int = 0, size: int = 20) -> PageOut:
        data = await self.api.get("/api/admin/gift-cards/pool/available", params={"page": page, "size": size})
        return self.api.parse(PageOut, data)

    async def eligible_participants(self) -> List[Dict[str, Any]]:
        data = await self.api.get("/api/admin/gift-cards/eligible")
        if isinstance(data, dict):
            return data.get("content") or []
        return data or []

    async def sent_gift_cards(self, page: int = 0, size: int = 20) -> PageOut:
        data = await self.api.get("/api/admin/gift-cards/sent", params={"page": page, "size": size})
        return self.api.parse(PageOut, data)

    async def add_gift_card(self, card: AddGiftCardIn) -> ActionResult:
        data = await self.api.post(
            "/api/admin/gift-cards/pool/add",
            card.model_dump(by_alias=True, exclude_none=True),
        )
        return self.api.parse(ActionResult, data)

    async def upload_gift_cards(self, filename: str, content: bytes, batch_label: str) -> Dict[str, Any]:
        result = await self.api.upload(
            "/api/admin/gift-cards/pool/upload",
            files={"file": (filename, content, "text/csv")},
            data={"batchLabel": batch_label},
        )
        return result or {}

    async def send_gift_card(self, participant_id: str, request: SendGiftCardIn) -> ActionResult:
        data = await self.api.post(
            f"/api/admin/gift-cards/send/{participant_id}",
            request.model_dump(by_alias=True, exclude_none=True),
        )
        return self.api.parse(ActionResult, data)

    async def resend_gift_card(self, gift_card_id: str) -> ActionResult:
        data = await self.api.post(f"/api/admin/gift-cards/{gift_card_id}/resend")
        return self.api.parse(ActionResult, data)

    async def unsend_gift_card(self, gift_card_id: str) -> ActionResult:
        data = await self.api.post(f"/api/admin/gift-cards/{gift_card_id}/unsend")
        return self.api.parse(ActionResult, data)

    async def add_gift_card_notes(self, gift_card_id: str, notes: str) -> ActionResult:
        data = await self.api.post(f"/api/admin/gift-cards/{gift_card_id}/notes", {"notes": notes})
        return self.api.parse(ActionResult, data)

    async def gift_card_logs(self, gift_card_id: str) -> List[Dict[str, Any]]:
        return await self.api.get(f"/api/admin/gift-cards/{gift_card_id}/logs") or []

    async def delete_pool_card(self, pool_id: str) -> ActionResult:
        data = await self.api.delete(f"/api/admin/gift-cards/pool/{pool_id}")
        return self.api.parse(ActionResult, data)

    async def delete_gift_card(self, gift_card_id: str) -> ActionResult:
        data = await self.api.delete(f"/api/admin/gift-cards/{gift_card_id}")
        return self.api.parse(ActionResult, data)

    async def has_gift_card(self, invitation_id: str) -> bool:
        data = await self.api.get(f"/api/admin/gift-cards/check-invitation/{invitation_id}") or {}
        return bool(data.get("hasGiftCard"))

    # -------------------------------------------
    # Enrollment
    # -------------------------------------------

    async def enrollment_config(self) -> EnrollmentConfig:
        return self.api.parse(EnrollmentConfig, await self.api.get("/api/admin/enrollment/config"))

    async def update_enrollment_config(self, max_participants: Optional[int], is_active: bool) -> EnrollmentConfig:
        data = await self.api.put("/api/admin/enrollment/config", {
            "maxParticipants": max_participants,
            "isEnrollmentActive": is_active,
        })
        return self.api.parse(EnrollmentConfig, data)
