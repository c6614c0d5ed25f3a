"""
Search and pagination over admin table rows
"""
import math
from dataclasses import dataclass
from typing import Generic, Iterable, List, Sequence, TypeVar

from study_portal.schemas import InvitationRow, LinkRow

RowT = TypeVar("RowT")

PER_PAGE_CHOICES = (10, 25, 50, 100)
DEFAULT_PER_PAGE = 10


def _contains(value, query: str) -> bool:
    return bool(value) and query in str(value).lower()


def filter_invitations(rows: Iterable[InvitationRow], query: str) -> List[InvitationRow]:
    """Case-insensitive match on phone, email, link, short link or status."""
    q = (query or "").strip().lower()
    if not q:
        return list(rows)
    return [
        r for r in rows
        if _contains(r.phone_number, q)
        or _contains(r.email, q)
        or _contains(r.assigned_link, q)
        or _contains(r.short_link, q)
        or _contains(r.status, q)
    ]


def filter_links(rows: Iterable[LinkRow], query: str) -> List[LinkRow]:
    q = (query or "").strip().lower()
    if not q:
        return list(rows)
    return [
        r for r in rows
        if _contains(r.link_url, q) or _contains(r.status, q) or _contains(r.batch_label, q)
    ]


@dataclass
class Page(Generic[RowT]):
    items: List[RowT]
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.per_page else 0

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def first_index(self) -> int:
        """1-based position of the first row on this page, 0 when empty."""
        return (self.page - 1) * self.per_page + 1 if self.items else 0

    @property
    def last_index(self) -> int:
        return (self.page - 1) * self.per_page + len(self.items)


def clamp_per_page(per_page: int) -> int:
    return per_page if per_page in PER_PAGE_CHOICES else DEFAULT_PER_PAGE


def paginate(rows: Sequence[RowT], page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> Page[RowT]:
    """Slice one 1-based page; out-of-range pages snap to the nearest valid one."""
    per_page = clamp_per_page(per_page)
    total = len(rows)
    last_page = max(1, math.ceil(total / per_page))
    page = min(max(page, 1), last_page)
    start = (page - 1) * per_page
    return Page(items=list(rows[start:start + per_page]), page=page, per_page=per_page, total=total)
