"""
Verification context shared by the screening and verification pages.

The session is an immutable value; every change goes through reduce()
and produces a new VerificationSession.
"""
import re
from dataclasses import dataclass
from typing import Union

from pydantic import BaseModel, ConfigDict

PHONE_DIGITS = 10

_NON_DIGITS = re.compile(r"\D")


class VerificationSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    phone_number: str = ""
    email: str = ""
    is_verified: bool = False

    @property
    def has_phone(self) -> bool:
        return bool(self.phone_number)


@dataclass(frozen=True)
class SetPhone:
    value: str


@dataclass(frozen=True)
class SetEmail:
    value: str


@dataclass(frozen=True)
class MarkVerified:
    verified: bool = True


@dataclass(frozen=True)
class Reset:
    pass


Action = Union[SetPhone, SetEmail, MarkVerified, Reset]


def phone_digits(value: str) -> str:
    """Raw digits as typed into the contact form, capped at ten."""
    return _NON_DIGITS.sub("", value or "")[:PHONE_DIGITS]


def reduce(session: VerificationSession, action: Action) -> VerificationSession:
    if isinstance(action, SetPhone):
        return session.model_copy(update={"phone_number": phone_digits(action.value)})
    if isinstance(action, SetEmail):
        return session.model_copy(update={"email": (action.value or "").strip()})
    if isinstance(action, MarkVerified):
        return session.model_copy(update={"is_verified": action.verified})
    if isinstance(action, Reset):
        return VerificationSession()
    raise TypeError(f"Unknown session action: {action!r}")


@dataclass(frozen=True)
class Notification:
    """One-shot banner shown after an action."""
    kind: str  # "success" | "error" | "info"
    message: str


def success(message: str) -> Notification:
    return Notification("success", message)


def error(message: str) -> Notification:
    return Notification("error", message)


def info(message: str) -> Notification:
    return Notification("info", message)


def format_phone(phone_number: str) -> str:
    """(555) 123-4567 for a ten-digit number, raw input otherwise."""
    digits = phone_digits(phone_number)
    if len(digits) != PHONE_DIGITS:
        return phone_number
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


__all__ = [
    "VerificationSession",
    "SetPhone",
    "SetEmail",
    "MarkVerified",
    "Reset",
    "reduce",
    "phone_digits",
    "format_phone",
    "Notification",
    "success",
    "error",
    "info",
]
