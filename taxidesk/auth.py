# taxidesk/auth.py
"""
Phone sign-in.

Two pieces: ``PhoneAuthState`` is the immutable state of the sign-in screen
(phone entry -> code entry -> authenticated) and ``OtpService`` issues and
checks one-time codes against the ``otp_challenges`` table.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Protocol

import bcrypt
from sqlalchemy.orm import Session

from taxidesk import models
from taxidesk.config import settings
from taxidesk.schemas import MIN_PHONE_DIGITS, normalize_phone

logger = logging.getLogger(__name__)


# ---------------- Errors ----------------

class OtpError(Exception):
    """Base class; the message is shown to the user as-is."""


class InvalidPhoneError(OtpError):
    pass


class InvalidCodeError(OtpError):
    pass


class CodeExpiredError(OtpError):
    pass


class TooManyAttemptsError(OtpError):
    pass


class ProfileDetailsRequiredError(OtpError):
    pass


# ---------------- bcrypt ----------------

def bcrypt_hash(plain: str) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def bcrypt_verify(plain: str, hashed: Optional[str]) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), (hashed or "").strip().encode("utf-8"))
    except ValueError:
        return False


# ---------------- Code delivery ----------------

class Sender(Protocol):
    def send(self, phone: str, code: str) -> None: ...


class ConsoleSender:
    """Writes the code to the application log instead of sending an SMS."""

    def send(self, phone: str, code: str) -> None:
        logger.info("One-time code for %s: %s", phone, code)


def get_sender(name: Optional[str] = None) -> Sender:
    name = (name or settings.sms_backend).lower()
    if name == "console":
        return ConsoleSender()
    raise ValueError(f"Unknown SMS backend: {name}")


# ---------------- Code service ----------------

@dataclass(frozen=True)
class IssuedCode:
    phone: str
    is_new_user: bool
    expires_at: datetime


def check_phone(phone: str) -> str:
    phone = normalize_phone(phone)
    if sum(ch.isdigit() for ch in phone) < MIN_PHONE_DIGITS:
        raise InvalidPhoneError("Please enter a valid phone number")
    return phone


def find_profile(db: Session, phone: str) -> Optional[models.Profile]:
    return db.query(models.Profile).filter(models.Profile.phone == phone).first()


def admin_exists(db: Session) -> bool:
    return db.query(models.Profile).filter(models.Profile.role == "admin").first() is not None


class OtpService:
    def __init__(
        self,
        sender: Optional[Sender] = None,
        length: Optional[int] = None,
        ttl_minutes: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        self.sender = sender or get_sender()
        self.length = length or settings.otp_length
        self.ttl = timedelta(minutes=ttl_minutes or settings.otp_ttl_minutes)
        self.max_attempts = max_attempts or settings.otp_max_attempts

    def _new_code(self) -> str:
        return "".join(secrets.choice(string.digits) for _ in range(self.length))

    def _open_challenge(self, db: Session, phone: str) -> Optional[models.OtpChallenge]:
        return (
            db.query(models.OtpChallenge)
            .filter(models.OtpChallenge.phone == phone, models.OtpChallenge.consumed == False)  # noqa: E712
            .order_by(models.OtpChallenge.id.desc())
            .first()
        )

    def issue_code(self, db: Session, phone: str, now: Optional[datetime] = None) -> IssuedCode:
        phone = check_phone(phone)
        now = now or datetime.utcnow()

        # a new code replaces any still-open one
        db.query(models.OtpChallenge).filter(
            models.OtpChallenge.phone == phone, models.OtpChallenge.consumed == False  # noqa: E712
        ).update({"consumed": True})

        code = self._new_code()
        challenge = models.OtpChallenge(phone=phone, code_hash=bcrypt_hash(code), expires_at=now + self.ttl)
        db.add(challenge)
        db.commit()

        self.sender.send(phone, code)
        is_new = find_profile(db, phone) is None
        logger.info("Issued sign-in code for %s (new user: %s)", phone, is_new)
        return IssuedCode(phone=phone, is_new_user=is_new, expires_at=challenge.expires_at)

    def verify_code(
        self,
        db: Session,
        phone: str,
        code: str,
        full_name: Optional[str] = None,
        role: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> models.Profile:
        phone = check_phone(phone)
        now = now or datetime.utcnow()
        profile = find_profile(db, phone)
        if profile is None and not (full_name or "").strip():
            raise ProfileDetailsRequiredError("Please enter your full name")

        challenge = self._open_challenge(db, phone)
        if challenge is None:
            raise InvalidCodeError("No active code for this number. Request a new one.")
        if challenge.expires_at < now:
            challenge.consumed = True
            db.commit()
            raise CodeExpiredError("This code has expired. Request a new one.")
        if (challenge.attempts or 0) >= self.max_attempts:
            challenge.consumed = True
            db.commit()
            raise TooManyAttemptsError("Too many attempts. Request a new code.")

        if not bcrypt_verify((code or "").strip(), challenge.code_hash):
            challenge.attempts = (challenge.attempts or 0) + 1
            exhausted = challenge.attempts >= self.max_attempts
            if exhausted:
                challenge.consumed = True
            db.commit()
            logger.warning("Wrong sign-in code for %s (attempt %s)", phone, challenge.attempts)
            if exhausted:
                raise TooManyAttemptsError("Too many attempts. Request a new code.")
            raise InvalidCodeError("Invalid code. Please try again.")

        challenge.consumed = True
        if profile is None:
            profile = models.Profile(phone=phone, full_name=full_name.strip(), role=self._grant_role(db, role))
            db.add(profile)
            logger.info("Created profile for %s with role %s", phone, profile.role)
        db.commit()
        db.refresh(profile)
        return profile

    @staticmethod
    def _grant_role(db: Session, requested: Optional[str]) -> str:
        """First profile ever is admin; otherwise admin only while none exists."""
        if db.query(models.Profile).first() is None:
            return "admin"
        role = requested if requested in models.ROLES else "driver1"
        if role == "admin" and admin_exists(db):
            logger.warning("Admin role requested but an admin already exists; granting driver1")
            return "driver1"
        return role


# ---------------- Sign-in screen state ----------------

class AuthStep(str, Enum):
    PHONE_ENTRY = "phone_entry"
    OTP_ENTRY = "otp_entry"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class PhoneAuthState:
    step: AuthStep = AuthStep.PHONE_ENTRY
    phone: str = ""
    is_new_user: bool = False
    error: Optional[str] = None
    user_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "step": self.step.value,
            "phone": self.phone,
            "is_new_user": self.is_new_user,
            "error": self.error,
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PhoneAuthState":
        if not data:
            return cls()
        try:
            step = AuthStep(data.get("step"))
        except ValueError:
            return cls()
        return cls(
            step=step,
            phone=data.get("phone") or "",
            is_new_user=bool(data.get("is_new_user")),
            error=data.get("error"),
            user_id=data.get("user_id"),
        )


def request_code(state: PhoneAuthState, db: Session, service: OtpService, phone: str) -> PhoneAuthState:
    """phone_entry -> otp_entry; failures stay on phone entry with the error."""
    if state.step is AuthStep.AUTHENTICATED:
        return state
    try:
        issued = service.issue_code(db, phone)
    except OtpError as exc:
        return replace(state, step=AuthStep.PHONE_ENTRY, error=str(exc))
    return PhoneAuthState(step=AuthStep.OTP_ENTRY, phone=issued.phone, is_new_user=issued.is_new_user)


def verify_code(
    state: PhoneAuthState,
    db: Session,
    service: OtpService,
    code: str,
    full_name: Optional[str] = None,
    role: Optional[str] = None,
) -> PhoneAuthState:
    """otp_entry -> authenticated; failures stay on code entry with the error."""
    if state.step is not AuthStep.OTP_ENTRY:
        return state
    try:
        profile = service.verify_code(db, state.phone, code, full_name=full_name, role=role)
    except OtpError as exc:
        return replace(state, error=str(exc))
    return PhoneAuthState(step=AuthStep.AUTHENTICATED, phone=state.phone, user_id=profile.id)


def change_number(state: PhoneAuthState) -> PhoneAuthState:
    if state.step is AuthStep.AUTHENTICATED:
        return state
    return PhoneAuthState(phone=state.phone)
