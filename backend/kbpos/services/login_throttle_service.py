"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the login email is temporarily locked.

SECURITY FEATURES:
- Tracks failed attempts per login email in security_events
- Lockout after LOGIN_MAX_FAILED_ATTEMPTS failures within LOGIN_LOCKOUT_WINDOW_MINUTES
- Lockout lasts LOGIN_LOCKOUT_MINUTES after the most recent failure
- A successful login restarts the count
"""

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent, User
from kbpos.time_utils import utcnow


def _normalize(identifier: str) -> str:
    return (identifier or "").strip().lower()


def _settings() -> tuple[int, timedelta, timedelta]:
    cfg = current_app.config
    return (
        cfg["LOGIN_MAX_FAILED_ATTEMPTS"],
        timedelta(minutes=cfg["LOGIN_LOCKOUT_WINDOW_MINUTES"]),
        timedelta(minutes=cfg["LOGIN_LOCKOUT_MINUTES"]),
    )


def get_recent_failed_attempts(identifier: str) -> int:
    """
    Count failed attempts for a login email within the lockout window,
    ignoring failures from before the last successful login.
    """
    identifier = _normalize(identifier)
    _, window, _ = _settings()
    cutoff = utcnow() - window

    last_success = (
        db.session.query(db.func.max(SecurityEvent.occurred_at))
        .filter(
            SecurityEvent.event_type == "LOGIN_SUCCESS",
            SecurityEvent.identifier == identifier,
        )
        .scalar()
    )
    if last_success and last_success > cutoff:
        cutoff = last_success

    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == "LOGIN_FAILED",
        SecurityEvent.identifier == identifier,
        SecurityEvent.occurred_at >= cutoff,
    ).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Check if a login email is currently locked.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    identifier = _normalize(identifier)
    max_attempts, _, duration = _settings()

    if get_recent_failed_attempts(identifier) < max_attempts:
        return False, None

    most_recent = (
        db.session.query(db.func.max(SecurityEvent.occurred_at))
        .filter(
            SecurityEvent.event_type == "LOGIN_FAILED",
            SecurityEvent.identifier == identifier,
        )
        .scalar()
    )
    if most_recent:
        lockout_end = most_recent + duration
        now = utcnow()
        if now < lockout_end:
            return True, int((lockout_end - now).total_seconds())

    return False, None


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    reason: str = "Invalid credentials",
) -> int:
    """
    Record a failed login attempt.

    Returns the number of recent failed attempts, this one included.
    """
    identifier = _normalize(identifier)
    user = db.session.query(User).filter_by(email=identifier).first()

    db.session.add(SecurityEvent(
        user_id=user.id if user else None,
        event_type="LOGIN_FAILED",
        identifier=identifier[:255],
        success=False,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()

    return get_recent_failed_attempts(identifier)


def record_successful_login(
    user_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    db.session.add(SecurityEvent(
        user_id=user_id,
        event_type="LOGIN_SUCCESS",
        identifier=_normalize(identifier)[:255],
        success=True,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
        occurred_at=utcnow(),
    ))
    db.session.commit()
