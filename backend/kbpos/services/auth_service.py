# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every sale must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from ..validation import ConflictError
from kbpos.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


EMAIL_RE = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(name: str, email: str, password: str, role: str = "staff") -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If name/email/role are invalid
        ConflictError: If the email is already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()

    if not name or len(name) > 50:
        raise ValueError("Name is required (max 50 characters)")
    if not EMAIL_RE.match(email):
        raise ValueError("Email is not valid")
    if role not in ROLES:
        raise ValueError(f"Role must be one of: {', '.join(ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def change_password(user: User, current_password: str, new_password: str) -> User:
    """
    Replace a user's password after checking the current one.

    Raises PermissionError if current_password is wrong,
    PasswordValidationError if the new one is weak.
    """
    if not verify_password(current_password or "", user.password_hash):
        raise PermissionError("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.session.commit()
    return user
