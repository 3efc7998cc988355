"""
Token helpers for the delegated Supabase auth.

Sign-up and sign-in happen against Supabase directly; this service only
verifies the HS256 access token Supabase issues and, for local tooling,
mints tokens with the same claim shape.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union
from jose import jwt

from snet.core.config import settings

ALGORITHM = "HS256"


def build_student_email(username: str, domain: Optional[str] = None) -> str:
    """
    Students sign up with a username only; Supabase still needs an email,
    so a synthetic one is derived: {username}.student@{domain}.
    """
    username = username.strip().lower()
    if not username:
        raise ValueError("username must not be empty")
    return f"{username}.student@{domain or settings.STUDENT_EMAIL_DOMAIN}"


def is_student_email(email: str, domain: Optional[str] = None) -> bool:
    return email.lower().endswith(f".student@{domain or settings.STUDENT_EMAIL_DOMAIN}")


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    role: str = "authenticated",
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(hours=1)
    to_encode = {
        "exp": expire,
        "sub": str(subject),
        "aud": settings.SUPABASE_JWT_AUDIENCE,
        "role": role,
    }
    if extra_claims:
        to_encode.update(extra_claims)
    return jwt.encode(to_encode, settings.SUPABASE_JWT_SECRET, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[ALGORITHM],
        audience=settings.SUPABASE_JWT_AUDIENCE,
    )
