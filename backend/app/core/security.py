# app/core/security.py
"""
Security module for authentication.
Handles password hashing and JWT token creation/validation.
The signing secret is always passed in by the caller (taken from Settings).
"""
import datetime as dt
import jwt  # PyJWT
from passlib.context import CryptContext

from app.core.errors import UnauthorizedError

# Password hashing context
# Argon2 is a modern, secure password hashing algorithm
pwd_context = CryptContext(
    schemes=["argon2"],  # Use Argon2 for password hashing
    deprecated="auto",   # Automatically handle deprecated schemes
)

JWT_ALG = "HS256"  # JWT signing algorithm (HMAC SHA-256)


def hash_password(plain: str) -> str:
    """
    Hash a plain text password using Argon2.

    Args:
        plain: Plain text password to hash

    Returns:
        Hashed password string (safe to store in database)
    """
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plain text password against a hashed password.

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain, hashed)


def create_access_token(user_id: int, secret: str, expire_minutes: int) -> str:
    """
    Create a JWT access token bound to a user ID.

    Token payload includes:
        - sub: Subject (user ID, as string)
        - iat: Issued at timestamp
        - exp: Expiration timestamp
    """
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + dt.timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALG)


def decode_access_token(token: str, secret: str) -> dict:
    """
    Decode and validate a JWT access token.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid or malformed
    """
    return jwt.decode(token, secret, algorithms=[JWT_ALG])


def user_id_from_token(token: str, secret: str) -> int:
    """Return the user ID a token was issued for, or raise UnauthorizedError."""
    try:
        payload = decode_access_token(token, secret)
        return int(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
        raise UnauthorizedError("invalid token") from exc
