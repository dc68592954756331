from typing import Optional

from pydantic import BaseModel

# Token issuance is owned by the identity provider; these helpers only keep
# the local register/login flow usable.
TOKEN_PREFIX = "fake-jwt-token-for-"


def get_password_hash(password: str) -> str:
    """
    Placeholder password hashing function.
    In a real deployment the identity provider stores credentials.
    """
    return f"hashed_{password}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return get_password_hash(plain_password) == hashed_password


def create_access_token(data: dict) -> str:
    """Placeholder access token carrying the subject (user id)."""
    return f"{TOKEN_PREFIX}{data.get('sub')}"


def decode_access_token(token: str) -> Optional[str]:
    """
    Returns the subject (user id) if the token is well formed, else None.
    """
    if token.startswith(TOKEN_PREFIX):
        subject = token[len(TOKEN_PREFIX):]
        return subject or None
    return None


class Token(BaseModel):
    access_token: str
    token_type: str
