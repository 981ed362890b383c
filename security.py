import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader
from passlib.context import CryptContext

from config import settings

logger = logging.getLogger(__name__)

# pbkdf2_sha256 hashes new passwords; bcrypt hashes from older imports still verify.
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

staff_key_header = APIKeyHeader(name="X-Staff-Key", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash."""
    return pwd_context.hash(password)


def require_staff_key(api_key: Optional[str] = Security(staff_key_header)) -> str:
    """Gate back-office routes on the shared staff key.

    Staff sign-in itself happens at the external identity provider; this
    only keeps the admin API off the public portal.
    """
    if not api_key or not secrets.compare_digest(api_key, settings.staff_api_key):
        logger.warning("Rejected back-office request with missing or wrong staff key")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions")
    return api_key
