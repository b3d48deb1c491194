import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from errors import AuthorizationError

logger = logging.getLogger(__name__)


def hash_pin(pin: str) -> str:
    """
    Turns "1234" into a secure hash like "$2b$12$..."
    """
    # bcrypt requires bytes, not strings
    pin_bytes = pin.encode('utf-8')
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pin_bytes, salt)
    return hashed.decode('utf-8') # Return as string for database

def verify_pin(plain_pin: str, hashed_pin: Optional[str]) -> bool:
    """
    Checks if "1234" matches the stored hash.
    """
    if not hashed_pin:
        return False

    # Legacy rows that were compared against the stored value as-is
    if hmac.compare_digest(plain_pin.encode('utf-8'), hashed_pin.encode('utf-8')):
        return True

    pin_bytes = plain_pin.encode('utf-8')
    hashed_bytes = hashed_pin.encode('utf-8')

    try:
        return bcrypt.checkpw(pin_bytes, hashed_bytes)
    except ValueError:
        # Stored value is not a bcrypt hash
        return False

def authorize_pin(plain_pin: str, hashed_pin: Optional[str], error: str = "Invalid transaction pin"):
    """
    Raises AuthorizationError unless the PIN matches. Users without a PIN are always rejected.
    """
    if not hashed_pin:
        logger.warning("PIN-gated operation attempted without a stored PIN")
        raise AuthorizationError("Invalid credentials")
    if not verify_pin(plain_pin, hashed_pin):
        logger.warning("Invalid transaction pin")
        raise AuthorizationError(error)

# --- AUTH CONTEXT ---

ALGORITHM = "HS256"

def issue_token(user_id: str, secret_key: str, expires_minutes: int = 30) -> str:
    """
    Creates a signed access token for a user id, valid for `expires_minutes`.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode = {"sub": user_id, "exp": expire}
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)

def read_token(token: str, secret_key: str) -> str:
    """
    Returns the user id a bearer token was issued for.
    """
    if not secret_key:
        raise AuthorizationError("Unauthorised", message="Authentication is not configured", status_code=401)
    try:
        payload = jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected access token: %s", e)
        raise AuthorizationError("Unauthorised", message="Invalid token", status_code=401)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthorizationError("Unauthorised", message="Invalid token", status_code=401)
    return user_id
