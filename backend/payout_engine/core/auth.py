import hashlib
import hmac

from fastapi import HTTPException, Request

from payout_engine.core.config import settings


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


def require_operator(request: Request) -> str:
    """Validate the operator API key in the Authorization header.

    When no OPERATOR_API_KEY is configured every request is accepted as the
    local "operator" actor, which keeps development and tests free of keys.
    Returns the actor identifier recorded in ledger ``created_by`` fields.
    """
    if not settings.OPERATOR_API_KEY:
        return "operator"

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="API key is required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    raw_key = auth_header[7:]
    if not raw_key:
        raise HTTPException(status_code=401, detail="API key is required")

    expected = hash_api_key(settings.OPERATOR_API_KEY)
    if not hmac.compare_digest(hash_api_key(raw_key), expected):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return request.headers.get("X-Operator-Id", "operator")
