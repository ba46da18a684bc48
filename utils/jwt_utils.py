"""JWT payload decoding (no signature verification)"""

import base64
import datetime
import json
from typing import Any, Dict, Optional


def parse_jwt_claims(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode the claims of a JWT without verifying it

    The identity provider already validated the token; claims are only read
    for display (account name, roles) and expiry hints.

    Args:
        token: JWT string (header.payload.signature)

    Returns:
        Dictionary of claims, or None if the token is not a decodable JWT
    """
    if not token or token.count(".") != 2:
        return None

    _, payload, _ = token.split(".")
    # base64url without padding
    padded = payload + "=" * (-len(payload) % 4)
    try:
        data = base64.urlsafe_b64decode(padded.encode())
        claims = json.loads(data.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None

    return claims if isinstance(claims, dict) else None


def expiry_from_claims(claims: Optional[Dict[str, Any]]) -> Optional[datetime.datetime]:
    """Read the `exp` claim as an aware UTC datetime"""
    exp = (claims or {}).get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    try:
        return datetime.datetime.fromtimestamp(float(exp), datetime.timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
