import hmac
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, Optional

from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)

TokenVerifier = Callable[[str], Dict[str, Any]]


@dataclass
class Member:
    name: str
    email: str
    group: str


def firebase_token_verifier(token: str) -> Dict[str, Any]:
    return firebase_auth.verify_id_token(token)


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def token_matches(supplied: Optional[str], expected: str) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def resolve_member(claims: Dict[str, Any], store: Any, group: str) -> Optional[Member]:
    """Map verified token claims to a member of ``group``, or None."""
    email = (claims.get("email") or "").strip()
    if not email:
        return None
    if store.group_for_email(email) != group:
        return None

    name = None
    for member_name, member_email in store.member_emails().items():
        if member_email.strip().lower() == email.lower():
            name = member_name
            break
    if name is None:
        name = claims.get("name") or email
    return Member(name=name, email=email, group=group)


def require_member(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "authentication_required"}), 401

        services = current_app.extensions["payfriends"]
        try:
            claims = services.verify_token(token)
        except (ValueError, FirebaseError) as exc:
            logger.info("Rejected ID token: %s", exc)
            return jsonify({"error": "invalid_token"}), 401

        member = resolve_member(claims, services.store, services.settings.GROUP_NAME)
        if member is None:
            return jsonify({"error": "not_a_member"}), 401
        g.member = member
        return func(*args, **kwargs)

    return wrapper
