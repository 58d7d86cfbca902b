"""
Operator authentication gate

The core only asks one question: is this caller the operator?
"""
import logging
import secrets
from typing import Optional, Set

from werkzeug.security import check_password_hash, generate_password_hash

from classroom_arena.errors import AuthorizationError


logger = logging.getLogger(__name__)


class OperatorAuth:
    def __init__(self, email: str, password: str):
        self.email = email.strip().lower()
        self._password_hash = generate_password_hash(password)
        self._tokens: Set[str] = set()

    def sign_in(self, email: str, password: str) -> str:
        if (email or "").strip().lower() != self.email or not check_password_hash(
            self._password_hash, password or ""
        ):
            logger.warning(f"⚠️ Rejected operator sign-in for '{email}'")
            raise AuthorizationError("Invalid operator credentials")
        token = secrets.token_urlsafe(32)
        self._tokens.add(token)
        logger.info("🔑 Operator signed in")
        return token

    def sign_out(self, token: Optional[str]) -> None:
        if token:
            self._tokens.discard(token)

    def is_operator(self, token: Optional[str]) -> bool:
        return bool(token) and token in self._tokens

    def require(self, token: Optional[str]) -> None:
        if not self.is_operator(token):
            raise AuthorizationError("Operator sign-in required")
