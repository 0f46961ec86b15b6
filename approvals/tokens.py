"""Signed action links.

A token is a truncated HMAC-SHA256 of ``"{company_id}:{action}"``. Nothing is
stored: verifying means signing again and comparing. The same link can be
regenerated at any time, for instance to resend an email.
"""

import hashlib
import hmac
from urllib.parse import urlencode

from approvals.models import Action


DEFAULT_LENGTH = 32


def sign(
    secret: str,
    company_id: str,
    action: Action,
    *,
    length: int = DEFAULT_LENGTH,
) -> str:
    digest = hmac.new(
        secret.encode("utf-8"),
        f"{company_id}:{action.value}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest[:length]


def verify(
    secret: str,
    company_id: str,
    action: Action,
    token: str,
    *,
    length: int = DEFAULT_LENGTH,
) -> bool:
    expected = sign(secret, company_id, action, length=length)
    # compare_digest needs ascii on both sides
    if not token.isascii():
        return False
    return hmac.compare_digest(expected, token)


class TokenAuthority:
    def __init__(self, secret: str, *, length: int = DEFAULT_LENGTH) -> None:
        if not secret:
            raise ValueError("An action secret is required.")
        if not 16 <= length <= 64:
            raise ValueError("Token length must be between 16 and 64.")
        self.secret = secret
        self.length = length

    def sign(self, company_id: str, action: Action) -> str:
        return sign(self.secret, company_id, action, length=self.length)

    def verify(self, company_id: str, action: Action, token: str) -> bool:
        return verify(self.secret, company_id, action, token, length=self.length)

    def links(self, company_id: str, base_url: str) -> dict[Action, str]:
        """Approve and reject urls for the email sent to the admins."""
        base_url = base_url.rstrip("/")
        links: dict[Action, str] = {}
        for action in Action:
            params = urlencode(
                {
                    "companyId": company_id,
                    "action": action.value,
                    "token": self.sign(company_id, action),
                }
            )
            links[action] = f"{base_url}/email-action?{params}"
        return links
