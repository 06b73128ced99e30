"""Identity resolution.

Authentication itself happens upstream: the identity provider's proxy
verifies the session and forwards the subject id (and email, when known)
as request headers. This module only reads those headers.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from cardstack.core.config import Settings, get_settings


@dataclass(frozen=True)
class Identity:
    """Subject asserted by the identity provider."""

    external_id: str
    email: str | None = None


def identity_from_headers(
    headers: Mapping[str, str], settings: Settings | None = None
) -> Identity | None:
    """Extract the authenticated identity from request headers.

    Args:
        headers: Case-insensitive request headers.
        settings: Settings naming the identity headers.

    Returns:
        The identity, or None when no subject header is present.
    """
    settings = settings or get_settings()
    external_id = (headers.get(settings.auth_user_header) or "").strip()
    if not external_id:
        return None
    email = (headers.get(settings.auth_email_header) or "").strip() or None
    return Identity(external_id=external_id, email=email)
