"""
Credential set persisted for the media library.

A ``CredentialSet`` is the unit that is produced by an extractor, written to
the settings table and read back by the expiry checker and the status
reporter. It is always replaced as a whole, never patched field by field.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored or provider-supplied timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings (``Z`` or ``UTC`` suffix, or an explicit offset), datetimes and
    epoch milliseconds (the format returned by ``sso.get_role_credentials``).
    Naive values are taken as UTC. Returns None for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str) and value:
        # botocore's legacy SSO token cache writes "%Y-%m-%dT%H:%M:%SUTC"
        for suffix in ("UTC", "Z"):
            if value.endswith(suffix):
                value = value[: -len(suffix)] + "+00:00"
                break
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class CredentialSet:
    """Temporary AWS credentials plus the configuration echoed with them."""

    access_key: str
    secret_key: str
    session_token: Optional[str]
    expires_at: Optional[datetime]
    region: Optional[str] = None
    bucket_name: Optional[str] = None
    last_refresh: Optional[datetime] = None

    def with_last_refresh(self, when: datetime) -> "CredentialSet":
        return replace(self, last_refresh=when)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the JSON shape stored under the ``aws_config`` key."""
        return {
            "accessKey": self.access_key,
            "secretKey": self.secret_key,
            "sessionToken": self.session_token,
            "region": self.region,
            "bucketName": self.bucket_name,
            "expiresAt": format_timestamp(self.expires_at) if self.expires_at else None,
            "lastRefresh": format_timestamp(self.last_refresh) if self.last_refresh else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialSet":
        """
        Build a set from a stored record.

        Missing or malformed timestamps become None so that the caller can
        report the record as invalid instead of failing to read it.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Stored AWS config must be a JSON object, got {type(data).__name__}")

        return cls(
            access_key=data.get("accessKey") or "",
            secret_key=data.get("secretKey") or "",
            session_token=data.get("sessionToken"),
            expires_at=parse_timestamp(data.get("expiresAt")),
            region=data.get("region"),
            bucket_name=data.get("bucketName"),
            last_refresh=parse_timestamp(data.get("lastRefresh")),
        )
