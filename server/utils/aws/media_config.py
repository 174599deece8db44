"""
Configuration for the media library credential lifecycle.

Values come from the environment (a ``.env`` file is honoured). The defaults
are the account, role, region and bucket the blog's media library has always
used.
"""
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Refresh this long before the stored credentials expire.
REFRESH_LEAD_TIME = timedelta(minutes=30)
CHECK_INTERVAL_SECONDS = 15 * 60
STARTUP_DELAY_SECONDS = 5

DEFAULT_SETTINGS_KEY = "aws_config"
DEFAULT_SSO_CACHE_DIR = os.path.join("~", ".aws", "sso", "cache")

CREDENTIAL_SOURCES = ("sso_cache", "assume_role", "web_identity")


@dataclass(frozen=True)
class MediaCredentialConfig:
    account_id: str
    role_name: str
    region: str
    bucket_name: str
    credential_source: str = "sso_cache"
    sso_exchange: str = "sdk"
    sso_cache_dir: str = DEFAULT_SSO_CACHE_DIR
    role_arn: Optional[str] = None
    external_id: Optional[str] = None
    web_identity_token_file: Optional[str] = None
    settings_key: str = DEFAULT_SETTINGS_KEY


def load_media_config() -> MediaCredentialConfig:
    """Read ``MediaCredentialConfig`` from environment variables."""
    source = os.getenv("MEDIA_CREDENTIAL_SOURCE", "sso_cache").strip().lower()
    if source not in CREDENTIAL_SOURCES:
        raise ValueError(
            f"Unsupported MEDIA_CREDENTIAL_SOURCE '{source}'. Expected one of: {', '.join(CREDENTIAL_SOURCES)}"
        )

    return MediaCredentialConfig(
        account_id=os.getenv("MEDIA_AWS_ACCOUNT_ID", "007041844937"),
        role_name=os.getenv("MEDIA_AWS_ROLE_NAME", "BlogMediaLibraryAccess"),
        region=os.getenv("MEDIA_AWS_REGION", "eu-west-2"),
        bucket_name=os.getenv("MEDIA_S3_BUCKET", "bedtimeblog-medialibrary"),
        credential_source=source,
        sso_exchange=os.getenv("MEDIA_SSO_EXCHANGE", "sdk").strip().lower(),
        sso_cache_dir=os.getenv("AWS_SSO_CACHE_DIR", DEFAULT_SSO_CACHE_DIR),
        role_arn=os.getenv("MEDIA_AWS_ROLE_ARN") or None,
        external_id=os.getenv("MEDIA_AWS_EXTERNAL_ID") or None,
        web_identity_token_file=(
            os.getenv("MEDIA_WEB_IDENTITY_TOKEN_FILE") or os.getenv("AWS_WEB_IDENTITY_TOKEN_FILE") or None
        ),
        settings_key=os.getenv("MEDIA_CREDENTIALS_SETTINGS_KEY", DEFAULT_SETTINGS_KEY),
    )
