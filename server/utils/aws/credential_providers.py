"""
Credential extractors for the media library.

Each extractor produces a fresh ``CredentialSet`` from one identity source:

- ``SSOCacheCredentialExtractor``: access token from the local SSO cache,
  exchanged for role credentials (the default)
- ``AssumeRoleCredentialExtractor``: STS AssumeRole with an External ID
- ``WebIdentityCredentialExtractor``: STS AssumeRoleWithWebIdentity (OIDC)

Extractors block on network/CLI calls; the refresh service runs them in an
executor.
"""
import logging
import os
from typing import Optional

from utils.aws.aws_sso_client import SSOTokenExchanger, get_token_exchanger
from utils.aws.aws_sts_client import STSRoleClient
from utils.aws.credential_errors import (
    CredentialConfigurationError,
    RoleCredentialsUnavailableError,
    WebIdentityTokenNotFoundError,
)
from utils.aws.credential_set import CredentialSet, parse_timestamp
from utils.aws.media_config import MediaCredentialConfig
from utils.aws.sso_cache import find_sso_access_token
from utils.logging.secure_logging import mask_credential_value

logger = logging.getLogger(__name__)


class CredentialExtractor:
    """Obtains a new, short-lived ``CredentialSet``."""

    source = "unknown"

    def __init__(self, config: MediaCredentialConfig):
        self.config = config

    def extract(self) -> CredentialSet:
        raise NotImplementedError

    def _credential_set(self, access_key, secret_key, session_token, expiration) -> CredentialSet:
        expires_at = parse_timestamp(expiration)
        if expires_at is None:
            raise RoleCredentialsUnavailableError(
                f"Credentials from {self.source} carry no usable expiration ({expiration!r})"
            )
        logger.info(
            f"Obtained media library credentials via {self.source}: "
            f"key {mask_credential_value(access_key)}, expires {expires_at.isoformat()}"
        )
        return CredentialSet(
            access_key=access_key,
            secret_key=secret_key,
            session_token=session_token,
            expires_at=expires_at,
            region=self.config.region,
            bucket_name=self.config.bucket_name,
        )


class SSOCacheCredentialExtractor(CredentialExtractor):
    source = "sso_cache"

    def __init__(self, config: MediaCredentialConfig, token_exchanger: Optional[SSOTokenExchanger] = None):
        super().__init__(config)
        self.token_exchanger = token_exchanger or get_token_exchanger(config.sso_exchange)

    def extract(self) -> CredentialSet:
        logger.info("Extracting AWS SSO credentials...")
        access_token = find_sso_access_token(self.config.sso_cache_dir)
        role_credentials = self.token_exchanger.exchange_token(
            access_token,
            self.config.account_id,
            self.config.role_name,
            self.config.region,
        )
        return self._credential_set(
            role_credentials["accessKeyId"],
            role_credentials["secretAccessKey"],
            role_credentials.get("sessionToken"),
            role_credentials.get("expiration"),
        )


class AssumeRoleCredentialExtractor(CredentialExtractor):
    source = "assume_role"

    def __init__(self, config: MediaCredentialConfig, sts_client: Optional[STSRoleClient] = None):
        super().__init__(config)
        self._sts_client = sts_client

    @property
    def sts_client(self) -> STSRoleClient:
        if self._sts_client is None:
            self._sts_client = STSRoleClient(self.config.region)
        return self._sts_client

    def extract(self) -> CredentialSet:
        if not self.config.role_arn or not self.config.external_id:
            raise CredentialConfigurationError(
                "MEDIA_AWS_ROLE_ARN and MEDIA_AWS_EXTERNAL_ID must be set to assume the media library role."
            )
        creds = self.sts_client.assume_role(self.config.role_arn, self.config.external_id)
        return self._credential_set(
            creds["AccessKeyId"],
            creds["SecretAccessKey"],
            creds.get("SessionToken"),
            creds.get("Expiration"),
        )


class WebIdentityCredentialExtractor(CredentialExtractor):
    source = "web_identity"

    def __init__(self, config: MediaCredentialConfig, sts_client: Optional[STSRoleClient] = None):
        super().__init__(config)
        self._sts_client = sts_client

    @property
    def sts_client(self) -> STSRoleClient:
        if self._sts_client is None:
            self._sts_client = STSRoleClient(self.config.region)
        return self._sts_client

    def _read_token(self) -> str:
        token_file = self.config.web_identity_token_file
        if not token_file or not os.path.isfile(token_file):
            raise WebIdentityTokenNotFoundError(
                f"Web identity token file not found ({token_file or 'unset'}). "
                "Set MEDIA_WEB_IDENTITY_TOKEN_FILE or AWS_WEB_IDENTITY_TOKEN_FILE."
            )
        with open(token_file, "r", encoding="utf-8") as fh:
            token = fh.read().strip()
        if not token:
            raise WebIdentityTokenNotFoundError(f"Web identity token file {token_file} is empty.")
        return token

    def extract(self) -> CredentialSet:
        if not self.config.role_arn:
            raise CredentialConfigurationError("MEDIA_AWS_ROLE_ARN must be set for web identity federation.")
        creds = self.sts_client.assume_role_with_web_identity(self.config.role_arn, self._read_token())
        return self._credential_set(
            creds["AccessKeyId"],
            creds["SecretAccessKey"],
            creds.get("SessionToken"),
            creds.get("Expiration"),
        )


_EXTRACTORS = {
    SSOCacheCredentialExtractor.source: SSOCacheCredentialExtractor,
    AssumeRoleCredentialExtractor.source: AssumeRoleCredentialExtractor,
    WebIdentityCredentialExtractor.source: WebIdentityCredentialExtractor,
}


def build_extractor(config: MediaCredentialConfig) -> CredentialExtractor:
    """Instantiate the extractor named by ``config.credential_source``."""
    try:
        extractor_cls = _EXTRACTORS[config.credential_source]
    except KeyError:
        raise ValueError(f"Unsupported credential source '{config.credential_source}'") from None
    return extractor_cls(config)
