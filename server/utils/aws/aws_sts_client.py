"""
AWS STS role assumption for the media library.

Supports the two federation paths used when no SSO session is available on
the host: AssumeRole guarded by an External ID, and AssumeRoleWithWebIdentity
for OIDC tokens (e.g. a projected service-account token).
"""
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from utils.aws.credential_errors import BaseCredentialsExpiredError, RoleCredentialsUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "MediaLibraryAutoRefresh"
DEFAULT_DURATION_SECONDS = 3600

_EXPIRED_BASE_CREDENTIAL_CODES = {"ExpiredToken", "ExpiredTokenException", "InvalidClientTokenId", "TokenRefreshRequired"}


class STSRoleClient:
    """
    Thin wrapper over the STS client translating AWS errors into the media
    credential error taxonomy.
    """

    def __init__(self, region: str, sts_client: Optional[Any] = None):
        self.region = region
        self.sts = sts_client or boto3.client("sts", region_name=region)

    def assume_role(
        self,
        role_arn: str,
        external_id: str,
        session_name: str = DEFAULT_SESSION_NAME,
        duration_seconds: int = DEFAULT_DURATION_SECONDS,
    ) -> Dict[str, Any]:
        """
        Assume *role_arn* with the given External ID using the process's base
        credentials.

        Returns:
            The ``Credentials`` mapping of the STS response.

        Raises:
            BaseCredentialsExpiredError: base credentials missing or expired
            RoleCredentialsUnavailableError: STS refused the role
        """
        if not role_arn or not external_id:
            raise ValueError("role_arn and external_id are required")

        logger.info(f"Assuming role {role_arn} for media library access")
        try:
            response = self.sts.assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                ExternalId=external_id,
                DurationSeconds=duration_seconds,
            )
        except NoCredentialsError as e:
            logger.error("AWS base credentials not configured; cannot call STS AssumeRole")
            raise BaseCredentialsExpiredError(
                "No AWS base credentials are configured on this host; cannot assume the media library role."
            ) from e
        except ClientError as e:
            self._raise_for_client_error(e, role_arn, "AssumeRole")
        except BotoCoreError as e:
            raise RoleCredentialsUnavailableError(f"STS AssumeRole request failed: {e}") from e

        return self._credentials_from(response, "AssumeRole")

    def assume_role_with_web_identity(
        self,
        role_arn: str,
        web_identity_token: str,
        session_name: str = DEFAULT_SESSION_NAME,
        duration_seconds: int = DEFAULT_DURATION_SECONDS,
    ) -> Dict[str, Any]:
        """Exchange an OIDC token for role credentials."""
        if not role_arn or not web_identity_token:
            raise ValueError("role_arn and web_identity_token are required")

        logger.info(f"Assuming role {role_arn} with web identity token")
        try:
            response = self.sts.assume_role_with_web_identity(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                WebIdentityToken=web_identity_token,
                DurationSeconds=duration_seconds,
            )
        except ClientError as e:
            self._raise_for_client_error(e, role_arn, "AssumeRoleWithWebIdentity")
        except BotoCoreError as e:
            raise RoleCredentialsUnavailableError(f"STS AssumeRoleWithWebIdentity request failed: {e}") from e

        return self._credentials_from(response, "AssumeRoleWithWebIdentity")

    @staticmethod
    def _credentials_from(response: Optional[Dict[str, Any]], operation: str) -> Dict[str, Any]:
        creds = (response or {}).get("Credentials")
        if not creds or not creds.get("AccessKeyId"):
            raise RoleCredentialsUnavailableError(f"{operation} returned no credentials")
        return creds

    @staticmethod
    def _raise_for_client_error(error: ClientError, role_arn: str, operation: str) -> None:
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        error_message = error.response.get("Error", {}).get("Message", str(error))

        if error_code in _EXPIRED_BASE_CREDENTIAL_CODES:
            logger.error(f"{operation} for {role_arn} failed, base credentials expired: {error_code}")
            raise BaseCredentialsExpiredError(
                "AWS base credentials have expired. Refresh them before the media library role can be assumed."
            ) from error
        if error_code == "AccessDenied":
            logger.error(f"Access denied assuming role {role_arn}: {error_message}")
            hint = "ExternalId and trust policy" if operation == "AssumeRole" else "the role's trust policy"
            raise RoleCredentialsUnavailableError(f"Role assumption failed - check {hint}") from error

        logger.error(f"{operation} for {role_arn} failed: {error_code} - {error_message}")
        raise RoleCredentialsUnavailableError(f"{operation} failed ({error_code}): {error_message}") from error
