"""
AWS SSO token exchange.

Turns an SSO access token into role credentials for one account/role pair.
Two interchangeable exchangers are provided: one calling the SSO API through
boto3, one shelling out to ``aws sso get-role-credentials`` for hosts where
only the CLI is configured.
"""
import json
import logging
import subprocess
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.aws.credential_errors import RoleCredentialsUnavailableError, SSOSessionExpiredError

logger = logging.getLogger(__name__)


class SSOTokenExchanger:
    """Interface: ``exchange_token`` returns the ``roleCredentials`` mapping."""

    def exchange_token(self, access_token: str, account_id: str, role_name: str, region: str) -> Dict[str, Any]:
        raise NotImplementedError


def _extract_role_credentials(response: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    role_credentials = (response or {}).get("roleCredentials")
    if not role_credentials or not role_credentials.get("accessKeyId"):
        raise RoleCredentialsUnavailableError("Failed to extract role credentials from AWS SSO")
    return role_credentials


class Boto3SSOTokenExchanger(SSOTokenExchanger):
    """Calls ``sso:GetRoleCredentials`` through boto3."""

    def exchange_token(self, access_token: str, account_id: str, role_name: str, region: str) -> Dict[str, Any]:
        client = boto3.client("sso", region_name=region)
        try:
            response = client.get_role_credentials(
                roleName=role_name,
                accountId=account_id,
                accessToken=access_token,
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            if error_code == "UnauthorizedException":
                logger.error(f"SSO access token rejected for role {role_name} in account {account_id}")
                raise SSOSessionExpiredError(
                    'AWS SSO session has expired or was revoked. Run "aws sso login" again.'
                ) from e
            logger.error(f"SSO GetRoleCredentials failed for role {role_name}: {error_code} - {error_message}")
            raise RoleCredentialsUnavailableError(
                f"AWS SSO refused role credentials ({error_code}): {error_message}"
            ) from e
        except BotoCoreError as e:
            logger.error(f"SSO GetRoleCredentials could not reach AWS: {e}")
            raise RoleCredentialsUnavailableError(f"AWS SSO request failed: {e}") from e

        return _extract_role_credentials(response)


class CliSSOTokenExchanger(SSOTokenExchanger):
    """Runs ``aws sso get-role-credentials`` and parses its JSON output."""

    def __init__(self, aws_cli: str = "aws", timeout: Optional[float] = None):
        self.aws_cli = aws_cli
        self.timeout = timeout

    def exchange_token(self, access_token: str, account_id: str, role_name: str, region: str) -> Dict[str, Any]:
        cmd = [
            self.aws_cli, "sso", "get-role-credentials",
            "--account-id", account_id,
            "--role-name", role_name,
            "--region", region,
            "--access-token", access_token,
            "--output", "json",
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise RoleCredentialsUnavailableError(f"AWS CLI not found ({self.aws_cli})") from e
        except subprocess.TimeoutExpired as e:
            raise RoleCredentialsUnavailableError("aws sso get-role-credentials timed out") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            # The access token is part of argv; only the account and role are logged.
            logger.error(
                "aws sso get-role-credentials failed (exit %d) for role %s in account %s: %s",
                result.returncode, role_name, account_id, stderr,
            )
            if "UnauthorizedException" in stderr or "Session token not found or invalid" in stderr:
                raise SSOSessionExpiredError(
                    'AWS SSO session has expired or was revoked. Run "aws sso login" again.'
                )
            raise RoleCredentialsUnavailableError(f"aws sso get-role-credentials failed: {stderr}")

        try:
            response = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise RoleCredentialsUnavailableError(f"Could not parse AWS CLI output: {e}") from e

        return _extract_role_credentials(response)


def get_token_exchanger(kind: str) -> SSOTokenExchanger:
    """Return the exchanger for ``MEDIA_SSO_EXCHANGE`` (``sdk`` or ``cli``)."""
    if kind == "cli":
        return CliSSOTokenExchanger()
    if kind == "sdk":
        return Boto3SSOTokenExchanger()
    raise ValueError(f"Unsupported SSO exchange '{kind}'. Expected 'sdk' or 'cli'.")
