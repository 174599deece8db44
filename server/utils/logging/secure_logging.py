"""
Secure logging utilities to prevent credential exposure in logs.
"""

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Common credential field patterns to censor
CREDENTIAL_PATTERNS = [
    'password', 'secret', 'key', 'token', 'credential', 'auth',
    'access_key', 'secret_key', 'session_token',
]

def mask_credential_value(value: str, show_prefix: int = 4) -> str:
    """
    Mask a credential value, showing only a prefix for identification.

    Args:
        value: The credential value to mask
        show_prefix: Number of characters to show at the beginning

    Returns:
        Masked string like "ASIA***MASKED***"
    """
    if not value or len(value) <= show_prefix:
        return "***MASKED***"

    return f"{value[:show_prefix]}***MASKED***"

def is_credential_field(field_name: str) -> bool:
    """
    Check if a field name appears to contain credential data.

    camelCase names (``accessKey``, ``sessionToken``) are matched as well.
    """
    field_lower = field_name.lower()
    return any(pattern.replace('_', '') in field_lower.replace('_', '') for pattern in CREDENTIAL_PATTERNS)

def censor_aws_credentials(creds: Dict[str, Any]) -> Dict[str, Any]:
    """
    Censor AWS credentials for safe logging.

    Access keys keep a 4 character prefix, secret keys and session tokens are
    replaced entirely. Other credential-looking fields are masked too.
    """
    safe_creds = {}
    for field, value in creds.items():
        normalized = field.lower().replace('_', '')
        if normalized in ('accesskey', 'accesskeyid', 'awsaccesskeyid'):
            safe_creds[field] = mask_credential_value(value, 4) if isinstance(value, str) else "***MASKED***"
        elif normalized in ('sessiontoken', 'awssessiontoken'):
            safe_creds[field] = "***MASKED***" if value else None
        elif is_credential_field(field) and value is not None:
            safe_creds[field] = "***MASKED***"
        else:
            safe_creds[field] = value
    return safe_creds

def safe_log_aws_creds(creds: Dict[str, Any], logger_func: callable, message: str = "AWS credentials") -> None:
    """Log AWS credentials safely."""
    censored = censor_aws_credentials(creds)
    logger_func(f"{message}: {censored}")
