"""Exceptions raised while obtaining media library credentials."""


class CredentialRefreshError(Exception):
    """Base class for every failure of a credential refresh cycle."""


class CredentialPreconditionError(CredentialRefreshError):
    """Local state is missing or stale; the operator has to re-authenticate."""


class CredentialProviderError(CredentialRefreshError):
    """The identity provider refused or returned nothing usable."""


class CredentialConfigurationError(CredentialPreconditionError):
    """Required configuration (role ARN, External ID, ...) is absent."""


class SSOCacheNotFoundError(CredentialPreconditionError):
    pass


class SSOTokenNotFoundError(CredentialPreconditionError):
    pass


class SSOSessionExpiredError(CredentialPreconditionError):
    pass


class BaseCredentialsExpiredError(CredentialPreconditionError):
    pass


class WebIdentityTokenNotFoundError(CredentialPreconditionError):
    pass


class RoleCredentialsUnavailableError(CredentialProviderError):
    pass
