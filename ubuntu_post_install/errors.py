"""Exception types raised by the provisioning engine."""


class ProvisionError(Exception):
    """Base class for provisioning errors."""


class PrivilegeError(ProvisionError):
    """Raised when elevated privileges cannot be obtained."""


class DownloadError(ProvisionError):
    """Raised when a remote resource cannot be fetched."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        message = f"Failed to download {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ProfileError(ProvisionError):
    """Raised when a provisioning profile cannot be loaded."""
