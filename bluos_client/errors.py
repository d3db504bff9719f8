"""Errors raised by the BluOS client."""

from typing import Optional


class BluOSError(Exception):
    """Base class for every error raised by this package."""


class PayloadReadError(BluOSError):
    """A payload could not be read from its source."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"Error reading payload from {path}: {cause}")
        self.path = path
        self.cause = cause


class RequestError(BluOSError):
    """A GET request to a player failed."""

    def __init__(self, url: str, cause: Exception) -> None:
        super().__init__(f"Error performing GET request to {url}: {cause}")
        self.url = url
        self.cause = cause


class RequestFetchError(BluOSError):
    """The request went through but its body could not be fetched."""

    def __init__(self, url: str, cause: Exception) -> None:
        super().__init__(f"Error fetching data from {url}: {cause}")
        self.url = url
        self.cause = cause


class XMLDecodeError(BluOSError):
    """
    A payload is not readable as the expected response shape.

    Carries the offending markup and the URL it came from so the
    failure can be diagnosed without re-fetching.
    """

    def __init__(self, xml: str, url: str, reason: str) -> None:
        super().__init__(f"Error parsing XML {xml!r} from {url or '<unknown>'}: {reason}")
        self.xml = xml
        self.url = url
        self.reason = reason


class DiscoveryError(BluOSError):
    """Base class for discovery failures."""


class AlreadyDiscoveringError(DiscoveryError):
    def __init__(self) -> None:
        super().__init__("Already discovering using zeroconf")


class DiscoveryCancelError(DiscoveryError):
    """The cancel signal could not be delivered; the search already finished."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "Discovery is not running, nothing to cancel")


class NoControllerFoundError(DiscoveryError):
    def __init__(self) -> None:
        super().__init__("Could not find BluOS controller")


class UnknownError(BluOSError):
    """Unclassified failure."""
