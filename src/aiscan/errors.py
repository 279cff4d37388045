"""Exceptions raised by the scanner."""


class ScanError(Exception):
    """Base class for scanner errors."""


class InvalidURLError(ScanError, ValueError):
    """The target is not an absolute http(s) URL."""

    def __init__(self, url: str, reason: str = "must be an absolute http or https URL") -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL {url!r}: {reason}")
