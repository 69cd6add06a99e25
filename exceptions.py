class SeoScanError(Exception):
    """Base class for scan failures that end a scan as FAILED."""


class TargetUnreachableError(SeoScanError):
    """The scanned site answered neither the page fetch nor the HTTPS probe."""

    def __init__(self, url):
        self.url = url
        super().__init__(f"Target URL is unreachable: {url}")


class InvalidScanTransition(SeoScanError):
    """A scan was asked to move between states the lifecycle does not allow."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move scan from {current} to {requested}")
