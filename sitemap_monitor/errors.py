"""Error taxonomy for the sitemap monitor."""


class SitemapMonitorError(Exception):
    """Base class for all monitor errors."""


class ConfigError(SitemapMonitorError):
    """Route or page configuration is missing or invalid. Aborts the run."""


class ServerStartupError(SitemapMonitorError):
    """The ephemeral server did not become ready in time."""


class NetworkError(SitemapMonitorError):
    """A request timed out or failed to connect.

    Recovered inside the prober: the URL is recorded as a failed result.
    """

    def __init__(self, url: str, kind: str, message: str):
        super().__init__(f"{kind}: {message}")
        self.url = url
        self.kind = kind


class ReportWriteError(SitemapMonitorError):
    """A report artifact could not be written."""


class AlertDispatchError(SitemapMonitorError):
    """A notification sink could not be reached."""
