"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class LivestreamDLError(Exception):
    """Base exception for all application-specific errors."""


class NetworkError(LivestreamDLError):
    """Raised when an HTTP request finishes with a non-2xx status code."""

    def __init__(self, status: int, url: str):
        super().__init__(f"HTTP request returned status code {status} for url: {url}")
        self.status = status
        self.url = url

    @property
    def is_transient(self) -> bool:
        """Server-side errors are worth retrying, client errors are not."""
        return self.status >= 500


class ParsePlaylistError(LivestreamDLError):
    """Raised when a playlist body cannot be parsed as an m3u8 playlist."""

    def __init__(self, url: str, reason: str | None = None):
        message = f"Failed to parse m3u8 playlist from url: {url}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.url = url


class ParseCookieError(LivestreamDLError):
    """Raised for a malformed line in a Netscape cookie file."""

    def __init__(self, line: str):
        super().__init__(f"Failed to parse cookie: {line}")
        self.line = line


class EncryptionError(LivestreamDLError):
    """Raised for unsupported key methods, missing key URIs or malformed IVs."""


class ExternalToolError(LivestreamDLError):
    """Raised when ffmpeg or ffprobe cannot be run or exits with a non-zero status."""

    def __init__(self, tool: str, returncode: int | None, detail: str = ""):
        if returncode is None:
            message = f"{tool} could not be started"
        else:
            message = f"{tool} command failed with exit status {returncode}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode


class ConfigurationError(LivestreamDLError):
    """Raised for issues related to configuration loading or validation."""


class CaptureError(LivestreamDLError):
    """Raised when a playlist poller failed during capture."""


class RemuxError(LivestreamDLError):
    """Raised when concatenating or muxing the captured segments fails."""
