"""Exception types raised by docs101."""


class Docs101Error(Exception):
    """Base exception for docs101 errors."""

    pass


class StartupError(Docs101Error):
    """Raised when the server cannot start. Fatal: main() exits non-zero."""

    pass


class InvalidPortError(StartupError):
    """Raised when a port string does not resolve to a TCP port."""

    pass


class BindError(StartupError):
    """Raised when listening fails for a reason other than a taken port."""

    pass


class PortExhaustedError(StartupError):
    """Raised when every port up to 65535 is already in use."""

    pass


class BrowserLaunchError(Docs101Error):
    """Raised when no browser could be opened. Never fatal."""

    pass


class ExportError(Docs101Error):
    """Raised when the static export cannot reach the server."""

    pass
