"""
Error taxonomy for rtvm.

Every core operation raises one of these. The CLI layer maps them onto
messages and exit codes; the core itself never decides how an error is shown.
"""


class RtvmError(Exception):
    """Base exception for all rtvm errors."""

    pass


class ConfigError(RtvmError):
    """Raised when the configuration file is unreadable or invalid."""

    pass


class PluginError(RtvmError):
    """Base exception for plugin registry errors."""

    pass


class PluginAlreadyExists(PluginError):
    """Raised by add when the plugin directory is already present.

    Callers may treat this as success: nothing was changed on disk.
    """

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Plugin named {name} already added")


class PluginNotFound(PluginError):
    """Raised when an operation targets a plugin that does not exist."""

    def __init__(self, name: str, message: str | None = None):
        self.name = name
        super().__init__(message or f"No such plugin: {name}")


class InvalidPluginName(PluginError, ValueError):
    """Raised when a plugin name is empty or not directory-safe."""

    def __init__(self, name: str):
        self.name = name
        if not name:
            message = "Plugin name must not be empty"
        else:
            message = (
                f"{name} is invalid. Name may only contain lowercase letters, "
                "numbers, '_', and '-'"
            )
        super().__init__(message)


class PluginIndexDisabled(PluginError):
    """Raised when a short-name lookup is attempted with the index disabled."""

    pass


class InstallError(RtvmError):
    """Base exception for install directory bookkeeping errors."""

    pass


class VersionAlreadyInstalled(InstallError):
    """Raised when staging an install for a version that is already present."""

    def __init__(self, plugin_name: str, version: str):
        self.plugin_name = plugin_name
        self.version = version
        super().__init__(f"{plugin_name} {version} is already installed")


class VersionNotInstalled(InstallError):
    """Raised when uninstalling a version that has no install directory."""

    def __init__(self, plugin_name: str, version: str):
        self.plugin_name = plugin_name
        self.version = version
        super().__init__(f"{plugin_name} {version} is not installed")


class ExternalOperationError(RtvmError):
    """
    Raised when a subprocess or filesystem operation fails.

    Attributes:
        cause: The underlying exception, if any
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class GitError(ExternalOperationError):
    """
    Raised when a git command fails.

    Attributes:
        command: The git argv that was executed
        returncode: Exit status (None if git could not be started)
        stderr: Captured stderr of the command
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
