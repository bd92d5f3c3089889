import shlex

import click


class BuildError(click.ClickException):
    """Base class for every fatal blasbuilder failure."""

    exit_code = 1


class ConfigurationError(BuildError):
    """Unsupported target, missing override, or an invalid mode combination."""


class ExternalToolError(BuildError):
    """An external command could not be launched or exited unsuccessfully."""

    def __init__(self, command, reason):
        self.command = [str(part) for part in command]
        self.reason = reason
        super().__init__(f"Failed: `{shlex.join(self.command)}` ({reason})")


class EncodingError(BuildError):
    """An external command printed output that is not valid UTF-8."""

    def __init__(self, command, error):
        self.command = [str(part) for part in command]
        super().__init__(f"`{shlex.join(self.command)}` output includes non UTF-8 string: {error}")


class FetchError(BuildError):
    """The OpenBLAS source archive could not be downloaded or unpacked."""
