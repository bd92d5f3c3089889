import subprocess
import shlex
from ..cli_logger import logger
from ..errors import EncodingError, ExternalToolError


def format_command(command):
    return shlex.join(str(part) for part in command)


def run_shell_command(command, env=None, cwd=None, text=True):
    """
    Executes a command and waits for it to exit.

    Args:
        command (list): The command to execute as a list of strings.
        env (dict, optional): A dictionary of environment variables.
        cwd (str, optional): The working directory for the command.
        text (bool): Decode stdout/stderr with the locale encoding. When False
            the raw bytes are returned.

    Returns:
        A tuple (stdout, stderr, return_code).

    Raises:
        ExternalToolError: If the command could not be launched at all.
    """
    try:
        result = subprocess.run(
            [str(part) for part in command],
            capture_output=True,
            text=text,
            errors="replace" if text else None,
            env=env,
            check=False,
            cwd=cwd
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {e.filename}")
        raise ExternalToolError(command, e) from e
    except OSError as e:
        raise ExternalToolError(command, e) from e
    return result.stdout, result.stderr, result.returncode


class CommandRunner:
    """Runs external tools, turning every unsuccessful outcome into an ExternalToolError."""

    def __init__(self, env=None):
        self.env = env

    def _execute(self, command, cwd=None, env=None, text=True):
        logger.info(f"Running: `{format_command(command)}`")
        stdout, stderr, returncode = run_shell_command(
            command, env=env if env is not None else self.env, cwd=cwd, text=text
        )
        if returncode != 0:
            for label, stream in (("Stdout", stdout), ("Stderr", stderr)):
                if stream:
                    if not text:
                        stream = stream.decode("utf-8", errors="replace")
                    logger.error(f"{label}:\n{stream}")
            raise ExternalToolError(command, f"exit status: {returncode}")
        return stdout

    def run(self, command, cwd=None, env=None):
        self._execute(command, cwd=cwd, env=env)

    def output_text(self, command, cwd=None, env=None):
        stdout = self._execute(command, cwd=cwd, env=env, text=False)
        try:
            return stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(command, e) from e
