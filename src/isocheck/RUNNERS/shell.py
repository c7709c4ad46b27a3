# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Synchronous execution of external commands for the scenario stages.
"""
import shlex
import subprocess
from typing import List, Optional, Sequence

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed


class ShellCommandError(subprocess.CalledProcessError):
    """An external command exited with a non-zero status."""

    def __str__(self) -> str:
        message = f"Command '{shlex.join(self.cmd)}' returned non-zero exit status {self.returncode}"
        if self.stderr:
            message += f": {self.stderr.strip()}"
        return message


class Shell:
    """
    Runs argv lists, optionally inside another environment.

    A prefix such as ["docker", "exec", "-i", "test-host"] runs every command
    inside that container. Commands never go through a shell interpreter.
    """
    def __init__(self,
                 prefix: Optional[Sequence[str]] = None,
                 timeout: Optional[float] = None,
                 name: str = "shell",
                 verbose: bool = True):
        """
        Initializes the shell.

        Args:
            prefix (Optional[Sequence[str]]): argv prepended to every command.
            timeout (Optional[float]): Seconds before a command is abandoned.
            name (str): Label used in progress messages.
            verbose (bool): Print each command before running it.
        """
        self.prefix = list(prefix or [])
        self.timeout = timeout
        self.name = name
        self.verbose = verbose

    def _run(self, argv: Sequence[str], input: Optional[str] = None) -> subprocess.CompletedProcess:
        command = self.command(*argv)
        if self.verbose:
            print(f"[{self.name}] Running: {shlex.join(command)}")
        result = subprocess.run(
            command,
            input=input,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            # Avoid shell=True for security reasons (CWE-78)
            shell=False,
        )
        if result.returncode != 0:
            raise ShellCommandError(result.returncode, command, result.stdout, result.stderr)
        return result

    def x(self, *argv: str) -> "Shell":
        """
        Runs a command and fails on a non-zero exit status.

        Returns:
            Shell: self, so calls can be chained.
        """
        self._run(argv)
        return self

    def o(self, *argv: str) -> str:
        """
        Runs a command and returns its standard output.
        """
        return self._run(argv).stdout

    def retry(self, attempts: int, *argv: str, wait: float = 1.0) -> "Shell":
        """
        Runs a command until it succeeds, at most `attempts` times.

        Raises:
            ShellCommandError: From the last attempt when every attempt failed.
        """
        for attempt in Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(wait),
            retry=retry_if_exception_type(ShellCommandError),
            reraise=True,
        ):
            with attempt:
                self._run(argv)
        return self

    def write_file(self, path: str, content: str, mode: int = 0o600) -> "Shell":
        """
        Writes content to a path in the shell's environment and sets its mode.
        """
        quoted = shlex.quote(path)
        script = f"umask 077 && cat > {quoted} && chmod {mode:o} {quoted}"
        self._run(["sh", "-c", script], input=content)
        return self

    def command(self, *argv: str) -> List[str]:
        """The full argv that would run for the given command."""
        return self.prefix + [str(a) for a in argv]
