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
Execution of external commands, either blocking with status inspection or
detached as background jobs.
"""
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

import psutil

from ..errors import MissingPrerequisiteError, StepFailedError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """
    Outcome of a finished command.
    """
    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class BackgroundJob:
    """
    A command started without waiting for it to finish.
    """
    def __init__(self, argv: List[str], process: subprocess.Popen, log_handle=None):
        self.argv = argv
        self.process = process
        self.log_handle = log_handle

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        """
        Exit status if the job has finished, None otherwise.
        """
        return self.process.poll()

    def is_running(self) -> bool:
        """
        Checks whether the job's process is still alive.

        Zombies count as exited.
        """
        if self.process.poll() is not None:
            return False
        try:
            return psutil.Process(self.pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False

    def stop(self, timeout: int = 10):
        """
        Sends SIGTERM, followed by SIGKILL if the job does not exit in time.
        """
        if self.is_running():
            logger.debug("Stopping job %s", self.pid)
            self.process.terminate()
            try:
                self.process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.debug("Job %s did not terminate, killing", self.pid)
                self.process.kill()
                self.process.wait()
        if self.log_handle:
            self.log_handle.close()
            self.log_handle = None


class CommandRunner:
    """
    Runs external commands without a shell.
    """
    def __init__(self, env: Optional[dict] = None):
        """
        :param env: Environment for child processes. Defaults to the current one.
        """
        self.env = env

    def which(self, executable: str) -> Optional[str]:
        """
        Locates an executable on PATH.
        """
        path = self.env.get("PATH") if self.env else None
        return shutil.which(executable, path=path)

    def require(self, executable: str, hint: Optional[str] = None) -> str:
        """
        Locates an executable or fails with a remediation hint.

        :raises MissingPrerequisiteError: If it is not on PATH.
        """
        found = self.which(executable)
        if not found:
            raise MissingPrerequisiteError(executable, hint=hint)
        return found

    def run(self, command: List[str], cwd: Optional[str] = None,
            capture: bool = False) -> CommandResult:
        """
        Runs a command to completion.

        Output is streamed to the console unless captured. A nonzero exit
        status is returned, not raised.

        :param command: Command and arguments to execute.
        :param cwd: Directory to run the command in.
        :param capture: Collect stdout/stderr instead of streaming them.
        :raises MissingPrerequisiteError: If the executable does not exist.
        """
        logger.debug("Running %s (cwd=%s)", " ".join(command), cwd or ".")
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                env=self.env,
                capture_output=capture,
                text=True,
                shell=False,
            )
        except FileNotFoundError as e:
            raise MissingPrerequisiteError(command[0]) from e

        result = CommandResult(
            argv=list(command),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        logger.debug("%s exited with %d", command[0], result.returncode)
        return result

    def check(self, step: str, command: List[str], cwd: Optional[str] = None,
              capture: bool = False, hint: Optional[str] = None) -> CommandResult:
        """
        Runs a command and fails the flow if it does not succeed.

        :param step: Human readable name of the step, used in the diagnostic.
        :raises StepFailedError: On a nonzero exit status.
        """
        result = self.run(command, cwd=cwd, capture=capture)
        if not result.ok:
            raise StepFailedError(step, result.returncode, hint=hint)
        return result

    def spawn(self, command: List[str], cwd: Optional[str] = None,
              log_file: Optional[str] = None) -> BackgroundJob:
        """
        Starts a command in its own session and returns immediately.

        The job is detached from the controlling terminal's process group so
        that it keeps running after this process exits or is interrupted.

        :param log_file: File receiving stdout/stderr. Defaults to the console.
        """
        stdout = None
        log_handle = None
        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            log_handle = open(log_file, 'a')
            stdout = log_handle

        logger.debug("Spawning %s", " ".join(command))
        try:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=subprocess.STDOUT if log_handle else None,
                text=True,
                shell=False,
                start_new_session=True,
            )
        except FileNotFoundError as e:
            if log_handle:
                log_handle.close()
            raise MissingPrerequisiteError(command[0]) from e
        return BackgroundJob(list(command), process, log_handle)
