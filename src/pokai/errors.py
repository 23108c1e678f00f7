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
Exception hierarchy for the provisioning and launch flows.

Every error carries the process exit status the CLI should terminate with.
"""
import signal
from typing import Optional


class ProvisionError(Exception):
    """
    Base class for every fatal condition in a flow.
    """
    exit_code = 1

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class ConfigError(ProvisionError):
    """Raised when the configuration file or an override is invalid."""


class MissingPrerequisiteError(ProvisionError):
    """
    A required executable could not be found on PATH.
    """
    def __init__(self, executable: str, hint: Optional[str] = None):
        super().__init__(f"'{executable}' command not found.", hint=hint)
        self.executable = executable


class StepFailedError(ProvisionError):
    """
    An external command exited with a nonzero status.
    """
    def __init__(self, step: str, returncode: int, hint: Optional[str] = None):
        super().__init__(f"Failed to {step} (exit status {returncode}).", hint=hint)
        self.step = step
        self.returncode = returncode


class EmptyResolutionError(ProvisionError):
    """
    The resolver produced no image reference for a logical name.
    """
    def __init__(self, name: str, hint: Optional[str] = None):
        super().__init__(f"Could not determine image tag for '{name}'.", hint=hint)
        self.name = name


class LivenessError(ProvisionError):
    """
    A container was started but was not running after the settling delay.
    """
    def __init__(self, container: str, engine: str = "docker"):
        super().__init__(
            f"Container '{container}' did not stay running.",
            hint=f"Check '{engine} logs {container}' for details.",
        )
        self.container = container
        self.engine = engine


class ReadinessTimeoutError(ProvisionError):
    """The served endpoint did not answer before the deadline."""

    def __init__(self, url: str, timeout: float):
        super().__init__(f"{url} did not respond within {timeout:g} seconds.")
        self.url = url
        self.timeout = timeout


class ServerExitedError(ProvisionError):
    """The background server job terminated before it started serving."""

    def __init__(self, returncode: Optional[int]):
        super().__init__(f"Server job exited early (exit status {returncode}).")
        self.returncode = returncode


class Interrupted(ProvisionError):
    """
    Raised from a signal handler so that guarded flows unwind through cleanup.
    """
    def __init__(self, signum: int):
        super().__init__(f"Interrupted by {signal.Signals(signum).name}.")
        self.signum = signum
