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
Structured queries and operations against the container engine CLI.
"""
import logging
from typing import Dict, List, Optional

from ..RUNNERS.command_runner import CommandRunner, CommandResult

logger = logging.getLogger(__name__)


class ContainerEngine:
    """
    Thin wrapper over the docker CLI.

    Existence and state are read with `container inspect` on the exact name
    rather than by scanning listings.
    """
    def __init__(self, runner: CommandRunner, executable: str = "docker"):
        self.runner = runner
        self.executable = executable

    def _inspect(self, name: str, template: str) -> CommandResult:
        return self.runner.run(
            [self.executable, "container", "inspect", "--format", template, name],
            capture=True,
        )

    def exists(self, name: str) -> bool:
        """
        Checks whether a container with this exact name exists, running or not.
        """
        return self._inspect(name, "{{.Name}}").ok

    def is_running(self, name: str) -> bool:
        """
        Checks whether the named container is in the running state.
        """
        result = self._inspect(name, "{{.State.Running}}")
        return result.ok and result.stdout.strip() == "true"

    def stop(self, name: str) -> CommandResult:
        return self.runner.run([self.executable, "stop", name], capture=True)

    def remove(self, name: str) -> CommandResult:
        return self.runner.run([self.executable, "rm", name], capture=True)

    def build(self, tag: str, context: str,
              build_args: Optional[Dict[str, str]] = None,
              no_cache: bool = False) -> CommandResult:
        """
        Builds an image from a context directory, streaming the build log.
        """
        command = [self.executable, "build"]
        if no_cache:
            command.append("--no-cache")
        command += ["-t", tag]
        for key, value in (build_args or {}).items():
            command += ["--build-arg", f"{key}={value}"]
        command.append(context)
        return self.runner.run(command)

    def containers_from(self, image: str) -> List[str]:
        """
        Lists IDs of running containers created from an image.
        """
        result = self.runner.run(
            [self.executable, "ps", "--quiet", "--filter", f"ancestor={image}"],
            capture=True,
        )
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
