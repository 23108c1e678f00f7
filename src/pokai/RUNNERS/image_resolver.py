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
Resolution of short logical image names into tag-qualified references.
"""
import logging
from typing import List

from ..errors import EmptyResolutionError
from .command_runner import CommandRunner

logger = logging.getLogger(__name__)


class ImageResolver:
    """
    Wraps an autotag-style helper that prints the best matching image
    reference for a logical name on stdout.
    """
    def __init__(self, runner: CommandRunner, command: List[str]):
        """
        :param runner: Runner used to invoke the helper.
        :param command: Helper invocation, e.g. ['autotag'] or ['jetson-containers', 'autotag'].
        """
        self.runner = runner
        self.command = list(command)

    def resolve(self, name: str) -> str:
        """
        Resolves a logical image name.

        The helper may log progress before the answer, so the last non-empty
        line of its output is taken as the reference.

        :raises EmptyResolutionError: If the helper fails or prints nothing.
        """
        result = self.runner.run(self.command + [name], capture=True)
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not result.ok or not lines:
            logger.debug("Resolver output for %s: %r / %r", name, result.stdout, result.stderr)
            raise EmptyResolutionError(
                name,
                hint=f"Ensure '{' '.join(self.command)}' can find the '{name}' image "
                     "(it might need to be built or pulled).",
            )
        reference = lines[-1]
        logger.info("Resolved %s to %s", name, reference)
        return reference
