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
Installation of the jetson-containers toolkit from its git repository.
"""
import os

import click

from ..MODELS.settings import ToolkitSettings
from ..RUNNERS.command_runner import CommandRunner


class ToolkitInstaller:
    """
    Clones the toolkit once and runs its installer.
    """
    def __init__(self, settings: ToolkitSettings, runner: CommandRunner, base_dir: str = "."):
        """
        :param settings: Toolkit location and installer command.
        :param runner: Runner for git and the installer.
        :param base_dir: Directory the checkout lives in.
        """
        self.settings = settings
        self.runner = runner
        self.base_dir = base_dir

    @property
    def checkout_dir(self) -> str:
        return os.path.join(self.base_dir, self.settings.directory)

    def ensure_cloned(self) -> bool:
        """
        Clones the repository unless the checkout directory already exists.
        An existing checkout is never updated or deleted.

        :return: True if a clone was performed.
        """
        if os.path.isdir(self.checkout_dir):
            click.echo(f"{self.settings.directory} directory already exists. Skipping clone.")
            return False

        click.echo(f"Cloning {self.settings.directory} repository...")
        self.runner.check(
            f"clone {self.settings.directory}",
            ["git", "clone", self.settings.repository_url, self.settings.directory],
            cwd=self.base_dir,
        )
        click.echo(f"{self.settings.directory} cloned successfully.")
        return True

    def install(self):
        """
        Runs the toolkit installer from inside the checkout.
        """
        click.echo(f"Running {self.settings.directory} {' '.join(self.settings.installer)}...")
        self.runner.check(
            f"run {self.settings.directory} installer",
            list(self.settings.installer),
            cwd=self.checkout_dir,
        )
        click.echo(f"{self.settings.directory} installer completed.")
