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
The setup flow: install the toolkit, verify a base container runs and build
the derived application image.
"""
import logging
import os
import time
from typing import Optional

import click

from ..BUILDERS.dockerfile_builder import DockerfileBuilder
from ..errors import LivenessError, StepFailedError
from ..MODELS.settings import Settings
from ..RUNNERS.command_runner import CommandRunner
from ..RUNNERS.image_resolver import ImageResolver
from .container_engine import ContainerEngine
from .resource_guard import CleanupGuard, ensure_absent
from .toolkit_installer import ToolkitInstaller

logger = logging.getLogger(__name__)

INSTALL_HINT = "You might need to run the install.sh script from the jetson-containers directory."
BUILD_HINT = (
    "If you see 'IncompleteRead' or network errors, it might be a temporary network issue. "
    "Try running setup again; if it persists, check the device's internet connection."
)


class Provisioner:
    """
    Runs the provisioning steps in order, stopping at the first failure.

    The temporary container and build directory are removed whatever the
    outcome; the derived image and the toolkit checkout are kept.
    """
    def __init__(self, settings: Settings,
                 runner: Optional[CommandRunner] = None,
                 sleep=time.sleep):
        """
        :param settings: Complete configuration.
        :param runner: Runner for external commands.
        :param sleep: Sleep function used for the settling delay.
        """
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.sleep = sleep
        self.engine = ContainerEngine(self.runner, settings.engine)
        self.installer = ToolkitInstaller(settings.toolkit, self.runner, settings.base_dir)
        self.resolver = ImageResolver(self.runner, settings.provision.resolver_command)
        self.builder = DockerfileBuilder(settings.build)

    @property
    def build_dir(self) -> str:
        return os.path.join(self.settings.base_dir, self.settings.build.directory)

    def run(self) -> str:
        """
        Executes the whole flow.

        :return: The resolved base image reference.
        :raises ProvisionError: On the first failed step, after cleanup.
        """
        click.echo("Starting initial setup...")
        guard = CleanupGuard(self.engine, self.settings.provision.container_name, self.build_dir)
        with guard:
            self.runner.require("git")
            self.runner.require(self.settings.engine)

            self.installer.ensure_cloned()
            self.installer.install()

            base_image = self.resolve_base_image()
            self.start_container(base_image)
            self.verify_running()

            click.echo("Initial setup completed. Now building the custom image.")
            self.build_image(base_image)

        build = self.settings.build
        launch = self.settings.launch
        click.echo("Setup and custom image creation complete!")
        click.echo("You can now run your custom image with the following command:")
        click.echo(
            f"{self.settings.toolkit.executable} run $(autotag {launch.image_name}) "
            f"bash -c \"{launch.container_command}\""
        )
        logger.info("Built %s from %s", build.image_tag, base_image)
        return base_image

    def resolve_base_image(self) -> str:
        self.runner.require(self.settings.toolkit.executable, hint=INSTALL_HINT)
        name = self.settings.build.base_image_name
        reference = self.resolver.resolve(name)
        click.echo(f"Determined base image: {reference}")
        return reference

    def start_container(self, image: str):
        """
        Starts the fixed-name temporary container in detached mode, replacing
        any leftover from a previous run.
        """
        name = self.settings.provision.container_name
        click.echo(f"Running {self.settings.build.base_image_name} container in detached mode...")
        ensure_absent(self.engine, name)
        self.runner.check(
            f"run {self.settings.build.base_image_name} container",
            [self.settings.toolkit.executable, "run", "--detach", "--name", name, image],
            cwd=self.settings.base_dir,
            hint="Check previous errors for container startup issues.",
        )
        click.echo(f"Container '{name}' started.")

    def verify_running(self):
        """
        Waits for the settling delay, then confirms the container is still up.

        :raises LivenessError: If it is not in the running state.
        """
        name = self.settings.provision.container_name
        self.sleep(self.settings.provision.settle_delay)
        if not self.engine.is_running(name):
            raise LivenessError(name, self.settings.engine)
        click.echo(f"Container '{name}' is running.")

    def build_image(self, base_image: str):
        """
        Generates the Dockerfile and builds the derived image from it.
        """
        build = self.settings.build
        path = self.builder.write(self.build_dir)
        click.echo(f"Dockerfile created at {path}.")

        click.echo(f"Building {build.image_tag} from {base_image}"
                   f"{' with --no-cache' if build.no_cache else ''}...")
        result = self.engine.build(
            build.image_tag,
            self.build_dir,
            build_args={"BASE_IMAGE": base_image},
            no_cache=build.no_cache,
        )
        if not result.ok:
            raise StepFailedError(f"build {build.image_tag} image", result.returncode, hint=BUILD_HINT)
        click.echo(f"{build.image_tag} image built successfully.")
