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
The launch flow: start the application container in the background and
point a browser at its web interface.
"""
import logging
import os
from typing import Optional

import click

from ..errors import MissingPrerequisiteError, ProvisionError
from ..MODELS.settings import Settings
from ..RUNNERS.command_runner import BackgroundJob, CommandRunner
from ..RUNNERS.image_resolver import ImageResolver
from ..UTILS.readiness import countdown, wait_until_serving
from .container_engine import ContainerEngine

logger = logging.getLogger(__name__)

INSTALL_HINT = (
    "Please ensure jetson-containers is correctly installed and in your PATH. "
    "You might need to run 'pokai setup' or the install.sh script from the "
    "jetson-containers directory."
)


class Launcher:
    """
    Starts the application and a viewer.

    Nothing started here is cleaned up, not even on failure or interrupt:
    the server and browser are meant to outlive this process and teardown
    is manual (or through stop()).
    """
    def __init__(self, settings: Settings,
                 runner: Optional[CommandRunner] = None,
                 wait=wait_until_serving,
                 delay=countdown):
        """
        :param settings: Complete configuration.
        :param runner: Runner for external commands.
        :param wait: Readiness check, called as wait(url, timeout, interval, job).
        :param delay: Fixed delay used when readiness checking is disabled.
        """
        self.settings = settings
        self.runner = runner or CommandRunner()
        self.wait = wait
        self.delay = delay
        self.engine = ContainerEngine(self.runner, settings.engine)
        self.resolver = ImageResolver(self.runner, settings.launch.resolver_command)
        self.server: Optional[BackgroundJob] = None
        self.image: Optional[str] = None

    def run(self) -> BackgroundJob:
        """
        Executes the launch flow.

        :return: The background server job.
        :raises ProvisionError: If a prerequisite is missing, the image cannot be
            resolved, the server does not come up or the browser is absent.
        """
        launch = self.settings.launch
        click.echo("Attempting to launch Pokai Vision...")

        self.runner.require(launch.resolver_command[0], hint=INSTALL_HINT)
        self.runner.require(self.settings.toolkit.executable, hint=INSTALL_HINT)

        click.echo(f"Determining image tag for '{launch.image_name}'...")
        self.image = self.resolver.resolve(launch.image_name)
        click.echo(f"Found image: {self.image}")

        self.server = self.start_server(self.image)
        try:
            self.wait_for_server()
            self.open_browser()
        except ProvisionError as e:
            if e.hint is None:
                e.hint = self._server_left_running()
            raise

        self.print_teardown()
        return self.server

    def start_server(self, image: str) -> BackgroundJob:
        launch = self.settings.launch
        command = [self.settings.toolkit.executable, "run", image,
                   "bash", "-c", launch.container_command]
        click.echo("Launching Pokai Vision server in the background...")
        click.echo(f"Server command: {' '.join(command[:-1])} \"{command[-1]}\"")
        log_file = launch.log_file
        if log_file and not os.path.isabs(log_file):
            log_file = os.path.join(self.settings.base_dir, log_file)
        job = self.runner.spawn(command, cwd=self.settings.base_dir, log_file=log_file)
        click.echo(f"Pokai Vision server is starting in the background (Job PID: {job.pid}).")
        return job

    def wait_for_server(self):
        """
        Blocks until the application answers, or for the fixed startup delay
        when probing is disabled.
        """
        launch = self.settings.launch
        if launch.readiness_probe:
            click.echo(f"Waiting up to {launch.readiness_timeout:g} seconds for {launch.url}...")
            self.wait(launch.url, launch.readiness_timeout, launch.poll_interval, self.server)
            click.echo(f"{launch.url} is serving.")
        else:
            click.echo(f"Waiting for {launch.startup_delay} seconds before opening the browser...")
            self.delay(launch.startup_delay)

    def open_browser(self) -> BackgroundJob:
        launch = self.settings.launch
        if not self.runner.which(launch.browser):
            raise MissingPrerequisiteError(
                launch.browser,
                hint=f"Please ensure it is installed (e.g., via 'sudo apt install {launch.browser}'). "
                     + self._server_left_running(),
            )
        click.echo(f"Opening {launch.browser} at {launch.url}...")
        return self.runner.spawn([launch.browser] + list(launch.browser_flags) + [launch.url])

    def _server_left_running(self) -> str:
        launch = self.settings.launch
        pid = self.server.pid if self.server else "unknown"
        return (f"The Pokai Vision server might still be running in the background (Job PID: {pid}). "
                f"You can try to manually open a browser to {launch.url}.")

    def print_teardown(self):
        """
        Tells the operator how to stop what was started.
        """
        click.echo(f"{self.settings.launch.browser} has been launched to connect to the Pokai Vision server.")
        click.echo(f"The server (Job PID: {self.server.pid}) keeps running in the background.")
        click.echo("To stop the Pokai Vision server, either run 'pokai stop' or:")
        click.echo(f"1. Find the container: '{self.settings.engine} ps' (look for the image '{self.image}')")
        click.echo(f"2. Stop it: '{self.settings.engine} stop <container_id_or_name>'")

    def stop(self) -> int:
        """
        Stops every running container created from the application image.

        :return: Number of containers stopped.
        """
        self.runner.require(self.settings.engine)
        image = self.resolver.resolve(self.settings.launch.image_name)
        stopped = 0
        for container_id in self.engine.containers_from(image):
            result = self.engine.stop(container_id)
            if result.ok:
                click.echo(f"Stopped container {container_id}.")
                stopped += 1
            else:
                logger.warning("Could not stop %s: %s", container_id, result.stderr.strip())
        if not stopped:
            click.echo(f"No running containers found for {image}.")
        return stopped
