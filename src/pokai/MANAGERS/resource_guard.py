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
Lifecycle helpers for the fixed-name temporary container and build directory:
bootstrap before creation and guaranteed cleanup on every exit path.
"""
import logging
import os
import shutil
import signal
import threading
from typing import Dict, Optional

import click

from ..errors import Interrupted
from .container_engine import ContainerEngine

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def ensure_absent(engine: ContainerEngine, name: str, announce: bool = True) -> bool:
    """
    Removes a leftover container with the given name, if any.

    Stop and remove failures are ignored since the container may already be
    stopped or gone.

    :return: True if a leftover container was found.
    """
    if not engine.exists(name):
        return False
    if announce:
        click.echo(f"Found existing '{name}' container. Attempting to remove it first.")
    stopped = engine.stop(name)
    removed = engine.remove(name)
    logger.debug("Discarded %s (stop=%d, rm=%d)", name, stopped.returncode, removed.returncode)
    return True


class CleanupGuard:
    """
    Removes the temporary container and build directory when the guarded
    block exits, whether normally, by exception or by SIGINT/SIGTERM.

    Signals are translated into Interrupted so that they unwind through
    __exit__. Handlers can only be installed from the main thread; elsewhere
    the guard still cleans up on normal and error exits.
    """
    def __init__(self, engine: ContainerEngine, container_name: str,
                 build_dir: Optional[str] = None):
        self.engine = engine
        self.container_name = container_name
        self.build_dir = build_dir
        self._previous: Dict[int, object] = {}
        self._cleaning = False

    def __enter__(self) -> "CleanupGuard":
        if threading.current_thread() is threading.main_thread():
            for signum in HANDLED_SIGNALS:
                self._previous[signum] = signal.signal(signum, self._on_signal)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._cleaning = True
        try:
            self.cleanup()
        finally:
            self._cleaning = False
            for signum, handler in self._previous.items():
                signal.signal(signum, handler)
            self._previous.clear()
        return False

    def _on_signal(self, signum, frame):
        # Signals arriving while cleaning up must not abort the cleanup
        if not self._cleaning:
            raise Interrupted(signum)

    def cleanup(self):
        """
        Removes whatever still exists. Safe to call repeatedly; never raises.
        """
        click.echo("Performing cleanup...")
        try:
            if ensure_absent(self.engine, self.container_name, announce=False):
                click.echo("Temporary container cleaned up.")
            else:
                click.echo(f"Temporary container '{self.container_name}' not found, skipping removal.")
        except Exception as e:
            logger.warning("Could not clean up container %s: %s", self.container_name, e)

        if self.build_dir and os.path.isdir(self.build_dir):
            try:
                shutil.rmtree(self.build_dir)
                click.echo("Temporary build directory removed.")
            except OSError as e:
                logger.warning("Could not remove %s: %s", self.build_dir, e)

