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
Shared fixtures: a scripted stand-in for the external commands the flows run.
"""
import os
from typing import Dict, List, Optional, Set

import pytest

from pokai.MODELS.settings import Settings
from pokai.RUNNERS.command_runner import CommandResult, CommandRunner
from pokai.errors import MissingPrerequisiteError


class FakeJob:
    """Background job that never touches the OS."""

    def __init__(self, argv: List[str], pid: int, running: bool = True):
        self.argv = argv
        self.pid = pid
        self.running = running
        self.exit_status: Optional[int] = None

    @property
    def returncode(self):
        return None if self.running else self.exit_status

    def is_running(self) -> bool:
        return self.running

    def stop(self, timeout: int = 10):
        self.running = False
        self.exit_status = -15


class FakeRunner(CommandRunner):
    """
    Simulates git, the installer, the resolvers and a docker daemon holding
    named containers.

    `failures` maps a command prefix such as "docker build" to the exit
    status it should return.
    """
    def __init__(self):
        super().__init__()
        self.calls: List[List[str]] = []
        self.spawned: List[FakeJob] = []
        self.available: Set[str] = {
            "git", "docker", "bash", "jetson-containers", "autotag", "chromium-browser",
        }
        self.resolutions: Dict[str, str] = {
            "l4t-pytorch": "dustynv/l4t-pytorch:r36.2.0",
            "pokai_vision": "pokai_vision:latest",
        }
        self.containers: Dict[str, bool] = {}
        self.created: Dict[str, int] = {}
        self.stays_running = True
        self.failures: Dict[str, int] = {}
        self.images: List[str] = []
        self.build_contexts: List[Dict[str, object]] = []
        self.ancestors: Dict[str, List[str]] = {}

    # helpers

    def commands(self, prefix: str) -> List[List[str]]:
        return [c for c in self.calls if " ".join(c).startswith(prefix)]

    def _failure(self, argv: List[str]) -> Optional[int]:
        joined = " ".join(argv)
        for prefix, code in self.failures.items():
            if joined.startswith(prefix):
                return code
        return None

    # CommandRunner interface

    def which(self, executable: str) -> Optional[str]:
        return f"/usr/bin/{executable}" if executable in self.available else None

    def run(self, command, cwd=None, capture=False) -> CommandResult:
        argv = list(command)
        self.calls.append(argv)
        if argv[0] not in self.available:
            raise MissingPrerequisiteError(argv[0])
        code = self._failure(argv)
        if code is not None:
            return CommandResult(argv, code, "", "simulated failure")
        handler = {
            "git": self._git,
            "docker": self._docker,
            "podman": self._docker,
            "bash": lambda a, c: CommandResult(a, 0),
            "jetson-containers": self._toolkit,
            "autotag": lambda a, c: self._resolve(a, a[1]),
        }[argv[0]]
        return handler(argv, cwd)

    def spawn(self, command, cwd=None, log_file=None) -> FakeJob:
        argv = list(command)
        self.calls.append(argv)
        if argv[0] not in self.available:
            raise MissingPrerequisiteError(argv[0])
        job = FakeJob(argv, pid=4000 + len(self.spawned))
        self.spawned.append(job)
        return job

    # simulated tools

    def _resolve(self, argv, name) -> CommandResult:
        return CommandResult(argv, 0, self.resolutions.get(name, "") + "\n")

    def _git(self, argv, cwd) -> CommandResult:
        os.makedirs(os.path.join(cwd or ".", argv[-1]), exist_ok=True)
        return CommandResult(argv, 0)

    def _toolkit(self, argv, cwd) -> CommandResult:
        if argv[1] == "autotag":
            return self._resolve(argv, argv[2])
        name = argv[argv.index("--name") + 1]
        if name in self.containers:
            return CommandResult(argv, 125, "", "Conflict. The container name is already in use")
        self.containers[name] = self.stays_running
        self.created[name] = self.created.get(name, 0) + 1
        return CommandResult(argv, 0, "")

    def _docker(self, argv, cwd) -> CommandResult:
        sub = argv[1]
        if sub == "container" and argv[2] == "inspect":
            name = argv[-1]
            if name not in self.containers:
                return CommandResult(argv, 1, "", f"Error: No such container: {name}")
            template = argv[4]
            out = str(self.containers[name]).lower() if "Running" in template else f"/{name}"
            return CommandResult(argv, 0, out + "\n")
        if sub == "stop":
            name = argv[2]
            if name in self.containers:
                self.containers[name] = False
                return CommandResult(argv, 0, name)
            if any(name in ids for ids in self.ancestors.values()):
                return CommandResult(argv, 0, name)
            return CommandResult(argv, 1, "", "No such container")
        if sub == "rm":
            name = argv[2]
            if name not in self.containers or self.containers[name]:
                return CommandResult(argv, 1, "", "cannot remove")
            del self.containers[name]
            return CommandResult(argv, 0, name)
        if sub == "build":
            context = argv[-1]
            self.build_contexts.append({
                "context": context,
                "dockerfile": os.path.exists(os.path.join(context, "Dockerfile")),
            })
            self.images.append(argv[argv.index("-t") + 1])
            return CommandResult(argv, 0)
        if sub == "ps":
            image = argv[-1].split("=", 1)[1]
            return CommandResult(argv, 0, "\n".join(self.ancestors.get(image, [])))
        raise AssertionError(f"unexpected docker command {argv}")


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path):
    s = Settings(base_dir=str(tmp_path))
    s.provision.settle_delay = 0
    return s
