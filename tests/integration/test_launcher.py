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
End-to-end tests of the launch flow against simulated external tools.
"""
import pytest
from pokai.MANAGERS.launcher import Launcher
from pokai.errors import (
    EmptyResolutionError,
    MissingPrerequisiteError,
    ReadinessTimeoutError,
)


class _FakeWait:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, url, timeout, interval, job):
        self.calls.append((url, timeout, interval, job))
        if self.error:
            raise self.error


class TestLauncher:
    """Tests for Launcher."""

    def test_happy_path(self, settings, runner, capsys):
        wait = _FakeWait()
        server = Launcher(settings, runner, wait=wait).run()

        assert runner.spawned[0] is server
        assert server.argv == [
            "jetson-containers", "run", "pokai_vision:latest",
            "bash", "-c", "cd /app/P-Y_V8 && python3 app.py",
        ]
        assert runner.spawned[1].argv == ["chromium-browser", "--disable-gpu", "http://localhost:8080"]
        assert wait.calls == [("http://localhost:8080", 60.0, 1.0, server)]
        assert server.is_running()

        out = capsys.readouterr().out
        assert "docker stop <container_id_or_name>" in out
        assert "pokai stop" in out

    def test_fixed_delay_when_readiness_check_disabled(self, settings, runner):
        settings.launch.readiness_probe = False
        delays = []
        wait = _FakeWait()
        Launcher(settings, runner, wait=wait, delay=delays.append).run()
        assert delays == [10]
        assert wait.calls == []

    def test_empty_resolution_starts_nothing(self, settings, runner):
        runner.resolutions["pokai_vision"] = ""
        with pytest.raises(EmptyResolutionError):
            Launcher(settings, runner, wait=_FakeWait()).run()
        assert runner.spawned == []

    @pytest.mark.parametrize("missing", ["autotag", "jetson-containers"])
    def test_missing_toolkit(self, settings, runner, missing):
        runner.available.discard(missing)
        with pytest.raises(MissingPrerequisiteError) as info:
            Launcher(settings, runner, wait=_FakeWait()).run()
        assert info.value.executable == missing
        assert "install" in info.value.hint
        assert runner.spawned == []

    def test_missing_browser_leaves_server_running(self, settings, runner):
        runner.available.discard("chromium-browser")
        with pytest.raises(MissingPrerequisiteError) as info:
            Launcher(settings, runner, wait=_FakeWait()).run()
        server = runner.spawned[0]
        assert len(runner.spawned) == 1
        assert server.is_running()
        assert str(server.pid) in info.value.hint
        assert "http://localhost:8080" in info.value.hint

    def test_readiness_timeout_leaves_server_running(self, settings, runner):
        wait = _FakeWait(ReadinessTimeoutError("http://localhost:8080", 60))
        with pytest.raises(ReadinessTimeoutError) as info:
            Launcher(settings, runner, wait=wait).run()
        assert len(runner.spawned) == 1
        assert runner.spawned[0].is_running()
        assert "still be running" in info.value.hint

    def test_custom_port_and_browser(self, settings, runner):
        settings.launch.port = 9000
        settings.launch.browser = "firefox"
        settings.launch.browser_flags = []
        runner.available.add("firefox")
        Launcher(settings, runner, wait=_FakeWait()).run()
        assert runner.spawned[1].argv == ["firefox", "http://localhost:9000"]

    def test_stop(self, settings, runner, capsys):
        runner.ancestors["pokai_vision:latest"] = ["abc123", "def456"]
        assert Launcher(settings, runner).stop() == 2
        assert runner.commands("docker stop") == [
            ["docker", "stop", "abc123"], ["docker", "stop", "def456"]
        ]
        assert "Stopped container abc123." in capsys.readouterr().out

    def test_stop_nothing_running(self, settings, runner, capsys):
        assert Launcher(settings, runner).stop() == 0
        assert "No running containers" in capsys.readouterr().out
