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
Unit tests for Dockerfile generation.
"""
from pokai.BUILDERS.dockerfile_builder import DockerfileBuilder
from pokai.MODELS.settings import BuildSettings


def _lines(text):
    return [line for line in text.splitlines() if line.strip()]


def test_render_defaults():
    text = DockerfileBuilder(BuildSettings()).render()
    lines = _lines(text)

    arg_index = lines.index('ARG BASE_IMAGE="nvcr.io/nvidia/l4t-pytorch:r36.2.0-pth2.2-py3"')
    assert lines[arg_index + 1] == "FROM $BASE_IMAGE"
    assert "    chromium-browser \\" in lines
    assert "    && rm -rf /var/lib/apt/lists/*" in lines
    assert "WORKDIR /app" in lines
    assert "RUN git clone https://github.com/HxSx79/P-Y_V8.git" in lines
    assert lines[-1] == 'CMD ["bash"]'


def test_pip_steps_keep_order():
    text = DockerfileBuilder(BuildSettings()).render()
    pip_lines = [l for l in text.splitlines() if "pip install" in l]
    assert pip_lines == [
        "RUN python3 -m pip install --no-cache-dir --upgrade pip setuptools",
        "RUN python3 -m pip install --no-cache-dir ultralytics",
        "RUN python3 -m pip install --no-cache-dir flask --ignore-installed blinker",
        "RUN python3 -m pip install --no-cache-dir openpyxl",
        "RUN python3 -m pip install --no-cache-dir 'lap>=0.5.12'",
    ]


def test_apt_layer_precedes_pip_layers():
    text = DockerfileBuilder(BuildSettings()).render()
    assert text.index("apt-get install") < text.index("WORKDIR") < text.index("pip install")


def test_fallback_override_and_custom_cmd():
    settings = BuildSettings(system_packages=[], app_repository=None,
                             pip_installs=[["numpy"]], cmd=["python3", "app.py"])
    text = DockerfileBuilder(settings).render("base:1")
    assert 'ARG BASE_IMAGE="base:1"' in text
    assert "apt-get" not in text
    assert "git clone" not in text
    assert 'CMD ["python3", "app.py"]' in text


def test_write_creates_directory(tmp_path):
    target = tmp_path / "build"
    path = DockerfileBuilder(BuildSettings()).write(str(target))
    assert path == str(target / "Dockerfile")
    assert "FROM $BASE_IMAGE" in (target / "Dockerfile").read_text()
