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
Models for the provisioning configuration.

Every fixed name, port and delay used by the flows lives here with its
documented default so that it can be overridden from a file or environment.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PACKAGES = [
    "chromium-browser",
    "chromium-browser-l10n",
    "chromium-codecs-ffmpeg",
    "libgl1-mesa-glx",
    "libglib2.0-0",
    "libxcomposite1",
    "libxdamage1",
    "libxext6",
    "libxfixes3",
    "libxrandr2",
    "libxrender1",
    "libxi6",
    "libnss3",
    "libasound2",
    "libgbm1",
]

DEFAULT_PIP_INSTALLS = [
    ["--upgrade", "pip", "setuptools"],
    ["ultralytics"],
    ["flask", "--ignore-installed", "blinker"],
    ["openpyxl"],
    ["lap>=0.5.12"],
]


class ToolkitSettings(BaseModel):
    """
    Location and installer of the jetson-containers toolkit.
    """
    repository_url: str = "https://github.com/dusty-nv/jetson-containers"
    directory: str = "jetson-containers"
    installer: List[str] = ["bash", "install.sh"]
    executable: str = "jetson-containers"


class BuildSettings(BaseModel):
    """
    Contents of the generated Dockerfile and the derived image it produces.
    """
    base_image_name: str = "l4t-pytorch"
    fallback_base_image: str = "nvcr.io/nvidia/l4t-pytorch:r36.2.0-pth2.2-py3"
    image_tag: str = "pokai_vision:latest"
    directory: str = "build_pokai_vision"
    system_packages: List[str] = Field(default_factory=lambda: list(DEFAULT_SYSTEM_PACKAGES))
    pip_installs: List[List[str]] = Field(
        default_factory=lambda: [list(step) for step in DEFAULT_PIP_INSTALLS]
    )
    app_repository: Optional[str] = "https://github.com/HxSx79/P-Y_V8.git"
    workdir: str = "/app"
    cmd: List[str] = ["bash"]
    no_cache: bool = True


class ProvisionSettings(BaseModel):
    """
    Settings of the setup flow's temporary container.
    """
    container_name: str = "temp_l4t_pytorch"
    settle_delay: float = Field(default=5.0, ge=0)
    resolver_command: List[str] = ["jetson-containers", "autotag"]


class LaunchSettings(BaseModel):
    """
    Settings of the launch flow: what to run, where it serves, what to open.
    """
    image_name: str = "pokai_vision"
    app_dir: str = "/app/P-Y_V8"
    app_command: str = "python3 app.py"
    host: str = "localhost"
    port: int = Field(default=8080, gt=0, lt=65536)
    resolver_command: List[str] = ["autotag"]
    browser: str = "chromium-browser"
    browser_flags: List[str] = ["--disable-gpu"]
    readiness_probe: bool = True
    readiness_timeout: float = Field(default=60.0, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)
    startup_delay: int = Field(default=10, ge=0)
    log_file: Optional[str] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def container_command(self) -> str:
        """Shell command executed inside the application container."""
        return f"cd {self.app_dir} && {self.app_command}"


class Settings(BaseModel):
    """
    Complete configuration for both flows.
    """
    base_dir: str = "."
    engine: str = "docker"
    toolkit: ToolkitSettings = Field(default_factory=ToolkitSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    provision: ProvisionSettings = Field(default_factory=ProvisionSettings)
    launch: LaunchSettings = Field(default_factory=LaunchSettings)
