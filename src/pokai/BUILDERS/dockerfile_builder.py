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
Generation of the Dockerfile for the derived application image.
"""
import json
import os
import shlex
from typing import Optional

from jinja2 import Template

from ..MODELS.settings import BuildSettings

DOCKERFILE_TEMPLATE = r"""# Derived image layering a browser and Python dependencies over {{ base_image_name }}.
# The default only satisfies build checks; the real reference is passed with --build-arg.
ARG BASE_IMAGE="{{ fallback_base_image }}"

FROM $BASE_IMAGE

{% if system_packages %}
RUN apt-get update && apt-get install -y --no-install-recommends \
{% for package in system_packages %}
    {{ package }} \
{% endfor %}
    && rm -rf /var/lib/apt/lists/*

{% endif %}
WORKDIR {{ workdir }}

{% for args in pip_installs %}
RUN python3 -m pip install --no-cache-dir {{ args }}
{% endfor %}
{% if app_repository %}

RUN git clone {{ app_repository }}
{% endif %}

CMD {{ cmd }}
"""


class DockerfileBuilder:
    """
    Renders the build description from BuildSettings.
    """
    FILENAME = "Dockerfile"

    def __init__(self, settings: BuildSettings):
        self.settings = settings
        self.template = Template(DOCKERFILE_TEMPLATE, trim_blocks=True, lstrip_blocks=True)

    def render(self, fallback_base_image: Optional[str] = None) -> str:
        """
        Renders the Dockerfile text.

        :param fallback_base_image: Default for the BASE_IMAGE build argument.
            Defaults to the configured fallback.
        """
        s = self.settings
        return self.template.render(
            base_image_name=s.base_image_name,
            fallback_base_image=fallback_base_image or s.fallback_base_image,
            system_packages=s.system_packages,
            workdir=s.workdir,
            pip_installs=[shlex.join(step) for step in s.pip_installs if step],
            app_repository=s.app_repository,
            cmd=json.dumps(s.cmd),
        )

    def write(self, directory: str, fallback_base_image: Optional[str] = None) -> str:
        """
        Writes the Dockerfile into a build directory, creating it if needed.

        :return: Path of the written file.
        """
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, self.FILENAME)
        with open(path, "w") as f:
            f.write(self.render(fallback_base_image))
        return path
