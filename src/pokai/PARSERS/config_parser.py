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
Loading of the provisioning configuration from YAML, .env files and the
process environment.
"""
import os
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..errors import ConfigError
from ..MODELS.settings import Settings

CONFIG_FILENAME = "pokai.yml"
ENV_PREFIX = "POKAI_"
NESTED_DELIMITER = "__"


class ConfigParser:
    """
    Builds a Settings instance by layering, in increasing precedence:
    model defaults, the YAML file, the .env file of the base directory and
    POKAI_* environment variables.
    """
    def __init__(self, environ: Optional[Dict[str, str]] = None):
        """
        :param environ: Environment used for overrides. Defaults to os.environ.
        """
        self.environ = dict(os.environ) if environ is None else dict(environ)

    def load(self, config_path: Optional[str] = None,
             base_dir: Optional[str] = None) -> Settings:
        """
        Loads and validates the configuration.

        :param config_path: Explicit YAML file. It must exist when given.
        :param base_dir: Workspace directory; also where pokai.yml and .env are looked up.
        :return: Validated settings.
        :raises ConfigError: If a file cannot be parsed or a value is invalid.
        """
        lookup_dir = base_dir or "."

        if config_path:
            if not os.path.exists(config_path):
                raise ConfigError(f"Configuration file {config_path} not found.")
        else:
            candidate = os.path.join(lookup_dir, CONFIG_FILENAME)
            config_path = candidate if os.path.exists(candidate) else None

        data: Dict[str, Any] = {}
        if config_path:
            with open(config_path, 'r') as f:
                data = self.parse_from_string(f.read())

        env = {}
        env_file = os.path.join(lookup_dir, ".env")
        if os.path.exists(env_file):
            env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        # The real environment beats the .env file
        env.update(self.environ)

        _deep_merge(data, self.collect_overrides(env))
        if base_dir:
            data["base_dir"] = base_dir

        try:
            return Settings.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @staticmethod
    def parse_from_string(content: str) -> Dict[str, Any]:
        """
        Parses YAML configuration text into a plain mapping.
        """
        if not content.strip():
            return {}
        try:
            data = yaml.safe_load(content)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"Could not parse configuration: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping at the top level.")
        return data

    @staticmethod
    def collect_overrides(env: Dict[str, str]) -> Dict[str, Any]:
        """
        Turns POKAI_SECTION__KEY=value variables into a nested mapping.

        Values stay strings and are coerced by the settings models. Only
        values written as YAML flow collections are decoded, e.g.
        POKAI_LAUNCH__BROWSER_FLAGS='[--disable-gpu, --kiosk]'.
        """
        overrides: Dict[str, Any] = {}
        for key, raw in env.items():
            if not key.startswith(ENV_PREFIX) or not raw:
                continue
            path = key[len(ENV_PREFIX):].lower().split(NESTED_DELIMITER)
            if not all(path):
                continue
            value: Any = raw
            if raw.lstrip().startswith(("[", "{")):
                try:
                    value = yaml.safe_load(raw)
                except (yaml.YAMLError, ValueError):
                    value = raw

            node = overrides
            for part in path[:-1]:
                node = node.setdefault(part, {})
                if not isinstance(node, dict):
                    raise ConfigError(f"Conflicting override {key}.")
            node[path[-1]] = value
        return overrides

    @staticmethod
    def dump(settings: Settings) -> str:
        """
        Renders settings back to YAML.
        """
        return yaml.safe_dump(settings.model_dump(), sort_keys=False)


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value
    return target
