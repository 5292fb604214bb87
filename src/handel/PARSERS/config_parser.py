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
Parser for the handel.yml configuration file.
"""
import yaml
from pydantic import ValidationError

from ..errors import ConfigFileError
from ..MODELS.handel_config import HandelConfig


class ConfigParser:
    """
    Parser for handel.yml files.
    """
    def parse(self, config_path: str) -> HandelConfig:
        """
        Parses a configuration file from a path.

        :param config_path: Path to the configuration file.
        :return: Parsed configuration.
        :raises ConfigFileError: If the file cannot be read or is not a valid configuration.
        """
        try:
            with open(config_path, 'r') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigFileError(config_path) from e

        try:
            return self.parse_from_string(content)
        except (yaml.YAMLError, ValidationError, ValueError) as e:
            raise ConfigFileError(config_path, reason="parse") from e

    def parse_from_string(self, content: str) -> HandelConfig:
        """
        Parses a configuration from a string.

        :param content: YAML content of the configuration file.
        :return: Parsed configuration.
        """
        data = yaml.safe_load(content)
        if not isinstance(data, dict):
            raise ValueError("configuration must be a YAML mapping")
        return HandelConfig.model_validate(data)


def load_config(config_path: str) -> HandelConfig:
    return ConfigParser().parse(config_path)
