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
Utilities for expanding environment variables in configured paths.
"""
import re
from typing import Mapping

# ${VAR}, ${VAR:-default}, ${VAR:+value} or a bare $VAR
VARIABLE_PATTERN = re.compile(
    r'\$\{(?P<braced>[^}:]+)(?::(?P<modifier>-|\+)(?P<alt>[^}]*))?\}'
    r'|\$(?P<bare>[A-Za-z_][A-Za-z0-9_]*)'
)


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings, the way a
    shell would expand a volume source such as ``$PWD/data/example.zip``.
    """
    @staticmethod
    def interpolate(template: str, context: Mapping[str, str]) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing $VAR or ${VAR} placeholders.
        :param context: The environment variables context.
        :return: The interpolated string.
        :raises KeyError: If a variable is not found and no default is provided.
        """
        def replace(match):
            var_name = match.group('braced') or match.group('bare')
            modifier = match.group('modifier')
            alt_value = match.group('alt')

            value = context.get(var_name)

            if modifier == '-':
                return value if value else alt_value
            elif modifier == '+':
                return alt_value if value else ''
            if value is None:
                raise KeyError(f"Variable {var_name} not found in context")
            return value

        return VARIABLE_PATTERN.sub(replace, template)
