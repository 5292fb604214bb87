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
Models for the top-level handel configuration file.
"""
import re
from typing import List, Dict, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator

PORT_RANGE_PATTERN = re.compile(r"(?P<low>[1-9]\d{0,4})-(?P<high>[1-9]\d{0,4})")

PortRange = Tuple[int, int]


def parse_port_range(value: Optional[str]) -> Optional[PortRange]:
    """
    Parses a ``"<low>-<high>"`` host port range.

    Inverted bounds are swapped. Anything malformed, including ports above
    65535, means no range is configured.
    """
    if value is None:
        return None
    match = PORT_RANGE_PATTERN.search(str(value))
    if match is None:
        return None
    low, high = int(match.group("low")), int(match.group("high"))
    if low > 65535 or high > 65535:
        return None
    if low > high:
        low, high = high, low
    return low, high


class Reference(BaseModel):
    """
    Where to fetch the versions running in a reference environment.
    The ``url`` may contain an ``{env}`` placeholder.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    url: str
    env_mappings: Optional[Dict[str, str]] = Field(default=None, alias="env-mappings")
    jq_filter: Optional[str] = Field(default=None, alias="jq-filter")

    def url_for(self, env: str) -> str:
        mapped = (self.env_mappings or {}).get(env, env)
        return self.url.replace("{env}", mapped)


class VolumeInitializer(BaseModel):
    """
    A volume to seed from a zip archive before the stack starts.
    ``source`` is a local path or an ``s3://bucket/key`` URI.
    """
    model_config = ConfigDict(extra="ignore")

    name: str
    source: str
    target: str


class HandelConfig(BaseModel):
    """
    Complete handel configuration, equivalent to a parsed handel.yml file.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    template_folder_path: str = Field(alias="template-folder-path")
    port_range: Optional[PortRange] = Field(default=None, alias="port-range")
    reference: Optional[Reference] = None
    scenarios: Dict[str, List[str]] = {}
    volume_init: Optional[List[VolumeInitializer]] = Field(default=None, alias="volume-init")

    @field_validator('port_range', mode='before')
    @classmethod
    def _port_range(cls, value):
        if value is None or isinstance(value, tuple):
            return value
        return parse_port_range(value)

    @field_validator('scenarios', mode='before')
    @classmethod
    def _scenarios(cls, value):
        if value is None:
            return {}
        # An empty scenario in YAML (``name:``) loads as None.
        if isinstance(value, dict):
            return {
                str(k): [str(m) for m in v] if isinstance(v, list) else ([] if v is None else v)
                for k, v in value.items()
            }
        return value

    def scenario_names(self) -> List[str]:
        return sorted(self.scenarios.keys())

    def has_scenario(self, name: str) -> bool:
        return name in self.scenarios

    def scenario_services(self, name: str) -> List[str]:
        return list(self.scenarios.get(name, []))

    @property
    def volumes(self) -> List[VolumeInitializer]:
        return list(self.volume_init or [])
