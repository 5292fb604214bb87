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
Models for service templates: the compose fragments a scenario is assembled from.
"""
from typing import List, Dict, Optional, Any, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..REGISTRY.image_reference import ImageReference


def _env_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _port_number(value: Any) -> Optional[int]:
    value = str(value).strip()
    if not (value.isascii() and value.isdigit()):
        return None
    port = int(value)
    return port if port <= 65535 else None


class PortMapping(BaseModel):
    """
    A compose port entry, kept verbatim for output. ``"N"`` publishes
    container port N on a random host port; ``"[ip:]N:M"`` binds host port N
    to container port M; the long form maps ``published`` to ``target``.
    Port ranges and other forms are carried through with neither port known.
    """
    model_config = ConfigDict(frozen=True)

    token: Union[str, Dict[str, Any]]
    source: Optional[int] = Field(default=None, ge=0, le=65535)
    target: Optional[int] = Field(default=None, ge=0, le=65535)

    @classmethod
    def parse(cls, token: Any) -> "PortMapping":
        """
        Parses a port entry from a template. A ``/tcp`` or ``/udp`` suffix is
        ignored when reading the ports.

        :param token: A short-form token, a bare integer or a long-form mapping.
        :return: The mapping, with the ports that could be read.
        """
        if isinstance(token, dict):
            return cls(token={str(k): v for k, v in token.items()},
                       source=_port_number(token.get('published', '')),
                       target=_port_number(token.get('target', '')))
        text = str(token).strip()
        parts = text.split('/', 1)[0].split(':')
        if len(parts) == 1:
            return cls(token=text, target=_port_number(parts[0]))
        return cls(token=text, source=_port_number(parts[-2]), target=_port_number(parts[-1]))

    def render(self) -> Union[str, Dict[str, Any]]:
        if isinstance(self.token, dict):
            return dict(self.token)
        return self.token


class DeployConfig(BaseModel):
    """
    The subset of compose ``deploy`` settings a template may carry.
    """
    model_config = ConfigDict(extra="ignore")

    mode: Optional[str] = None
    replicas: Optional[int] = Field(default=None, ge=0, le=65535)


class ServiceTemplate(BaseModel):
    """
    A single service template, loaded from ``<name>.yml`` in the template folder.
    Fields mirror the compose service keys handel understands; anything else in
    the file is ignored.
    """
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    name: str
    image: str
    platform: Optional[str] = None
    restart: Optional[str] = None
    depends_on: Optional[Union[List[str], Dict[str, Dict[str, Any]]]] = Field(default=None, alias="depends-on")
    volumes: Optional[List[str]] = None
    environment: Optional[Dict[str, str]] = None
    ports: Optional[List[PortMapping]] = None
    deploy: Optional[DeployConfig] = None

    @field_validator('depends_on', mode='before')
    @classmethod
    def _depends_on_form(cls, value):
        # compose also allows the long form {service: {condition: ...}}
        if isinstance(value, dict):
            return {str(k): {} if v is None else v for k, v in value.items()}
        return value

    @field_validator('environment', mode='before')
    @classmethod
    def _environment_map(cls, value):
        if isinstance(value, list):
            env = {}
            for entry in value:
                key, _, val = str(entry).partition('=')
                env[key] = val
            return env
        if isinstance(value, dict):
            return {str(k): _env_value(v) for k, v in value.items()}
        return value

    @field_validator('ports', mode='before')
    @classmethod
    def _port_tokens(cls, value):
        if value is None:
            return None
        return [p if isinstance(p, PortMapping) else PortMapping.parse(p) for p in value]

    @classmethod
    def from_fragment(cls, name: str, fragment: Dict[str, Any]) -> "ServiceTemplate":
        """
        Builds a template from the parsed YAML of a template file.

        :param name: The service name (the template file stem).
        :param fragment: The YAML mapping.
        """
        data = {str(k): v for k, v in fragment.items()}
        data['name'] = name
        return cls.model_validate(data)

    @property
    def dependencies(self) -> List[str]:
        """Names of the services this template depends on, in either form."""
        return list(self.depends_on or [])

    @property
    def source_ports(self) -> List[int]:
        """Host ports this template binds explicitly."""
        return [p.source for p in (self.ports or []) if p.source is not None]

    def image_reference(self) -> ImageReference:
        """
        Parses the template's image string.

        :raises RepositoryFormatError: If the image string is malformed.
        :raises ServiceNameError: If the image has no name segment.
        """
        return ImageReference.parse(self.image)

    def fragment(self, image: Optional[str] = None) -> Dict[str, Any]:
        """
        The compose fragment for this template, with ``image`` optionally replaced.
        Absent fields are left out.
        """
        fragment: Dict[str, Any] = {'image': image if image is not None else self.image}
        if self.platform is not None:
            fragment['platform'] = self.platform
        if self.restart is not None:
            fragment['restart'] = self.restart
        if self.depends_on is not None:
            if isinstance(self.depends_on, dict):
                fragment['depends_on'] = {k: dict(v) for k, v in self.depends_on.items()}
            else:
                fragment['depends_on'] = list(self.depends_on)
        if self.volumes is not None:
            fragment['volumes'] = list(self.volumes)
        if self.environment is not None:
            fragment['environment'] = dict(self.environment)
        if self.ports is not None:
            fragment['ports'] = [p.render() for p in self.ports]
        if self.deploy is not None:
            deploy = self.deploy.model_dump(exclude_none=True)
            if deploy:
                fragment['deploy'] = deploy
        return fragment
