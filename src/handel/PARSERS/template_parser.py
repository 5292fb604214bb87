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
Loading of service templates and static checks across the whole template set.
"""
import os
import yaml
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple
from pydantic import ValidationError

from ..errors import (
    DirEntryNotReadable,
    ParseTemplateError,
    ReadTemplateError,
    TemplateDirectoryNotReadable,
)
from ..MODELS.service_template import ServiceTemplate
from ..UTILS.port_finder import suggest_free_ports
from ..UTILS.reporter import Reporter, null_reporter

TEMPLATE_EXTENSIONS = ('.yml', '.yaml')


@dataclass(frozen=True)
class PortConflict:
    """A host port bound by more than one template."""
    port: int
    services: Tuple[str, ...]


@dataclass(frozen=True)
class PortReport:
    """Outcome of port-conflict detection."""
    conflicts: Tuple[PortConflict, ...]
    suggestions: Tuple[int, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.conflicts


class TemplateCatalog:
    """
    The set of service templates available to scenarios, keyed by service name.
    Built once per run and read-only thereafter.
    """
    def __init__(self, templates: Dict[str, ServiceTemplate],
                 port_range: Optional[Tuple[int, int]] = None):
        """
        :param templates: Templates keyed by service name.
        :param port_range: Optional host port range used to suggest replacement ports.
        """
        self._templates = dict(templates)
        self.port_range = port_range

    @classmethod
    def load(cls, directory: str,
             port_range: Optional[Tuple[int, int]] = None,
             reporter: Optional[Reporter] = None) -> "TemplateCatalog":
        """
        Loads every ``*.yml``/``*.yaml`` file in ``directory`` as a template named
        after the file stem, then reports port conflicts.

        :param directory: The template folder.
        :param port_range: Optional host port range for conflict suggestions.
        :param reporter: Where warnings go.
        :return: The loaded catalog.
        :raises TemplateDirectoryNotReadable: If the folder cannot be listed.
        :raises DirEntryNotReadable: If an entry cannot be inspected.
        :raises ReadTemplateError: If a template file cannot be read.
        :raises ParseTemplateError: If a template file is not a valid template.
        """
        reporter = reporter or null_reporter()
        templates: Dict[str, ServiceTemplate] = {}

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise TemplateDirectoryNotReadable(directory) from e

        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError as e:
                raise DirEntryNotReadable(directory) from e
            if is_dir:
                continue

            stem, ext = os.path.splitext(entry.name)
            if ext not in TEMPLATE_EXTENSIONS:
                reporter.warn(f"Ignoring invalid file: {entry.name}")
                continue

            reporter.trace(f"Reading template file {entry.path}")
            templates[stem] = cls._load_template(stem, entry.path)

        catalog = cls(templates, port_range)
        reporter.debug(f"Loaded {len(catalog)} templates from {directory}")
        catalog.check_ports(reporter)
        return catalog

    @staticmethod
    def _load_template(name: str, path: str) -> ServiceTemplate:
        try:
            with open(path, 'r') as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ReadTemplateError(path) from e

        try:
            data = yaml.safe_load(content)
            if not isinstance(data, dict):
                raise ValueError("template must be a YAML mapping")
            return ServiceTemplate.from_fragment(name, data)
        except (yaml.YAMLError, ValidationError, ValueError) as e:
            raise ParseTemplateError(path) from e

    def get(self, name: str) -> Optional[ServiceTemplate]:
        return self._templates.get(name)

    def all(self) -> Iterator[ServiceTemplate]:
        """Iterates over every template, ordered by name."""
        for name in self.names():
            yield self._templates[name]

    def names(self) -> List[str]:
        return sorted(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __len__(self) -> int:
        return len(self._templates)

    def claimed_ports(self) -> Dict[int, List[str]]:
        """
        Groups service names by the host ports they bind.
        Templates only publishing a container port take no part.
        """
        claims: Dict[int, List[str]] = {}
        for template in self.all():
            for port in template.source_ports:
                services = claims.setdefault(port, [])
                if template.name not in services:
                    services.append(template.name)
        return claims

    def find_port_conflicts(self) -> List[PortConflict]:
        """
        Lists host ports claimed by more than one service, ordered by port.
        """
        return [
            PortConflict(port=port, services=tuple(services))
            for port, services in sorted(self.claimed_ports().items())
            if len(services) > 1
        ]

    def check_ports(self, reporter: Optional[Reporter] = None) -> PortReport:
        """
        Runs port-conflict detection and warns about each conflict. When a host
        port range is configured, as many unclaimed ports as there are conflicts
        are suggested as replacements.
        """
        reporter = reporter or null_reporter()
        conflicts = self.find_port_conflicts()
        if not conflicts:
            return PortReport(conflicts=())

        suggestions = suggest_free_ports(self.port_range, self.claimed_ports().keys(), len(conflicts))

        lines = [f"{c.port}: {', '.join(c.services)}" for c in conflicts]
        reporter.warn("Warning - port conflicts found between templates:\n\t" + "\n\t".join(lines))
        if suggestions:
            reporter.warn("Unused ports in the configured range:\n\t"
                          + ", ".join(str(p) for p in suggestions))

        return PortReport(conflicts=tuple(conflicts), suggestions=tuple(suggestions))
