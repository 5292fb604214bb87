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
Dependency resolution: expands a scenario into the set of service templates it needs.
"""
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..errors import HandelError, NotFoundError, ScenarioDependencyError, ServiceDependencyError
from ..MODELS.service_template import ServiceTemplate
from ..PARSERS.template_parser import TemplateCatalog
from ..UTILS.reporter import Reporter, null_reporter


@dataclass(frozen=True)
class Scenario:
    """A named group of services and/or other scenarios."""
    name: str
    members: Tuple[str, ...]


Entry = Union[ServiceTemplate, Scenario]

# (kind, name) of each expansion enclosing a worklist item, outermost first
Path = Tuple[Tuple[str, str], ...]


class ServiceLookup:
    """
    Resolves a name to either a service template or a scenario's members.
    Templates win when a name is both.
    """
    def __init__(self, catalog: TemplateCatalog, scenarios: Mapping[str, Sequence[str]]):
        self.catalog = catalog
        self.scenarios = {name: tuple(members) for name, members in scenarios.items()}

    def lookup(self, name: str) -> Entry:
        """
        :raises NotFoundError: If ``name`` is neither a template nor a scenario.
        """
        template = self.catalog.get(name)
        if template is not None:
            return template
        if name in self.scenarios:
            return Scenario(name=name, members=self.scenarios[name])
        raise NotFoundError(name)

    def is_template(self, name: str) -> bool:
        return name in self.catalog

    def is_ambiguous(self, name: str) -> bool:
        return name in self.catalog and name in self.scenarios

    def ambiguous_names(self) -> List[str]:
        return sorted(n for n in self.scenarios if n in self.catalog)


class DependencyResolver:
    """
    Computes the transitive closure of services a scenario requires.
    """
    def __init__(self, catalog: TemplateCatalog,
                 scenarios: Mapping[str, Sequence[str]],
                 reporter: Optional[Reporter] = None):
        """
        :param catalog: The loaded service templates.
        :param scenarios: Scenario name to member names.
        :param reporter: Where ambiguity warnings go.
        """
        self.lookup = ServiceLookup(catalog, scenarios)
        self.reporter = reporter or null_reporter()

    def resolve(self, root: str) -> List[ServiceTemplate]:
        """
        Expands ``root`` into the service templates it needs, sorted by name.

        Dependencies that name something other than a template are left to
        compose and not expanded. Every name is expanded at most once, so
        diamonds and accidental cycles terminate.

        :param root: A scenario or service name.
        :return: Required templates, without duplicates.
        :raises ScenarioDependencyError: If any name reached from ``root`` is
            unknown; the NotFoundError is at the bottom of the cause chain.
        """
        resolved: Dict[str, ServiceTemplate] = {}
        visited: Set[str] = set()
        stack: List[Tuple[str, Path]] = [(root, ())]

        while stack:
            name, path = stack.pop()
            if name in visited:
                continue
            visited.add(name)

            try:
                entry = self.lookup.lookup(name)
            except NotFoundError as e:
                raise self._wrap(e, root, path)

            if self.lookup.is_ambiguous(name):
                self.reporter.warn(
                    f"Warning - {name} is both a service template and a scenario, using the template"
                )

            if isinstance(entry, ServiceTemplate):
                resolved[name] = entry
                children = [d for d in entry.dependencies
                            if d not in visited and self.lookup.is_template(d)]
                kind = "service"
            else:
                children = [m for m in entry.members if m not in visited]
                kind = "scenario"

            child_path = path + ((kind, name),)
            for child in reversed(children):
                stack.append((child, child_path))

        return [resolved[name] for name in sorted(resolved)]

    @staticmethod
    def _wrap(error: HandelError, root: str, path: Path) -> HandelError:
        """
        Wraps ``error`` once per enclosing expansion, innermost first, so the
        chain reads from the root scenario down to the missing name.
        """
        if not path:
            path = (("scenario", root),)
        for kind, name in reversed(path):
            wrapper = ScenarioDependencyError(name) if kind == "scenario" else ServiceDependencyError(name)
            wrapper.__cause__ = error
            error = wrapper
        return error


def build_service_list(root: str, catalog: TemplateCatalog,
                       scenarios: Mapping[str, Sequence[str]],
                       reporter: Optional[Reporter] = None) -> List[ServiceTemplate]:
    return DependencyResolver(catalog, scenarios, reporter).resolve(root)
