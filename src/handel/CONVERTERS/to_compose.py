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
Converter that assembles resolved service templates into a docker-compose file.
"""
import yaml
from typing import Any, Dict, Iterable, List, Optional

from ..errors import HandelError, UnableToWriteError
from ..MODELS.service_template import ServiceTemplate
from ..MODELS.versions import LocalImageRecord, RunningServiceVersion
from ..RUNNERS.version_resolver import VersionResolver
from ..UTILS.reporter import Reporter, null_reporter

COMPOSE_FILE_VERSION = "3"


class ComposeGenerator:
    """
    Generates a docker-compose document from resolved services, pinning each
    service's image to the version chosen by the VersionResolver.
    """
    def __init__(self, running_versions: Iterable[RunningServiceVersion] = (),
                 local_images: Iterable[LocalImageRecord] = (),
                 reporter: Optional[Reporter] = None):
        """
        :param running_versions: Versions deployed in the reference environment.
        :param local_images: Recently built local images.
        :param reporter: Where per-service summaries and warnings go.
        """
        self.resolver = VersionResolver(local_images, running_versions)
        self.reporter = reporter or null_reporter()

    def build(self, services: Iterable[ServiceTemplate]) -> Dict[str, Any]:
        """
        Builds the compose document as a mapping.

        Services whose image cannot be parsed are left out with a warning.
        """
        services = sorted(services, key=lambda s: s.name)
        fragments: Dict[str, Dict[str, Any]] = {}
        summary: List[str] = []

        for service in services:
            try:
                reference = service.image_reference()
                version = self.resolver.resolve(service)
            except HandelError as e:
                self.reporter.warn(
                    f"Warning - cannot extract image information from template for service: {service.name}\n{e}"
                )
                continue

            pinned = reference.with_version(version)
            summary.append(f"{service.name} -> {pinned.short_name}")
            fragments[service.name] = service.fragment(image=pinned.render())

        self.reporter.echo(
            f"\nGenerating docker compose file based on {len(services)} services:\n\t"
            + "\n\t".join(summary)
        )

        return {'version': COMPOSE_FILE_VERSION, 'services': fragments}

    def generate(self, services: Iterable[ServiceTemplate]) -> str:
        """
        Generates the compose file contents.

        :param services: The resolved services.
        :return: YAML text of the compose file.
        :raises UnableToWriteError: If the document cannot be serialised.
        """
        document = self.build(services)
        try:
            return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
        except (yaml.YAMLError, TypeError, ValueError) as e:
            raise UnableToWriteError() from e

    @staticmethod
    def write(path: str, contents: str):
        """
        Writes compose file contents to ``path``.

        :raises UnableToWriteError: If the file cannot be written.
        """
        try:
            with open(path, 'w') as f:
                f.write(contents)
        except OSError as e:
            raise UnableToWriteError(path) from e


def generate(services: Iterable[ServiceTemplate],
             running_versions: Iterable[RunningServiceVersion] = (),
             local_images: Iterable[LocalImageRecord] = (),
             reporter: Optional[Reporter] = None) -> str:
    return ComposeGenerator(running_versions, local_images, reporter).generate(services)
