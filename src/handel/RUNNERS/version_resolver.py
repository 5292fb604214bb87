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
Version resolution: picks the image tag to ship for each service.
"""
from typing import Dict, Iterable, Optional

from ..MODELS.service_template import ServiceTemplate
from ..MODELS.versions import LocalImageRecord, RunningServiceVersion


class VersionResolver:
    """
    Chooses a version for a service from, in order of precedence:

    1. a local image built from the same repository as the template's image,
    2. the reference version recorded under the service name,
    3. the reference version recorded under the image name,
    4. the version already in the template,
    5. nothing.
    """
    def __init__(self, local_images: Iterable[LocalImageRecord] = (),
                 running_versions: Iterable[RunningServiceVersion] = ()):
        """
        :param local_images: Recently built local images.
        :param running_versions: Versions deployed in the reference environment.
        """
        # Later entries replace earlier ones when a key repeats.
        self.local_by_repository: Dict[str, LocalImageRecord] = {}
        for image in local_images:
            self.local_by_repository[image.repository] = image

        self.running_by_name: Dict[str, RunningServiceVersion] = {}
        for running in running_versions:
            self.running_by_name[running.name] = running

    def resolve(self, service: ServiceTemplate) -> Optional[str]:
        """
        Resolves the version for ``service``.

        :raises RepositoryFormatError: If the template's image does not parse.
        :raises ServiceNameError: If the template's image has no name.
        """
        reference = service.image_reference()

        local = self.local_by_repository.get(reference.image_id)
        if local is not None:
            return local.tag

        for key in (service.name, reference.name):
            running = self.running_by_name.get(key)
            if running is not None:
                return running.version

        return reference.version


def resolve_version(service: ServiceTemplate,
                    local_images: Iterable[LocalImageRecord],
                    running_versions: Iterable[RunningServiceVersion]) -> Optional[str]:
    return VersionResolver(local_images, running_versions).resolve(service)
