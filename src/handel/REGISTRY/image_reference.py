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
Image reference parsing and handling.
Parses container image strings like 'memcached:1.6.7' or 'wurstmeister/kafka:2.12-2.4.0'.
"""

import re
from typing import Optional
from dataclasses import dataclass, replace

from ..errors import RepositoryFormatError, ServiceNameError

# At most one leading repository segment; the name runs up to the first ':'.
IMAGE_PATTERN = re.compile(r"(?:(?P<repository>[^/]+)/)?(?P<name>[^:]*)(?::(?P<version>.+))?")


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed container image reference.

    Examples:
        - memcached:1.6.7 -> repository=None, name=memcached, version=1.6.7
        - mailhog/mailhog -> repository=mailhog, name=mailhog, version=None
        - 1212.dkr.ecr.us-east-1.amazonaws.com/api:1.0.423
            -> repository=1212.dkr.ecr.us-east-1.amazonaws.com, name=api, version=1.0.423
    """

    name: str
    repository: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'kafka:2.12-2.4.0', 'mailhog/mailhog')

        Returns:
            Parsed ImageReference object.

        Raises:
            RepositoryFormatError: The string does not follow ``[repository/]name[:version]``.
            ServiceNameError: The name segment is empty.
        """
        if not isinstance(reference, str) or not reference.strip():
            raise RepositoryFormatError(str(reference))

        match = IMAGE_PATTERN.fullmatch(reference)
        if match is None:
            raise RepositoryFormatError(reference)

        name = match.group("name")
        if not name:
            raise ServiceNameError(reference)

        return cls(
            name=name,
            repository=match.group("repository"),
            version=match.group("version"),
        )

    def with_version(self, version: Optional[str]) -> "ImageReference":
        """Returns the same reference with its version replaced."""
        return replace(self, version=version)

    def render(self) -> str:
        """Reconstructs ``[repository/]name[:version]``."""
        image = f"{self.repository}/{self.name}" if self.repository else self.name
        if self.version:
            return f"{image}:{self.version}"
        return image

    @property
    def image_id(self) -> str:
        """The image without its version, as reported by ``docker images``."""
        return self.with_version(None).render()

    @property
    def short_name(self) -> str:
        """The image without its repository segment."""
        if self.version:
            return f"{self.name}:{self.version}"
        return self.name

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"ImageReference({self.render()})"
