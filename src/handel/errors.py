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
Exception hierarchy for handel.

Every failure carries the offending name or path and chains the underlying
cause, so a message printed at the command line reads from the scenario the
operator asked for down to the file or entry that broke.
"""
from typing import List, Optional


class HandelError(Exception):
    """Base class for all handel errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is None:
            return self.message
        return f"{self.message}\n{cause}"


class NotFoundError(HandelError):
    """A name is neither a service template nor a scenario."""

    def __init__(self, name: str):
        super().__init__(f"Cannot find template or scenario entry for: {name}")
        self.name = name


class RepositoryFormatError(HandelError):
    """An image string does not follow ``[repository/]name[:version]``."""

    def __init__(self, image: str):
        super().__init__(f"Unable to parse container repository string: {image!r}")
        self.image = image


class ServiceNameError(HandelError):
    """An image string has an empty name segment."""

    def __init__(self, image: str):
        super().__init__(f"Unable to extract service name from repository string: {image!r}")
        self.image = image


class TemplateDirectoryNotReadable(HandelError):
    def __init__(self, directory: str):
        super().__init__(
            f"Unable to read the configured template directory, check your configuration: {directory}"
        )
        self.directory = directory


class DirEntryNotReadable(HandelError):
    def __init__(self, directory: str):
        super().__init__(
            f"Unable to read directory entry, check your directory permissions: {directory}"
        )
        self.directory = directory


class ReadTemplateError(HandelError):
    def __init__(self, path: str):
        super().__init__(f"Unable to read fragment file: {path}")
        self.path = path


class ParseTemplateError(HandelError):
    def __init__(self, path: str):
        super().__init__(f"Unable to parse fragment file: {path}")
        self.path = path


class ConfigFileError(HandelError):
    def __init__(self, path: str, reason: str = "read"):
        super().__init__(f"Unable to {reason} configuration file: {path}")
        self.path = path


class ScenarioDependencyError(HandelError):
    """Wraps a failure raised while expanding the members of a scenario."""

    def __init__(self, scenario: str):
        super().__init__(f"Unable to build scenario dependencies for scenario: {scenario}")
        self.scenario = scenario


class ServiceDependencyError(HandelError):
    """Wraps a failure raised while expanding the dependencies of a service."""

    def __init__(self, service: str):
        super().__init__(f"Unable to build service dependencies for service: {service}")
        self.service = service


class UnableToWriteError(HandelError):
    def __init__(self, path: Optional[str] = None):
        target = path or "docker-compose file"
        super().__init__(f"There was a problem writing the {target}.")
        self.path = path


class ReferenceFeedError(HandelError):
    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class LocalImagesError(HandelError):
    pass


class InvalidDurationError(HandelError):
    def __init__(self, value: str):
        super().__init__(f"Not a valid value for duration {value!r}.")
        self.value = value


class VolumeInitError(HandelError):
    def __init__(self, name: str, source: str, action: str = "extract zip archive"):
        super().__init__(f"Unable to {action} for volume: {name} source: {source}.")
        self.name = name
        self.source = source


def cause_chain(exc: BaseException) -> List[BaseException]:
    """Returns ``exc`` followed by every exception in its ``__cause__`` chain."""
    chain = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        chain.append(current)
        current = current.__cause__
    return chain


def root_cause(exc: BaseException) -> BaseException:
    """Returns the innermost handel error that caused ``exc``."""
    handel_errors = [e for e in cause_chain(exc) if isinstance(e, HandelError)]
    return handel_errors[-1] if handel_errors else exc
