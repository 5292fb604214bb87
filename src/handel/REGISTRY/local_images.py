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
Enumeration of recently built local container images through the docker CLI.
"""

import asyncio
import itertools
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional
from pydantic import ValidationError

from ..errors import InvalidDurationError, LocalImagesError
from ..MODELS.versions import LocalImageRecord
from ..UTILS.reporter import Reporter, null_reporter

SINCE_PATTERN = re.compile(r"(?P<value>\d{0,10}(?:\.\d{0,5})?)(?P<units>[smhdw])?")

SECONDS_PER_UNIT = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

IGNORED_TAGS = ("TRUNK",)
IGNORED_REPOSITORIES = ("<none>",)
SNAPSHOT_SUFFIX = "-SNAPSHOT"

DOCKER_IMAGES_COMMAND = ("docker", "images", "--format", "{{json .}}")


def parse_since(since: str) -> timedelta:
    """
    Parses a maximum image age such as ``15m``, ``3h``, ``2d``, ``1w`` or ``0.5h``.
    A bare number is taken as hours.

    :raises InvalidDurationError: If no number can be read.
    """
    match = SINCE_PATTERN.match(since.strip())
    try:
        amount = float(match.group("value"))
    except ValueError as e:
        raise InvalidDurationError(since) from e
    units = match.group("units") or "h"
    return timedelta(seconds=round(amount * SECONDS_PER_UNIT[units]))


def parse_image_lines(output: str) -> List[LocalImageRecord]:
    """
    Parses ``docker images --format '{{json .}}'`` output, one JSON object per line.
    Lines that are not image records are skipped.
    """
    records = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            records.append(LocalImageRecord.model_validate(json.loads(line)))
        except (json.JSONDecodeError, ValidationError, ValueError):
            continue
    return records


def select_recent(records: Iterable[LocalImageRecord],
                  max_age: timedelta,
                  now: Optional[datetime] = None,
                  reporter: Optional[Reporter] = None) -> List[LocalImageRecord]:
    """
    Filters image records down to one recent image per repository.

    Placeholder tags and untagged repositories are dropped. Docker lists
    newest images first, so the scan stops at the first image older than
    ``max_age``. A ``-SNAPSHOT`` tag yields to any later candidate of the
    same repository.
    """
    reporter = reporter or null_reporter()
    cutoff = (now or datetime.now(timezone.utc)) - max_age

    def recent(record: LocalImageRecord) -> bool:
        if record.created_at <= cutoff:
            reporter.info(
                f"Ignoring container {record.repository} which is too old: {record.created_at.isoformat()}"
            )
            return False
        return True

    candidates = (
        r for r in records
        if r.tag not in IGNORED_TAGS and r.repository not in IGNORED_REPOSITORIES
    )

    selected: Dict[str, LocalImageRecord] = {}
    for record in itertools.takewhile(recent, candidates):
        reporter.trace(f"Parsed container from docker output: {record.image}")
        current = selected.get(record.repository)
        if current is None or current.tag.endswith(SNAPSHOT_SUFFIX):
            selected[record.repository] = record

    return list(selected.values())


class LocalImages:
    """
    Lists recently built images from the local docker daemon.
    """

    def __init__(self, since: str = "1d", reporter: Optional[Reporter] = None):
        """
        Args:
            since: Maximum age of images to consider, e.g. '1d' or '15m'.
            reporter: Where progress messages go.
        """
        self.max_age = parse_since(since)
        self.reporter = reporter or null_reporter()

    async def _docker_images(self) -> str:
        try:
            proc = await asyncio.create_subprocess_exec(
                *DOCKER_IMAGES_COMMAND,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise LocalImagesError("Unable to spawn docker command.") from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise LocalImagesError(
                f"docker images exited with status {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
        return stdout.decode(errors='replace')

    async def find(self) -> List[LocalImageRecord]:
        """
        Returns:
            One recent image record per repository.

        Raises:
            LocalImagesError: If docker cannot be run.
        """
        self.reporter.debug(f"Got since duration: {self.max_age}")
        output = await self._docker_images()
        images = select_recent(parse_image_lines(output), self.max_age, reporter=self.reporter)

        if images:
            names = [f"{i.repository}:{i.tag}" for i in images]
            self.reporter.echo("\nRecent images:\n\t" + "\n\t".join(names))

        return images
