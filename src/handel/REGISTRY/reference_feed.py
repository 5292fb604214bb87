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
Client for the reference version feed: the versions deployed in a named environment.
"""

import asyncio
import json
from typing import List, Optional
from urllib.error import URLError
from urllib.request import Request, urlopen
from pydantic import TypeAdapter, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import ReferenceFeedError
from ..MODELS.handel_config import Reference
from ..MODELS.versions import RunningServiceVersion
from ..UTILS.reporter import Reporter, null_reporter

REQUEST_TIMEOUT = 10

_VERSIONS = TypeAdapter(List[RunningServiceVersion])


@retry(
    retry=retry_if_exception_type((URLError, TimeoutError, ConnectionError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)
def fetch_url(url: str, timeout: float = REQUEST_TIMEOUT) -> str:
    """Downloads ``url`` and returns the body as text."""
    request = Request(url, headers={"Accept": "application/json"})
    with urlopen(request, timeout=timeout) as response:
        return response.read().decode()


def parse_versions(body: str) -> List[RunningServiceVersion]:
    """
    Parses a JSON list of ``{"name": ..., "version": ...}`` objects.

    :raises ReferenceFeedError: If the body is not such a list.
    """
    try:
        return _VERSIONS.validate_python(json.loads(body))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ReferenceFeedError("Unable to parse reference versions as JSON.") from e


class ReferenceFeed:
    """
    Loads the versions running in a reference environment.
    """

    def __init__(self, reference: Optional[Reference], reporter: Optional[Reporter] = None):
        """
        Args:
            reference: The configured feed, or None when no feed is configured.
            reporter: Where progress messages go.
        """
        self.reference = reference
        self.reporter = reporter or null_reporter()

    async def apply_filter(self, jq_filter: str, body: str) -> str:
        """
        Pipes ``body`` through ``jq <jq_filter>`` and returns its output.

        Raises:
            ReferenceFeedError: If jq cannot be run or exits with an error.
        """
        self.reporter.debug(f"jq - Filter: {jq_filter}")
        try:
            proc = await asyncio.create_subprocess_exec(
                "jq", jq_filter,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ReferenceFeedError("Unable to execute jq command, is it available and in the path?") from e

        stdout, stderr = await proc.communicate(body.encode())
        err = stderr.decode(errors='replace').strip()
        if err:
            self.reporter.error(f"Failed to apply jq command to the given input - {err}")
        if proc.returncode != 0:
            raise ReferenceFeedError(f"jq exited with status {proc.returncode}")
        return stdout.decode(errors='replace')

    async def load(self, env: str) -> List[RunningServiceVersion]:
        """
        Fetches the versions for ``env``, mapped through the feed's env-mappings.

        Returns:
            Running service versions; empty when no feed is configured.

        Raises:
            ReferenceFeedError: If the feed cannot be fetched, filtered or parsed.
        """
        if self.reference is None:
            return []

        url = self.reference.url_for(env)
        self.reporter.info(f"Downloading versions from reference url at: {url}")

        try:
            body = await asyncio.to_thread(fetch_url, url)
        except (OSError, ValueError) as e:
            raise ReferenceFeedError(f"Unable to fetch reference versions from {url}.", url=url) from e

        self.reporter.debug(f"Processing body of length {len(body)} from reference")

        if self.reference.jq_filter:
            body = await self.apply_filter(self.reference.jq_filter, body)

        versions = parse_versions(body)
        self.reporter.info(f"Extracted {len(versions)} versions from reference")
        return versions
