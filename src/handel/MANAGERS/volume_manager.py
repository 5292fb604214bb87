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
Volume initialisation: seeds empty volume directories from zip archives kept
locally or in S3.
"""
import os
import tempfile
import zipfile
from typing import Dict, IO, List, Mapping, Optional
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import dotenv_values

from ..errors import VolumeInitError
from ..MODELS.handel_config import VolumeInitializer
from ..UTILS.reporter import Reporter, null_reporter
from ..UTILS.string_interpolation import EnvironmentInterpolator

S3_SCHEME = "s3://"


def environment_context(env_file: Optional[str] = None) -> Dict[str, str]:
    """
    The variables available to volume paths: the process environment,
    overridden by ``env_file`` when it exists.
    """
    context = dict(os.environ)
    if env_file and os.path.exists(env_file):
        context.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    return context


def split_s3_uri(uri: str):
    """
    Splits ``s3://bucket/path/to/key`` into ``(bucket, key)``.

    :raises ValueError: If the URI has no bucket or key.
    """
    parsed = urlparse(uri)
    bucket, key = parsed.netloc, parsed.path.lstrip('/')
    if not bucket or not key:
        raise ValueError(f"Invalid S3 location: {uri}")
    return bucket, key


class VolumeManager:
    """
    Initialises configured volumes before the composition is started.
    """
    def __init__(self, volumes: List[VolumeInitializer],
                 context: Optional[Mapping[str, str]] = None,
                 reporter: Optional[Reporter] = None,
                 s3_client=None):
        """
        Initializes the volume manager.

        :param volumes: The configured volume initialisers.
        :param context: Variables for expanding sources and targets. Defaults to the process environment.
        :param reporter: Where progress messages go.
        :param s3_client: boto3 S3 client, created on first use when omitted.
        """
        self.volumes = list(volumes)
        self.context = dict(os.environ) if context is None else dict(context)
        self.reporter = reporter or null_reporter()
        self._s3_client = s3_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client("s3")
        return self._s3_client

    def expand(self, volume: VolumeInitializer) -> Optional[VolumeInitializer]:
        """
        Expands variables in a volume's source and target.

        :return: The expanded volume, or None if it should be skipped.
        :raises VolumeInitError: If the target directory cannot be created.
        """
        self.reporter.debug(f"Considering volume {volume.name}")
        try:
            source = EnvironmentInterpolator.interpolate(volume.source, self.context)
        except KeyError:
            self.reporter.warn(f"Source for volume: {volume.name} is invalid: {volume.source}")
            return None
        try:
            target = EnvironmentInterpolator.interpolate(volume.target, self.context)
        except KeyError:
            self.reporter.warn(f"Target for volume: {volume.name} is invalid: {volume.target}")
            return None

        try:
            ready = self.target_ready(target)
        except OSError as e:
            raise VolumeInitError(volume.name, volume.source, action=f"create target directory {target}") from e
        if not ready:
            self.reporter.info(f"Volume {volume.name} already initialised at {target}")
            return None

        return VolumeInitializer(name=volume.name, source=source, target=target)

    @staticmethod
    def target_ready(target: str) -> bool:
        """
        A target is ready when it is a missing (now created) or empty directory.

        :raises OSError: If a missing target cannot be created.
        """
        if not os.path.exists(target):
            os.makedirs(target, exist_ok=True)
            return True
        return os.path.isdir(target) and not os.listdir(target)

    def initialise(self) -> List[str]:
        """
        Extracts each pending volume's archive into its target.

        :return: Names of the volumes that were initialised.
        :raises VolumeInitError: If an archive cannot be fetched or extracted.
        """
        pending = [v for v in (self.expand(v) for v in self.volumes) if v is not None]
        self.reporter.info(f"Volumes: {', '.join(v.name for v in pending) or 'none'}")

        for volume in pending:
            self.reporter.info(f"Processing volume: {volume.name}")
            if volume.source.lower().startswith(S3_SCHEME):
                self.extract_from_s3(volume)
            else:
                self.extract_local(volume)

        if self.volumes:
            self.reporter.echo("\nFinished initialising volumes.....")
        return [v.name for v in pending]

    def extract_local(self, volume: VolumeInitializer):
        self.reporter.info(f"Extracting zip for volume: {volume.name} to dir: {volume.target} ....")
        try:
            with open(volume.source, 'rb') as f:
                self._extract(volume, f)
        except OSError as e:
            raise VolumeInitError(volume.name, volume.source, action="open zip archive") from e

    def extract_from_s3(self, volume: VolumeInitializer):
        try:
            bucket, key = split_s3_uri(volume.source)
        except ValueError as e:
            raise VolumeInitError(volume.name, volume.source, action="parse S3 source") from e

        self.reporter.debug(f"Attempting to download from s3 bucket {bucket} key {key}")
        with tempfile.TemporaryFile() as tmp:
            try:
                self.s3_client.download_fileobj(bucket, key, tmp)
            except (BotoCoreError, ClientError) as e:
                raise VolumeInitError(volume.name, volume.source, action="download object from S3") from e
            size = tmp.tell()
            self.reporter.info(f"Downloaded {size} bytes for {volume.name} from {volume.source}")
            tmp.seek(0)
            self._extract(volume, tmp)

    def _extract(self, volume: VolumeInitializer, archive: IO[bytes]):
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(volume.target)
        except (zipfile.BadZipFile, OSError) as e:
            raise VolumeInitError(volume.name, volume.source) from e
        self.reporter.info(f"Extracted {volume.source} to {volume.target}")
