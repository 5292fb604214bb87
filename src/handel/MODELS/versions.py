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
Models for the version sources consulted when pinning a service's image.
"""
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

DOCKER_CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S %z"


class RunningServiceVersion(BaseModel):
    """
    One entry from the reference feed: a service and the version deployed
    in the reference environment.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    version: str


class LocalImageRecord(BaseModel):
    """
    A locally available container image, as listed by ``docker images --format '{{json .}}'``.
    """
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    repository: str = Field(alias="Repository")
    tag: str = Field(alias="Tag")
    created_at: datetime = Field(alias="CreatedAt")
    id: Optional[str] = Field(default=None, alias="ID")
    size: Optional[str] = Field(default=None, alias="Size")

    @field_validator('created_at', mode='before')
    @classmethod
    def _docker_timestamp(cls, value):
        """
        Docker prints ``2020-02-27 07:35:09 +0000 UTC``; the trailing zone
        abbreviation is redundant with the offset and not always parseable.
        """
        if isinstance(value, str):
            parts = value.split()
            if len(parts) >= 3:
                parsed = datetime.strptime(" ".join(parts[:3]), DOCKER_CREATED_AT_FORMAT)
                return parsed.astimezone(timezone.utc)
        return value

    @property
    def image(self) -> str:
        return f"{self.repository}:{self.tag}"
