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
Verbosity-gated console output.

A Reporter is created once by the command line and handed to every component
that wants to talk to the operator, so nothing reads verbosity from global
state and tests can capture output through a sink.
"""
from enum import IntEnum
from typing import Callable, List, Optional, Tuple

import click


class Level(IntEnum):
    """Message levels, most severe first."""

    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3
    TRACE = 4


Sink = Callable[[Level, str], None]


class Reporter:
    """
    Writes leveled messages to stderr and summaries to stdout.

    :param verbosity: Number of extra levels to show on top of errors and warnings.
    :param quiet: Silences every leveled message.
    :param sink: Optional callable receiving ``(level, message)`` instead of the console.
    """

    def __init__(self, verbosity: int = 0, quiet: bool = False, sink: Optional[Sink] = None):
        self.threshold = Level.WARN + max(verbosity, 0)
        self.quiet = quiet
        self.sink = sink

    def enabled(self, level: Level) -> bool:
        return not self.quiet and level <= self.threshold

    def log(self, level: Level, message: str):
        if not self.enabled(level):
            return
        if self.sink is not None:
            self.sink(level, message)
        else:
            click.echo(message, err=True)

    def error(self, message: str):
        self.log(Level.ERROR, message)

    def warn(self, message: str):
        self.log(Level.WARN, message)

    def info(self, message: str):
        self.log(Level.INFO, message)

    def debug(self, message: str):
        self.log(Level.DEBUG, message)

    def trace(self, message: str):
        self.log(Level.TRACE, message)

    def echo(self, message: str):
        """Operator summary, shown regardless of verbosity."""
        if self.sink is not None:
            self.sink(Level.INFO, message)
        else:
            click.echo(message)


class RecordingReporter(Reporter):
    """Reporter that keeps every message in memory, at full verbosity."""

    def __init__(self):
        self.messages: List[Tuple[Level, str]] = []
        super().__init__(verbosity=Level.TRACE, sink=self._record)

    def _record(self, level: Level, message: str):
        self.messages.append((level, message))

    def texts(self, level: Optional[Level] = None) -> List[str]:
        return [m for lvl, m in self.messages if level is None or lvl == level]


def null_reporter() -> Reporter:
    return Reporter(quiet=True, sink=lambda level, message: None)
