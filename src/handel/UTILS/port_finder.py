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
Utilities for suggesting host ports to operators resolving port conflicts.
"""
from typing import Iterable, List, Optional, Tuple


def suggest_free_ports(port_range: Optional[Tuple[int, int]],
                       claimed: Iterable[int],
                       count: int) -> List[int]:
    """
    Lists ports in ``port_range`` that no template claims.

    :param port_range: Inclusive ``(low, high)`` bounds, or None when no range is configured.
    :param claimed: Host ports already bound by some template.
    :param count: Maximum number of ports to return.
    :return: Up to ``count`` free ports, lowest first.
    """
    if port_range is None or count <= 0:
        return []
    low, high = port_range
    taken = set(claimed)
    free = []
    for port in range(low, high + 1):
        if port not in taken:
            free.append(port)
            if len(free) == count:
                break
    return free
