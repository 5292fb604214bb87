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

import random
import string
import pytest
from handel.errors import HandelError
from handel.MODELS.handel_config import parse_port_range
from handel.MODELS.service_template import PortMapping
from handel.PARSERS.config_parser import ConfigParser
from handel.REGISTRY.image_reference import ImageReference

ALPHABET = string.printable + "/:-{}[]"


def random_string(length):
    return ''.join(random.choice(ALPHABET) for _ in range(length))


@pytest.fixture(autouse=True)
def seeded():
    random.seed(1234)


def test_fuzz_image_reference():
    for _ in range(500):
        content = random_string(random.randint(0, 60))
        try:
            reference = ImageReference.parse(content)
        except HandelError:
            continue
        # Anything accepted renders back to the same string
        assert reference.render() == content


def test_fuzz_port_range():
    for _ in range(500):
        port_range = parse_port_range(random_string(random.randint(0, 20)))
        if port_range is not None:
            low, high = port_range
            assert 1 <= low <= high <= 65535


def test_fuzz_port_mapping():
    for _ in range(500):
        content = random_string(random.randint(0, 15))
        port = PortMapping.parse(content)
        assert port.render() == content.strip()
        assert port.source is None or 0 <= port.source <= 65535


def test_fuzz_config_parser():
    parser = ConfigParser()
    for _ in range(200):
        content = random_string(random.randint(0, 500))
        try:
            parser.parse_from_string(content)
        except ValueError:
            pass
        except Exception as e:
            # Only YAML syntax errors may escape besides validation errors
            assert type(e).__module__.startswith('yaml'), repr(e)


def test_edge_cases_parsers():
    parser = ConfigParser()

    with pytest.raises(ValueError):
        parser.parse_from_string("")

    with pytest.raises(ValueError):
        parser.parse_from_string("   \n\t  ")

    with pytest.raises(ValueError):
        parser.parse_from_string("template-folder-path: t\nscenarios:\n  a: 5\n")

    config = parser.parse_from_string(
        "template-folder-path: t\nscenarios:\n  a: [" + ", ".join(f"s{i}" for i in range(5000)) + "]\n"
    )
    assert len(config.scenario_services("a")) == 5000
