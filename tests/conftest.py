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

import pytest
import yaml


@pytest.fixture
def template_dir(tmp_path):
    """
    Returns a function writing ``{name: fragment}`` as template files and
    returning the template folder path.
    """
    folder = tmp_path / "templates"
    folder.mkdir()

    def write(templates, ext=".yml"):
        for name, fragment in templates.items():
            with open(folder / f"{name}{ext}", 'w') as f:
                yaml.safe_dump(fragment, f)
        return str(folder)

    return write
