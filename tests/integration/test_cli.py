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
Integration tests for the handel command line.
"""
import pytest
import yaml
from click.testing import CliRunner
from handel.CLI import main as cli_main
from handel.CLI.main import cli
from handel.errors import ReferenceFeedError
from handel.MODELS.versions import RunningServiceVersion
from handel.REGISTRY.reference_feed import ReferenceFeed


@pytest.fixture
def project(tmp_path, template_dir):
    """Writes templates and a handel.yml, returning the config path."""
    folder = template_dir({
        'api': {'image': 'registry.example.com/api:1.0.0', 'depends-on': ['db'], 'ports': ['8080:8080']},
        'db': {'image': 'postgres:13', 'ports': ['5432:5432']},
    })
    config = {
        'template-folder-path': folder,
        'reference': {'url': 'https://versions.example.com/{env}'},
        'scenarios': {'app': ['api'], 'broken': ['api', 'ghost']},
    }
    path = tmp_path / 'handel.yml'
    path.write_text(yaml.safe_dump(config))
    return path


@pytest.fixture
def offline(monkeypatch):
    """Replaces the reference feed and docker with canned answers."""
    async def load(self, env):
        return [RunningServiceVersion(name='api', version='2.3.4')]

    async def no_images(since, reporter):
        return []

    monkeypatch.setattr(ReferenceFeed, 'load', load)
    monkeypatch.setattr(cli_main, '_local_images', no_images)


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert '--env' in result.output
    assert '--since' in result.output


def test_missing_config(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', str(tmp_path / 'absent.yml'), 'app'])
    assert result.exit_code == 1
    assert 'Problem occurred trying to read configuration file' in result.output


def test_unknown_scenario_lists_scenarios(project):
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', str(project), 'nope'])
    assert result.exit_code == 1
    assert 'Expecting a valid scenario to be provided (nope supplied)' in result.output
    assert 'app' in result.output
    assert 'broken' in result.output


def test_missing_scenario(project):
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', str(project)])
    assert result.exit_code == 1
    assert 'Expecting a valid scenario to be provided' in result.output


def test_generates_compose_file(project, offline, tmp_path):
    output = tmp_path / 'docker-compose.yml'
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', str(project), '-e', 'prod', '-o', str(output), 'app'])

    assert result.exit_code == 0, result.output
    assert 'Required services' in result.output
    compose = yaml.safe_load(output.read_text())
    assert compose['version'] == '3'
    assert list(compose['services']) == ['api', 'db']
    assert compose['services']['api']['image'] == 'registry.example.com/api:2.3.4'
    assert compose['services']['api']['depends_on'] == ['db']
    assert compose['services']['db']['image'] == 'postgres:13'


def test_feed_failure_is_not_fatal(project, offline, monkeypatch, tmp_path):
    async def unreachable(self, env):
        raise ReferenceFeedError('Unable to fetch reference versions.')

    monkeypatch.setattr(ReferenceFeed, 'load', unreachable)
    output = tmp_path / 'docker-compose.yml'
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', str(project), '-o', str(output), 'app'])

    assert result.exit_code == 0, result.output
    assert 'Unable to fetch running versions data for test' in result.output
    compose = yaml.safe_load(output.read_text())
    assert compose['services']['api']['image'] == 'registry.example.com/api:1.0.0'


def test_unknown_member_writes_nothing(project, offline, tmp_path):
    output = tmp_path / 'docker-compose.yml'
    runner = CliRunner()
    result = runner.invoke(cli, ['-c', str(project), '-o', str(output), 'broken'])

    assert result.exit_code == 1
    assert 'Problem occurred trying to build required services list' in result.output
    assert 'ghost' in result.output
    assert not output.exists()
