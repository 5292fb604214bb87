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
Command Line Interface for handel.
"""
import asyncio
import os
from typing import List, Tuple

import click

from ..errors import HandelError
from ..CONVERTERS.to_compose import ComposeGenerator
from ..MANAGERS.volume_manager import VolumeManager, environment_context
from ..MODELS.handel_config import HandelConfig
from ..MODELS.versions import LocalImageRecord
from ..PARSERS.config_parser import ConfigParser
from ..PARSERS.template_parser import TemplateCatalog
from ..REGISTRY.local_images import LocalImages
from ..REGISTRY.reference_feed import ReferenceFeed
from ..RUNNERS.dependency_resolver import DependencyResolver
from ..UTILS.reporter import Reporter

ENVIRONMENTS = ('dev', 'test', 'staging', 'prod')


def _scenario_listing(config: HandelConfig) -> str:
    return "\n\t".join(config.scenario_names())


async def _local_images(since: str, reporter: Reporter) -> List[LocalImageRecord]:
    return await LocalImages(since, reporter).find()


async def gather_inputs(config: HandelConfig, env: str, since: str,
                        reporter: Reporter, env_file: str) -> Tuple:
    """
    Runs the independent loaders concurrently. Each result is either the
    loaded value or the exception the loader raised.
    """
    feed = ReferenceFeed(config.reference, reporter)
    volumes = VolumeManager(config.volumes, environment_context(env_file), reporter)
    return await asyncio.gather(
        feed.load(env),
        _local_images(since, reporter),
        asyncio.to_thread(TemplateCatalog.load, config.template_folder_path, config.port_range, reporter),
        asyncio.to_thread(volumes.initialise),
        return_exceptions=True,
    )


def _fail(ctx: click.Context, message: str):
    click.echo(message, err=True)
    ctx.exit(1)


@click.command()
@click.option('--config', '-c', 'config_file', default='handel.yml', show_default=True,
              help='Sets the configuration file to use')
@click.option('--env', '-e', type=click.Choice(ENVIRONMENTS), default='test', show_default=True,
              help='The environment from which container versions are copied.')
@click.option('--since', '-s', default='1d', show_default=True,
              help='Maximum age of locally built containers to consider, e.g. 15m, 3h, 2d.')
@click.option('--output', '-o', default='docker-compose.yml', show_default=True,
              help='Where to write the generated compose file')
@click.option('-v', 'verbosity', count=True, help='Increase message verbosity, repeatable.')
@click.option('--quiet', '-q', is_flag=True, help='Silence all output.')
@click.argument('scenario', required=False)
@click.version_option(package_name='handel')
@click.pass_context
def cli(ctx, config_file, env, since, output, verbosity, quiet, scenario):
    """
    Handel - assembles service templates into docker-compose files.

    Takes the services a SCENARIO needs, pins each image to the version running
    in the reference environment or to a recently built local image, and
    writes the resulting docker-compose file.
    """
    reporter = Reporter(verbosity=verbosity, quiet=quiet)

    try:
        config = ConfigParser().parse(config_file)
    except HandelError as e:
        _fail(ctx, f"Problem occurred trying to read configuration file: {config_file}\n{e}")

    if not scenario or not config.has_scenario(scenario):
        supplied = f" ({scenario} supplied)" if scenario else ""
        _fail(ctx, f"Expecting a valid scenario to be provided{supplied} - the config file "
                   f"defines the following scenarios:\n\t{_scenario_listing(config)}")

    env_file = os.path.join(os.path.dirname(os.path.abspath(config_file)), '.env')
    versions, images, catalog, volumes = asyncio.run(
        gather_inputs(config, env, since, reporter, env_file)
    )

    if isinstance(volumes, BaseException):
        _fail(ctx, f"Unable to initialise volumes.\n{volumes}")

    if isinstance(catalog, BaseException):
        _fail(ctx, f"Problem occurred trying to load service fragments.\n{catalog}")

    if isinstance(versions, BaseException):
        reporter.warn(f"Warning: Unable to fetch running versions data for {env}\n{versions}")
        versions = []

    if isinstance(images, BaseException):
        reporter.warn(f"Warning: Unable to read local container images from docker.\n{images}")
        images = []

    try:
        services = DependencyResolver(catalog, config.scenarios, reporter).resolve(scenario)
    except HandelError as e:
        _fail(ctx, f"Problem occurred trying to build required services list.\n{e}")

    if services:
        reporter.echo("\nRequired services:\n\t" + "\n\t".join(s.name for s in services))

    generator = ComposeGenerator(versions, images, reporter)
    try:
        contents = generator.generate(services)
        generator.write(output, contents)
    except HandelError as e:
        _fail(ctx, f"Problem occurred trying to generate scenario configuration for scenario: "
                   f"{scenario}\n{e}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
