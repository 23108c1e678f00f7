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
Command Line Interface for Pokai Provision.
"""
import logging
import sys

import click

from ..BUILDERS.dockerfile_builder import DockerfileBuilder
from ..errors import ProvisionError
from ..MANAGERS.launcher import Launcher
from ..MANAGERS.provisioner import Provisioner
from ..PARSERS.config_parser import ConfigParser

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


def _fail(error: ProvisionError, pause: bool = False):
    click.echo(f"Error: {error}", err=True)
    if error.hint:
        click.echo(error.hint, err=True)
    if pause:
        click.pause("Press Enter to exit.")
    sys.exit(error.exit_code)


@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(dir_okay=False),
              help='YAML configuration file (default: pokai.yml in the base directory)')
@click.option('--base-dir', '-C', type=click.Path(file_okay=False),
              help='Workspace holding the toolkit checkout and build directory')
@click.option('--verbosity', '-v', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              default='WARNING', show_default=True, help='Logging level')
@click.pass_context
def cli(ctx, config_path, base_dir, verbosity):
    """
    Pokai Provision - set up and launch Pokai Vision on a Jetson device.
    """
    logging.basicConfig(level=getattr(logging, verbosity.upper()),
                        format='%(levelname)s %(name)s: %(message)s')
    ctx.ensure_object(dict)
    try:
        ctx.obj['settings'] = ConfigParser().load(config_path, base_dir)
    except ProvisionError as e:
        _fail(e)


@cli.command()
@click.pass_context
def setup(ctx):
    """Install jetson-containers and build the application image."""
    try:
        Provisioner(ctx.obj['settings']).run()
    except ProvisionError as e:
        _fail(e)


@cli.command()
@click.option('--pause', is_flag=True, help='Wait for Enter before exiting on error')
@click.pass_context
def launch(ctx, pause):
    """Start the application container and open a browser to it."""
    try:
        Launcher(ctx.obj['settings']).run()
    except ProvisionError as e:
        _fail(e, pause=pause)


@cli.command()
@click.pass_context
def stop(ctx):
    """Stop running application containers."""
    try:
        Launcher(ctx.obj['settings']).stop()
    except ProvisionError as e:
        _fail(e)


@cli.command()
@click.option('--base-image', help='Default for the BASE_IMAGE build argument')
@click.option('--output', '-o', type=click.Path(file_okay=False),
              help='Directory to write the Dockerfile into (default: print it)')
@click.pass_context
def dockerfile(ctx, base_image, output):
    """Print or write the generated Dockerfile."""
    builder = DockerfileBuilder(ctx.obj['settings'].build)
    if output:
        path = builder.write(output, base_image)
        click.echo(f"Dockerfile written to {path}")
    else:
        click.echo(builder.render(base_image), nl=False)


@cli.command()
@click.pass_context
def config(ctx):
    """Show the effective configuration."""
    click.echo(ConfigParser.dump(ctx.obj['settings']), nl=False)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
