"""
Command Line Interface for M2C.
"""
import logging
import os
import time

import click

from ..MANAGERS.compose_runtime import ComposeRuntime
from ..MANAGERS.environment_manager import EnvironmentManager
from ..MANAGERS.module_graph import ModuleGraph
from ..MODELS.module import ModuleCoordinate
from ..MODELS.runtime_settings import RuntimeSettings
from ..PARSERS.manifest_parser import ManifestParser
from ..RUNNERS.dependency_resolver import ManifestDependencyResolver


@click.group()
@click.option('--manifest', '-f', default='m2c.yml', help='Module manifest path')
@click.option('--module', '-m', default=None, help='Top-level module (defaults to the manifest root)')
@click.option('--resources-root', default='.m2c', help='Working directory for module resources')
@click.option('--top-level-resources', default=None, help='Live resources directory of the top-level module')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, manifest, module, resources_root, top_level_resources, verbose):
    """
    M2C - Modules to Compose.

    Builds a docker-compose environment from a module manifest and manages its lifecycle.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['manifest'] = manifest
    if os.path.exists(manifest):
        parsed = ManifestParser().parse(manifest)
        root = module or parsed.root
        if not root:
            raise click.UsageError("No top-level module: set 'root' in the manifest or pass --module")
        graph = ModuleGraph(
            ModuleCoordinate(name=root),
            ManifestDependencyResolver(parsed),
            resources_root=resources_root,
            top_level_resources_path=top_level_resources,
        )
        ctx.obj['graph'] = graph
        ctx.obj['runtime'] = ComposeRuntime(graph, RuntimeSettings.from_env())


def _runtime(ctx):
    runtime = ctx.obj.get('runtime')
    if runtime is None:
        click.echo(f"Error: {ctx.obj['manifest']} not found.")
    return runtime


def _finish(ctx, status, message):
    if status != 0:
        click.echo(f"Error: backend exited with status {status}")
        ctx.exit(status)
    click.echo(message)


@cli.command()
@click.argument('service', required=False)
@click.pass_context
def start(ctx, service):
    """Start the environment, or a single service."""
    runtime = _runtime(ctx)
    if runtime:
        try:
            status = runtime.start(service)
        except RuntimeError as e:
            raise click.ClickException(str(e))
        _finish(ctx, status, "Environment started.")


@cli.command()
@click.argument('service', required=False)
@click.pass_context
def stop(ctx, service):
    """Stop the environment, or a single service."""
    runtime = _runtime(ctx)
    if runtime:
        try:
            status = runtime.stop(service)
        except RuntimeError as e:
            raise click.ClickException(str(e))
        _finish(ctx, status, "Environment stopped.")


@cli.command()
@click.pass_context
def status(ctx):
    """Show docker-compose status"""
    runtime = _runtime(ctx)
    if runtime:
        try:
            code = runtime.status()
        except RuntimeError as e:
            raise click.ClickException(str(e))
        ctx.exit(code)


@cli.command()
@click.argument('service', required=False)
@click.pass_context
def clean(ctx, service):
    """Remove stopped containers."""
    runtime = _runtime(ctx)
    if runtime:
        try:
            status = runtime.clean(service)
        except RuntimeError as e:
            raise click.ClickException(str(e))
        _finish(ctx, status, "Containers removed.")


@cli.command()
@click.argument('service', required=False)
@click.pass_context
def pull(ctx, service):
    """Pull service images."""
    runtime = _runtime(ctx)
    if runtime:
        try:
            status = runtime.pull(service)
        except RuntimeError as e:
            raise click.ClickException(str(e))
        _finish(ctx, status, "Images pulled.")


@cli.command()
@click.argument('service')
@click.pass_context
def shell(ctx, service):
    """Open a shell in a service container."""
    runtime = _runtime(ctx)
    if runtime:
        try:
            code = runtime.shell(service)
        except (RuntimeError, ValueError) as e:
            raise click.ClickException(str(e))
        ctx.exit(code)


@cli.command()
@click.pass_context
def ps(ctx):
    """List containers"""
    runtime = _runtime(ctx)
    if runtime:
        try:
            containers = runtime.get_containers()
        except RuntimeError as e:
            raise click.ClickException(str(e))
        click.echo(f"{'SERVICE':20} {'STATE':10} {'IP':16} {'ID':12}")
        click.echo("-" * 61)
        for c in containers:
            state = "running" if c.running else "stopped"
            click.echo(f"{c.service_name:20} {state:10} {c.ip_address or '':16} {c.id[:12]:12}")


@cli.command()
@click.pass_context
def addrs(ctx):
    """List IP addresses of running services"""
    runtime = _runtime(ctx)
    if runtime:
        try:
            addresses = runtime.get_addresses()
        except RuntimeError as e:
            raise click.ClickException(str(e))
        for name, ip in addresses.items():
            click.echo(f"{name}: {ip}")


@cli.command()
@click.pass_context
def logs(ctx):
    """Follow logs of all containers"""
    runtime = _runtime(ctx)
    if runtime:
        try:
            runtime.register_log_listener(lambda event: click.echo(str(event)))
        except RuntimeError as e:
            raise click.ClickException(str(e))
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("\nStopping log tailing...")


@cli.command()
@click.argument('module')
@click.pass_context
def env(ctx, module):
    """Print the environment contributed to a module"""
    runtime = _runtime(ctx)
    if runtime:
        try:
            modules = runtime.graph.get_modules()
        except RuntimeError as e:
            raise click.ClickException(str(e))
        found = next((m for m in modules if m.name == module), None)
        if found is None:
            raise click.ClickException(f"Unknown module {module}")
        for key, value in sorted(EnvironmentManager().get_module_environment(found).items()):
            click.echo(f"{key}={value}")


@cli.command()
@click.pass_context
def config(ctx):
    """Generate and print the docker-compose descriptor"""
    runtime = _runtime(ctx)
    if runtime:
        try:
            path = runtime.write_descriptor()
        except RuntimeError as e:
            raise click.ClickException(str(e))
        with open(path, 'r') as f:
            click.echo(f.read(), nl=False)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
