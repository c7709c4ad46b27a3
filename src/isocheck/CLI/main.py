"""
Command Line Interface for isocheck.
"""
import click
import os
from ..errors import IsolationCheckError
from ..MODELS.harness_config import HarnessConfig
from ..PARSERS.scenario_parser import ScenarioParser, default_scenarios
from ..CONVERTERS.to_containerd_config import ContainerdConfigConverter
from ..MANAGERS.scenario_runner import ScenarioRunner
from ..RUNNERS.shell import Shell
from ..UTILS.names import sanitize_image_name
from ..VERIFIERS.mount_verifier import (
    MountUniquenessVerifier,
    build_mount_pattern,
    parse_mount_table,
    read_local_mount_table,
    verify_unique_mounts,
)


@click.group()
@click.option('--env-file', default=None, help='.env file with ISOCHECK_* settings')
@click.option('--scenarios', '-s', 'scenario_file', default=None, help='Scenario YAML file')
@click.pass_context
def cli(ctx, env_file, scenario_file):
    """
    isocheck - Verify that containers get isolated snapshot layers.

    Runs containers through the SOCI snapshotter and checks that no two of
    them share a writable overlay directory.
    """
    ctx.ensure_object(dict)
    ctx.obj['config'] = HarnessConfig.from_env(env_file)
    ctx.obj['scenario_file'] = scenario_file


def _load_scenarios(ctx):
    scenario_file = ctx.obj.get('scenario_file')
    if not scenario_file:
        return default_scenarios()
    if not os.path.exists(scenario_file):
        raise click.ClickException(f"{scenario_file} not found.")
    try:
        return ScenarioParser().parse(scenario_file)
    except ValueError as e:
        raise click.ClickException(str(e))


@cli.command(name='list')
@click.pass_context
def list_scenarios(ctx):
    """List scenarios and their images."""
    for scenario in _load_scenarios(ctx):
        click.echo(scenario.name)
        for spec in scenario.containers:
            click.echo(f"  {spec.image:30} {spec.probe_name}")


@cli.command()
@click.option('--name', '-n', 'names', multiple=True, help='Only run scenarios with this name')
@click.option('--builtin-snapshotter', is_flag=True,
              help='Use the snapshotter built into containerd')
@click.option('--container', '-c', default=None, help='Run commands inside this docker container')
@click.option('--timeout', type=float, default=None, help='Per-command timeout in seconds')
@click.pass_context
def run(ctx, names, builtin_snapshotter, container, timeout):
    """Run isolation scenarios."""
    config = ctx.obj['config']
    if builtin_snapshotter:
        config = config.model_copy(update={'builtin_snapshotter': True})

    scenarios = _load_scenarios(ctx)
    if names:
        scenarios = [s for s in scenarios if s.name in names]
        if not scenarios:
            raise click.ClickException(f"No scenario named {', '.join(names)}")

    prefix = ['docker', 'exec', '-i', container] if container else None
    failures = 0
    for scenario in scenarios:
        shell = Shell(prefix=prefix, timeout=timeout, name=scenario.name)
        try:
            result = ScenarioRunner(scenario, shell, config).run()
        except IsolationCheckError as e:
            failures += 1
            click.echo(f"FAIL {scenario.name}: {e}")
            continue
        click.echo(f"PASS {scenario.name} ({len(result.mounts)} overlay mounts)")

    if failures:
        ctx.exit(1)


@cli.command(name='render-config')
@click.option('--builtin-snapshotter', is_flag=True,
              help='Use the snapshotter built into containerd')
@click.pass_context
def render_config(ctx, builtin_snapshotter):
    """Print the containerd config a run would write."""
    config = ctx.obj['config']
    if builtin_snapshotter:
        config = config.model_copy(update={'builtin_snapshotter': True})
    click.echo(ContainerdConfigConverter(config).convert())


@cli.command(name='verify-mounts')
@click.option('--file', '-f', 'mount_file', type=click.File('r'), default=None,
              help='Read mount output from a file ("-" for stdin)')
@click.option('--local', is_flag=True, help='Read this host\'s mount table')
@click.option('--expect', '-e', multiple=True, help='Container that must have a mount')
@click.pass_context
def verify_mounts(ctx, mount_file, local, expect):
    """Check a mount table for shared upperdirs and workdirs."""
    config = ctx.obj['config']
    text = None
    if mount_file is not None:
        text = mount_file.read()
    elif local:
        text = read_local_mount_table()
    pattern = build_mount_pattern(config.runtime_name, config.runtime_namespace)
    try:
        if text is None:
            records = MountUniquenessVerifier(Shell(verbose=False), config.runtime_name,
                                              config.runtime_namespace).scan()
        else:
            records = parse_mount_table(text, pattern)
        verify_unique_mounts(records, expect or None)
    except IsolationCheckError as e:
        click.echo(f"FAIL: {e}")
        ctx.exit(1)
    for record in records:
        click.echo(f"{record.container_name:30} {record.upperdir}")
    click.echo(f"OK: {len(records)} overlay mounts, no shared writable directories")


@cli.command()
@click.argument('image')
def sanitize(image):
    """Print the container name fragment for an image."""
    click.echo(sanitize_image_name(image))


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
