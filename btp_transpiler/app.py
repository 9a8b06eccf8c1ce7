"""
app.py
======
Command-line frontend — pure rendering layer.
All workflow logic, state transitions and error handling are delegated to
btp_agents.migration_agent.MigrationAgent.

Run with:  btp-migrate --help
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import click

from btp_agents.migration_agent import MigrationAgent
from btp_core.config import LOG_FORMAT, WORKFLOW_KINDS, MigratorSettings
from btp_core.registry import ComponentRegistry, get_default_registry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared context
# ---------------------------------------------------------------------------


@dataclass
class CliContext:
    settings: MigratorSettings
    registry_path: Path | None = None
    _registry: ComponentRegistry | None = field(default=None, repr=False)

    @property
    def registry(self) -> ComponentRegistry:
        if self._registry is None:
            if self.registry_path is not None:
                self._registry = ComponentRegistry.load(self.registry_path)
            else:
                self._registry = get_default_registry(self.settings.registry_path)
        return self._registry

    def new_agent(self) -> MigrationAgent:
        return MigrationAgent(registry=self.registry, settings=self.settings)


pass_cli = click.make_pass_decorator(CliContext)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "--registry",
    "registry_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Connector registry JSON (overrides $BTP_CONNECTOR_REGISTRY).",
)
@click.pass_context
def cli(ctx, verbose, registry_path):
    """Migrate BizTalk pipelines (.btp) to Azure Logic Apps workflows."""
    settings = MigratorSettings.from_env()
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    ctx.obj = CliContext(settings=settings, registry_path=registry_path)


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(path_type=Path))
@pass_cli
def analyze(obj: CliContext, file: Path):
    """Show the stages, components and default pattern of FILE."""
    agent = obj.new_agent()
    if not agent.parse_file(file):
        raise click.ClickException(agent.state.error_message or "Parse failed.")

    parsed = agent.state.parsed_pipeline
    pattern = agent.state.pattern
    document = parsed.document

    click.echo(f"Pipeline:   {document.friendly_name or file.stem}")
    click.echo(f"Direction:  {parsed.direction.value}")
    click.echo(f"Pattern:    {pattern.name} ({pattern.type.value})")
    click.echo(f"            {pattern.description}")
    click.echo(f"Stages:     {parsed.stage_count}")
    click.echo(f"Components: {parsed.component_count}")

    for stage in agent.get_stage_summary() or []:
        click.echo("")
        click.echo(f"[{stage['name']}] ({stage['execution_mode']})  {stage['component_category']}")
        if not stage["components"]:
            click.echo("  (no components)")
        for component in stage["components"]:
            click.echo(f"  - {component['display_name']}  [{component['type']}]")
            click.echo(f"      {component['name']}")
            for key, value in component["properties"].items():
                click.echo(f"      {key} = {value}")


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("file", type=click.Path(path_type=Path))
@click.argument("output_dir", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--name", "workflow_name", help="Workflow name (defaults to the pipeline's friendly name).")
@click.option("--kind", "workflow_kind", type=click.Choice(WORKFLOW_KINDS), help="Workflow kind.")
@click.option("--show", is_flag=True, help="Also print the generated workflow JSON.")
@pass_cli
def convert(obj: CliContext, file: Path, output_dir: Path | None, workflow_name, workflow_kind, show):
    """Convert FILE into a Logic Apps workflow.json.

    The file is written to OUTPUT_DIR, or next to FILE when omitted.
    """
    agent = obj.new_agent()
    target_dir = output_dir if output_dir is not None else file.parent

    if not agent.run(file, target_dir, workflow_name=workflow_name, workflow_kind=workflow_kind):
        raise click.ClickException(agent.state.error_message or "Conversion failed.")

    workflow = agent.state.workflow
    click.echo(f"Workflow '{workflow.name}' ({agent.state.workflow_kind}): {workflow.action_count} actions")
    click.echo(f"Wrote {agent.state.output_path}")
    if show:
        click.echo(agent.state.workflow_json)


# ---------------------------------------------------------------------------
# batch
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory receiving the generated workflows.",
)
@click.option("--kind", "workflow_kind", type=click.Choice(WORKFLOW_KINDS), help="Workflow kind.")
@click.pass_context
def batch(ctx, files, output_dir, workflow_kind):
    """Convert every FILE into OUTPUT_DIR; exits non-zero if any file fails."""
    obj: CliContext = ctx.obj
    failures = 0

    for file in files:
        agent = obj.new_agent()
        if agent.run(file, output_dir, workflow_kind=workflow_kind):
            click.echo(f"OK    {file} -> {agent.state.output_path}", err=True)
        else:
            failures += 1
            click.echo(f"FAIL  {file}: {agent.state.error_message}", err=True)

    click.echo(f"{len(files) - failures}/{len(files)} pipelines converted.", err=True)
    if failures:
        ctx.exit(1)


# ---------------------------------------------------------------------------
# registry
# ---------------------------------------------------------------------------


@cli.command("registry")
@click.option("--lookup", help="Resolve one component identity and show its migration notes.")
@pass_cli
def registry_command(obj: CliContext, lookup):
    """List connector registry mappings, or resolve one identity."""
    registry = obj.registry

    if lookup is not None:
        mapping = registry.resolve(lookup)
        click.echo(f"Component:   {mapping.component_name}")
        click.echo(f"Display:     {mapping.display_name or '-'}")
        click.echo(f"Action type: {mapping.action_type or '-'}")
        click.echo(f"Complexity:  {mapping.complexity.value} - {registry.complexity_description(mapping.complexity)}")
        for resource in mapping.required_resources:
            click.echo(f"Requires:    {resource} - {registry.service_description(resource)}")
        click.echo("")
        click.echo(mapping.formatted_notes())
        return

    click.echo(f"Registry: {registry.source or '<none>'} ({len(registry)} mappings)")
    for mapping in registry.resolve_all():
        click.echo(
            f"  {mapping.component_name:<55} {mapping.action_type or '-':<18} {mapping.complexity.value}"
        )


def main():
    """Entry point for the btp-migrate console script."""
    cli()


if __name__ == "__main__":
    main()
