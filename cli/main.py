#!/usr/bin/env python3
"""
CLI for inspecting and editing workflow documents stored as JSON files.

Usage:
    workflow-builder show workflow.json
    workflow-builder remove-step workflow.json 3 --write
    workflow-builder validate workflow.json
"""
import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

# Load .env before importing builder modules so settings pick it up
load_dotenv()

from shared.config import config as builder_config  # noqa: E402
from workflow_builder.compiler.condition_compiler import (  # noqa: E402
    apply_condition_rules,
    invalid_targets,
    load_condition_rules,
)
from workflow_builder.compiler.parse import (  # noqa: E402
    build_publish_payload,
    dump_workflow,
    parse_workflow,
    publish_endpoint,
)
from workflow_builder.compiler.validate_workflow import validate_workflow  # noqa: E402
from workflow_builder.errors import GraphError, ValidationPhaseError  # noqa: E402
from workflow_builder.graph.step_graph import GraphMutation, add_step, new_workflow, remove_step  # noqa: E402
from workflow_builder.schema.models import ConditionOperator, ConditionRule, StepKind, Workflow  # noqa: E402
from workflow_builder.schema.variables import available_variables  # noqa: E402

console = Console()
err_console = Console(stderr=True)


def _load(path: Path) -> Workflow:
    try:
        return parse_workflow(path.read_text(encoding="utf-8"))
    except ValidationPhaseError as e:
        raise click.ClickException(str(e))


def _emit(workflow: Workflow, path: Path, write: bool) -> None:
    document = json.dumps(dump_workflow(workflow), indent=2)
    if write:
        path.write_text(document + "\n", encoding="utf-8")
        err_console.print(f"[green]✓[/green] Wrote {path}")
    else:
        click.echo(document)


def _finish(mutation: GraphMutation, path: Path, write: bool) -> None:
    if mutation.rejection is not None:
        err_console.print(f"[yellow]No change:[/yellow] {mutation.rejection}")
        raise click.exceptions.Exit(1)
    _emit(mutation.workflow, path, write)


@click.group()
@click.version_option(version="0.1.0", prog_name="workflow-builder")
def cli():
    """
    Inspect and edit trigger → action/condition workflow documents.

    \b
    Commands:
      new            - Create a workflow holding only a trigger
      show           - List the steps of a workflow
      add-step       - Append an action or condition step
      remove-step    - Remove a step and renumber the rest
      conditions     - Show the rules of a condition step
      set-conditions - Replace the rules of a condition step
      validate       - Run the pre-publish checks
      payload        - Print the body sent to the publish/test endpoints
      variables      - List the trigger variables rules can test
      config         - Show current configuration
    """


@cli.command()
@click.argument('path', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--name', default=None, help='Workflow name (defaults to the configured name)')
def new(path: Path, name: Optional[str]):
    """Create a workflow file holding a single unconfigured trigger."""
    if path.exists():
        raise click.ClickException(f"{path} already exists")
    _emit(new_workflow(name or builder_config.default_workflow_name), path, write=True)


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
def show(path: Path):
    """List the steps of a workflow."""
    workflow = _load(path)
    table = Table(title=workflow.workflow_name or "(unnamed workflow)", box=box.ROUNDED)
    table.add_column("Step", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("App")
    table.add_column("Event")
    table.add_column("Branches", style="dim")

    for step in workflow.steps:
        branches = ""
        if step.type == StepKind.condition:
            branches = ", ".join(
                f"else → {clause.else_ or '?'}" if clause.is_else else f"then → {clause.then or '?'}"
                for clause in step.conditions or []
            )
        table.add_row(str(step.id), step.type.value, step.app_name or "-", step.title or "-", branches)

    console.print(table)


@cli.command('add-step')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('kind', type=click.Choice([StepKind.action.value, StepKind.condition.value]))
@click.option('--write', '-w', is_flag=True, help='Write the result back to PATH instead of printing it')
def add_step_command(path: Path, kind: str, write: bool):
    """Append an action or condition step."""
    _finish(add_step(_load(path), kind), path, write)


@cli.command('remove-step')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('step_id')
@click.option('--write', '-w', is_flag=True, help='Write the result back to PATH instead of printing it')
def remove_step_command(path: Path, step_id: str, write: bool):
    """
    Remove a step and renumber the remaining ones.

    Branch targets that pointed at the removed step are cleared and reported.
    """
    mutation = remove_step(_load(path), step_id)
    if mutation.rejection is None:
        moved = {old: new for old, new in mutation.id_mapping.items() if old != new}
        if moved:
            err_console.print("Renumbered: " + ", ".join(f"{old} → {new}" for old, new in moved.items()))
        for ref in mutation.cleared_references:
            err_console.print(
                f"[yellow]⚠ Step {ref.step_id}:[/yellow] cleared {ref.branch} target "
                f"(was step {ref.previous_target})"
            )
    _finish(mutation, path, write)


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('step_id')
def conditions(path: Path, step_id: str):
    """Show the rules of a condition step as the editor loads them."""
    workflow = _load(path)
    try:
        loaded = load_condition_rules(workflow, step_id)
    except GraphError as e:
        raise click.ClickException(str(e))

    table = Table(title=f"Step {step_id} rules", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Variable", style="cyan")
    table.add_column("Operator")
    table.add_column("Value")
    table.add_column("Then")
    for index, rule in enumerate(loaded.rules, start=1):
        table.add_row(str(index), rule.variable, rule.operator.keyword, repr(rule.value), rule.then_step or "-")
    console.print(table)
    console.print(f"Else: {loaded.else_target or '-'}")

    for item in loaded.unparsed:
        console.print(f"[yellow]⚠ Clause {item.clause_index} could not be loaded:[/yellow] {item.reason}")


@cli.command('set-conditions')
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('step_id')
@click.option(
    '--rule', '-r', 'rules', nargs=4, multiple=True,
    metavar='VARIABLE OPERATOR VALUE THEN',
    help='One if/then rule; repeat in priority order',
)
@click.option('--else', 'else_target', default="", help='Step to run when no rule matches')
@click.option('--write', '-w', is_flag=True, help='Write the result back to PATH instead of printing it')
def set_conditions(path: Path, step_id: str, rules: Tuple[Tuple[str, str, str, str], ...], else_target: str, write: bool):
    """Replace the rules of a condition step."""
    workflow = _load(path)
    try:
        parsed_rules = [
            ConditionRule(
                variable=variable,
                operator=ConditionOperator(operator.strip().lower().replace(" ", "_")),
                value=value,
                then_step=then,
            )
            for variable, operator, value, then in rules
        ]
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--rule")

    for target in invalid_targets(workflow, step_id, parsed_rules, else_target):
        err_console.print(f"[yellow]⚠ Target {target} is not a later step; validate will reject it[/yellow]")
    _finish(apply_condition_rules(workflow, step_id, parsed_rules, else_target), path, write)


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--all', 'show_all', is_flag=True, help='Report every problem instead of the first one')
def validate(path: Path, show_all: bool):
    """Run the pre-publish checks."""
    issues = validate_workflow(_load(path))
    if not issues:
        console.print("[green]✓ Workflow is ready to test and publish[/green]")
        return
    for issue in issues if show_all else issues[:1]:
        console.print(f"[red]✗[/red] {issue.message}")
    sys.exit(1)


@cli.command()
@click.argument('path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--user-id', default=None, help='Include userId (required for create and test)')
@click.option('--workflow-id', default=None, help='Target an existing workflow (update)')
@click.option('--test', 'is_test', is_flag=True, help='Target the test endpoint')
def payload(path: Path, user_id: Optional[str], workflow_id: Optional[str], is_test: bool):
    """Print the body sent to the publish/test endpoints."""
    method, endpoint = publish_endpoint(workflow_id, test=is_test)
    err_console.print(f"[dim]{method} {builder_config.endpoint(endpoint)}[/dim]")
    click.echo(json.dumps(build_publish_payload(_load(path), user_id), indent=2))


@cli.command()
@click.argument('app', required=False)
def variables(app: Optional[str]):
    """List the trigger variables condition rules can test."""
    table = Table(title=f"Variables for {app or 'unknown trigger'}", box=box.ROUNDED)
    table.add_column("Variable", style="cyan")
    table.add_column("Label")
    for descriptor in available_variables(app):
        table.add_row(descriptor.value, descriptor.label)
    console.print(table)


@cli.command()
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def config(fmt: str):
    """
    Show current configuration.

    Displays configuration values loaded from environment variables and .env file.
    """
    settings = [
        ("log_level", "WORKFLOW_BUILDER_LOG_LEVEL"),
        ("api_base_url", "WORKFLOW_BUILDER_API_BASE_URL"),
        ("default_workflow_name", "WORKFLOW_BUILDER_DEFAULT_WORKFLOW_NAME"),
    ]

    if fmt == 'json':
        click.echo(json.dumps({attr: getattr(builder_config, attr) for attr, _ in settings}, indent=2))
        return

    console.print(Panel.fit("[bold cyan]Workflow Builder Configuration[/bold cyan]", border_style="cyan"))
    table = Table(box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Env Variable", style="dim")
    table.add_column("Value")
    for attr, env_var in settings:
        table.add_row(attr, env_var, str(getattr(builder_config, attr)))
    console.print(table)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
