import json
import logging
from pathlib import Path

import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .errors import GraphError
from .validator import validate_workflow_file
from .visualize import ascii_plan
from .workflow import Workflow, load_workflow

app = typer.Typer(no_args_is_help=True, help="comfygraph CLI — inspect, validate and compare node-graph workflows")

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )

def _load(file: Path) -> Workflow:
    try:
        return load_workflow(file)
    except GraphError as e:
        rprint(f"[bold red]Could not load {file}:[/] {e}")
        raise typer.Exit(code=1)

@app.command()
def validate(file: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Validate a workflow JSON file (structure, dangling references, isolated nodes)."""
    result = validate_workflow_file(file)
    table = Table(title="Validation Report", show_lines=True)
    table.add_column("Severity", justify="center", style="bold")
    table.add_column("Node")
    table.add_column("Message")
    for issue in result.errors + result.warnings:
        style = "red" if issue.severity == "error" else "yellow"
        table.add_row(f"[{style}]{issue.severity.upper()}[/]", issue.node_id or "-", issue.message)
    if result.errors or result.warnings:
        rprint(table)
    if not result.valid:
        raise typer.Exit(code=1)
    rprint(Panel.fit(f"[bold green]Valid[/] workflow: [cyan]{file}[/]"))

@app.command()
def diff(subject: Path = typer.Argument(..., exists=True, dir_okay=False),
         reference: Path = typer.Argument(..., exists=True, dir_okay=False),
         as_json: bool = typer.Option(False, "--json", help="Print the raw diff records as JSON."),
    ):
    """Compare SUBJECT against REFERENCE, ignoring node ids."""
    diffs = _load(subject).get_structural_diff(_load(reference))
    if as_json:
        print(json.dumps([d.model_dump() for d in diffs], indent=2, ensure_ascii=False))
    elif not diffs:
        rprint(Panel.fit(f"[bold green]Equivalent:[/] {subject} ≡ {reference}"))
    else:
        table = Table(title="Structural Diff", show_lines=True)
        table.add_column("Type", style="bold")
        table.add_column("Class")
        table.add_column("Details")
        for d in diffs:
            table.add_row(d.type, d.class_type or "-", d.details)
        rprint(table)
    if diffs:
        raise typer.Exit(code=1)

@app.command()
def edges(file: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """List the connections of a workflow as edges."""
    workflow = _load(file)
    table = Table(title=f"Edges ({file.name})")
    table.add_column("Source")
    table.add_column("Port", justify="right")
    table.add_column("Target")
    table.add_column("Input")
    for e in workflow.get_edges():
        table.add_row(e.source_id, str(e.source_port), e.target_id, e.target_input)
    rprint(table)

@app.command()
def explain(file: Path = typer.Argument(..., exists=True, dir_okay=False)):
    """Print an ASCII plan of the workflow graph."""
    workflow = _load(file)
    try:
        print(ascii_plan(workflow))
    except GraphError as e:
        rprint(f"[bold red]{e}[/]")
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
