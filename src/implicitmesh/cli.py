"""
Command-line interface for implicitmesh.

Provides commands for tessellating built-in fields, checking mesh files and
running configurations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
import typer
import yaml
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

from implicitmesh.core.errors import ImplicitMeshError

app = typer.Typer(
    name="implicitmesh",
    help="Implicit surface tessellation: scalar field -> half-edge triangle mesh"
)
console = Console()


def _configure_logging(verbose: bool, timing: bool) -> None:
    if verbose or timing:
        logging.basicConfig(
            level=logging.INFO if not verbose else logging.DEBUG,
            format='%(name)s - %(message)s'
        )


def _parse_params(params: Optional[list[str]]) -> dict:
    """Turn ``key=value`` strings into field parameters (values parsed as YAML)."""
    parsed = {}
    for item in params or []:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--param")
        key, value = item.split("=", 1)
        parsed[key.strip()] = yaml.safe_load(value)
    return parsed


def _topology_table(report, title: str = "Topology") -> Table:
    t = report.topology
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Vertices", str(t.num_vertices))
    table.add_row("Edges", str(t.num_edges))
    table.add_row("Faces", str(t.num_faces))
    table.add_row("Euler (V-E+F)", str(t.euler_characteristic))
    table.add_row("Components", str(t.num_components))
    table.add_row("Genus", str(t.genus))
    table.add_row("Boundary edges", str(t.num_boundary_edges))
    table.add_row("Closed", "[green]yes[/green]" if t.is_closed else "[yellow]no[/yellow]")
    table.add_row("Manifold", "[green]yes[/green]" if t.is_manifold else "[red]no[/red]")
    table.add_row("Signed volume", f"{report.signed_volume:.6f}")
    if report.residual is not None:
        table.add_row("Max |f(v)|", f"{report.residual.max_abs:.3e}")
    return table


def _print_timing() -> None:
    from implicitmesh.utils.timing import get_run_timings

    timings = get_run_timings()
    table = Table(title="Timing")
    table.add_column("Stage", style="cyan")
    table.add_column("Seconds", justify="right")
    table.add_column("Status")
    for t in timings.stages:
        table.add_row(t.stage, f"{t.seconds:.3f}", "[green]OK[/green]" if t.ok else "[red]FAIL[/red]")
    table.add_row("[bold]Total[/bold]", f"{timings.total_time():.3f}", "")
    console.print(table)


@app.command()
def mesh(
    field_name: str = typer.Argument(..., help="Built-in field (see 'fields')"),
    split: int = typer.Option(16, "-s", "--split", help="Cells per axis"),
    half_extent: float = typer.Option(1.0, "-r", "--range", help="Half-size of the sampled cube"),
    params: Optional[list[str]] = typer.Option(None, "-p", "--param", help="Field parameter key=value"),
    policy: str = typer.Option("reject", "--policy", help="Irregular loop policy (reject, fan, chunk, error)"),
    orient: bool = typer.Option(True, "--orient/--no-orient", help="Wind triangles towards positive values"),
    output_path: Optional[Path] = typer.Option(None, "-o", "--output", help="Output mesh file"),
    timing: bool = typer.Option(False, "--timing", help="Show detailed timing information"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """
    Tessellate a built-in scalar field.
    """
    from implicitmesh.core.fields import get_field
    from implicitmesh.pipeline import TessellationPipeline

    _configure_logging(verbose, timing)

    try:
        field = get_field(field_name, **_parse_params(params))
        pipeline = TessellationPipeline(loop_policy=policy, orient=orient)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            disable=verbose or timing,
        ) as progress:
            progress.add_task("Tessellating...", total=None)
            result, report = pipeline.process(
                field, half_extent, split, evaluate=True, enable_timing=timing or verbose
            )
    except ImplicitMeshError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if timing:
        _print_timing()

    console.print(_topology_table(report, title=f"Field '{field_name}' (split {split})"))

    stats = pipeline.last_stats
    if stats is not None and (stats.open_loops or stats.irregular_loops):
        console.print(
            f"[yellow]{stats.open_loops} open / {stats.irregular_loops} irregular loops "
            f"({pipeline.loop_policy.value})[/yellow]"
        )

    if output_path:
        result.to_mesh().to_file(output_path)
        console.print(f"[green]Saved to:[/green] {output_path}")


@app.command()
def check(
    mesh_path: Path = typer.Argument(..., help="Triangle mesh file to check"),
):
    """
    Build the half-edge structure of a mesh file and report defects.
    """
    from implicitmesh.core.io import load_halfedge_mesh
    from implicitmesh.evaluation import evaluate_tessellation

    console.print(f"[bold blue]Checking:[/bold blue] {mesh_path}")

    try:
        result = load_halfedge_mesh(mesh_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    report = evaluate_tessellation(result)

    console.print(_topology_table(report, title=f"Mesh: {mesh_path.name}"))
    console.print(report.manifold.summary())
    if result.duplicate_half_edges or result.skipped_faces:
        console.print(
            f"[yellow]{result.duplicate_half_edges} duplicate half-edges, "
            f"{result.skipped_faces} degenerate faces skipped[/yellow]"
        )


@app.command()
def run(
    config_path: Path = typer.Option(..., "-c", "--config", help="Tessellation config YAML"),
    name: Optional[str] = typer.Option(None, "-n", "--name", help="Config name override"),
    output_path: Optional[Path] = typer.Option(None, "-o", "--output", help="Output mesh file"),
):
    """
    Run a tessellation from configuration file.
    """
    from implicitmesh.experiments import TessellationConfig
    from implicitmesh.pipeline import TessellationPipeline

    console.print(f"[bold blue]Loading config:[/bold blue] {config_path}")

    try:
        config = TessellationConfig.load(config_path)
        if name:
            config.name = name
        if output_path:
            config.output_path = str(output_path)

        console.print(f"[bold]Running:[/bold] {config.name}")
        pipeline = TessellationPipeline.from_config(config.validate())
        result, report = pipeline.run_config(config)
    except ImplicitMeshError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if report is not None:
        console.print(_topology_table(report, title=config.name))
    else:
        console.print(f"\n[bold]Output:[/bold] {result.num_vertices} vertices, {result.num_faces} faces")

    if config.output_path:
        console.print(f"[green]Saved to:[/green] {config.output_path}")


@app.command()
def sweep(
    field_name: str = typer.Argument(..., help="Built-in field (see 'fields')"),
    splits: str = typer.Option("4,8,16", "--splits", help="Comma-separated split counts"),
    half_extent: float = typer.Option(1.0, "-r", "--range", help="Half-size of the sampled cube"),
    params: Optional[list[str]] = typer.Option(None, "-p", "--param", help="Field parameter key=value"),
):
    """
    Compare topology across lattice resolutions.
    """
    from implicitmesh.experiments import TessellationConfig, FieldConfig, GridConfig, create_sweep_configs
    from implicitmesh.pipeline import TessellationPipeline

    try:
        split_values = [int(s) for s in splits.split(",") if s.strip()]
    except ValueError:
        raise typer.BadParameter(f"Splits must be integers, got '{splits}'", param_hint="--splits")

    base = TessellationConfig(
        name=field_name,
        field=FieldConfig(name=field_name, params=_parse_params(params)),
        grid=GridConfig(half_extent=half_extent),
    )

    table = Table(title=f"Sweep: {field_name}")
    table.add_column("Split", justify="right", style="cyan")
    table.add_column("V", justify="right")
    table.add_column("E", justify="right")
    table.add_column("F", justify="right")
    table.add_column("Euler", justify="right")
    table.add_column("Unpaired", justify="right")
    table.add_column("Max |f(v)|", justify="right")

    try:
        for config in create_sweep_configs(base, {"grid.split": split_values}):
            pipeline = TessellationPipeline.from_config(config.validate())
            _, report = pipeline.run_config(config, enable_timing=False)
            t = report.topology
            table.add_row(
                str(config.grid.split),
                str(t.num_vertices),
                str(t.num_edges),
                str(t.num_faces),
                str(t.euler_characteristic),
                str(t.num_boundary_edges),
                f"{report.residual.max_abs:.2e}" if report.residual else "N/A",
            )
    except ImplicitMeshError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(table)


@app.command()
def gen_config(
    output_path: Path = typer.Option("config.yaml", "-o", "--output", help="Output config file"),
    name: str = typer.Option("my_tessellation", "-n", "--name", help="Config name"),
):
    """
    Generate a default tessellation configuration file.
    """
    from implicitmesh.experiments import create_default_config

    config = create_default_config()
    config.name = name
    config.save(output_path)

    console.print(f"[green]Config saved to:[/green] {output_path}")


@app.command()
def fields():
    """
    List the built-in scalar fields.
    """
    import inspect
    from implicitmesh.core.fields import FIELDS

    table = Table(title="Built-in Fields")
    table.add_column("Name", style="cyan")
    table.add_column("Parameters")
    table.add_column("Description")

    for field_name, factory in FIELDS.items():
        signature = inspect.signature(factory)
        args = ", ".join(
            f"{p.name}={p.default!r}" for p in signature.parameters.values()
        )
        doc = (inspect.getdoc(factory) or "").splitlines()
        table.add_row(field_name, args, doc[0] if doc else "")

    console.print(table)


if __name__ == "__main__":
    app()
