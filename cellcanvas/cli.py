"""
Command-line interface for CellCanvas.

This module provides the CLI using Typer for starting the CellCanvas server,
inspecting datasets and rendering static SVG exports.

Usage:
    cellcanvas serve                       # demo dataset
    cellcanvas serve data.json --port 8050
    cellcanvas info data.h5ad
    cellcanvas render data.json --gene MYH7 --palette magma --out umap.svg
    cellcanvas demo heart.json --cells 5000 --seed 0
"""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cellcanvas import __version__

app = typer.Typer(
    name="cellcanvas",
    help="Interactive explorer for single-cell RNA-seq embeddings.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        console.print(f"CellCanvas version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """CellCanvas - Single-cell embedding explorer."""
    pass


def _load_explorer(config, message: str):
    """Build an Explorer behind a spinner."""
    from cellcanvas.state import Explorer

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(message, total=None)
        explorer = Explorer(config)
        progress.update(task, description="Data loaded successfully!")
    return explorer


DATA_PATH_ARGUMENT = typer.Argument(
    None,
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
    help="Path to a .json dataset export or .h5ad file (omit for the demo dataset).",
)


@app.command()
def serve(
    data_path: Optional[Path] = DATA_PATH_ARGUMENT,
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        "-h",
        help="Host address to bind the server.",
    ),
    port: int = typer.Option(
        8050,
        "--port",
        "-p",
        min=1024,
        max=65535,
        help="Port number for the server.",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Seed for demo data and synthesized expression.",
    ),
    demo_cells: int = typer.Option(
        15000,
        "--demo-cells",
        min=1,
        help="Number of cells in the demo dataset.",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode with hot reloading.",
    ),
    no_browser: bool = typer.Option(
        False,
        "--no-browser",
        help="Don't automatically open browser.",
    ),
):
    """
    Start the CellCanvas server.

    Examples:
        cellcanvas serve
        cellcanvas serve ./heart.json --port 8080
        cellcanvas serve ./pbmc.h5ad --host 0.0.0.0 --port 8080 --debug
    """
    import os
    from cellcanvas.config import Config

    # In debug mode, Flask's reloader spawns a child process.
    # Only show startup messages in the main process (not the reloader).
    is_reloader = os.environ.get("WERKZEUG_RUN_MAIN") == "true"

    if not is_reloader:
        console.print(Panel.fit(
            f"[bold blue]CellCanvas[/bold blue] v{__version__}\n"
            f"Single-cell embedding explorer",
            border_style="blue",
        ))

    try:
        config = Config(
            data_path=data_path,
            host=host,
            port=port,
            debug=debug,
            seed=seed,
            demo_cells=demo_cells,
        )

        if not is_reloader:
            console.print(f"\n[dim]Data:[/dim] {config.data_path or 'demo dataset'}")
            explorer = _load_explorer(config, "Loading dataset...")
            dataset = explorer.dataset
            console.print(
                f"[green]Loaded:[/green] {dataset.n_cells:,} cells × "
                f"{dataset.n_genes:,} genes, {len(dataset.clusters)} clusters"
            )
        else:
            from cellcanvas.state import Explorer
            explorer = Explorer(config)

        url = f"http://{host}:{port}" if host != "0.0.0.0" else f"http://127.0.0.1:{port}"
        if not is_reloader:
            console.print(f"\n[bold green]Starting server at {url}[/bold green]")
            console.print("[dim]Press Ctrl+C to stop.[/dim]\n")

        from cellcanvas.app import create_app
        dash_app = create_app(config, explorer)

        # Auto-open browser after short delay (only on first run, not reloader)
        if not no_browser and not is_reloader:
            import webbrowser
            import threading
            threading.Timer(1.5, lambda: webbrowser.open(url)).start()

        dash_app.run(
            host=host,
            port=port,
            debug=debug,
        )

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped.[/yellow]")
        raise typer.Exit(0)


@app.command()
def info(
    data_path: Optional[Path] = DATA_PATH_ARGUMENT,
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the demo dataset."),
):
    """
    Display information about a dataset without starting the server.
    """
    from cellcanvas.config import Config

    try:
        config = Config(data_path=data_path, seed=seed)
        console.print(f"\n[bold]Loading:[/bold] {config.data_path or 'demo dataset'}")
        explorer = _load_explorer(config, "Reading file...")
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    dataset = explorer.dataset
    meta = dataset.metadata
    validation = explorer.data.last_validation

    console.print(Panel.fit(
        f"[bold]Cells:[/bold] {dataset.n_cells:,}\n"
        f"[bold]Genes:[/bold] {dataset.n_genes:,}\n"
        f"[bold]Clusters:[/bold] {len(dataset.clusters)}\n"
        f"[bold]Samples:[/bold] {', '.join(dataset.samples()[:10]) or 'None'}\n"
        f"[bold]Annotations:[/bold] {', '.join(dataset.annotation_options) or 'None'}\n"
        f"[bold]Expression:[/bold] {'stored' if explorer.data.has_stored_expression else 'synthesized'}",
        title=f"[bold blue]{meta.name}[/bold blue]",
        border_style="blue",
    ))

    table = Table(title="Clusters", show_lines=False)
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Cells", justify="right")
    table.add_column("Color")
    for cluster in dataset.clusters:
        table.add_row(str(cluster.id), cluster.name, f"{cluster.cell_count:,}", cluster.color)
    console.print(table)

    if validation is not None:
        for warning in validation.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def render(
    data_path: Optional[Path] = DATA_PATH_ARGUMENT,
    out: Path = typer.Option(
        Path("cellcanvas.svg"),
        "--out",
        "-o",
        help="Output SVG file.",
    ),
    gene: Optional[str] = typer.Option(None, "--gene", "-g", help="Color by this gene's expression."),
    genes: Optional[List[str]] = typer.Option(
        None,
        "--genes",
        help="Color by the averaged expression of these genes (repeatable).",
    ),
    palette: str = typer.Option("viridis", "--palette", help="Expression color palette."),
    annotation: Optional[str] = typer.Option(None, "--annotation", help="Color by a metadata field."),
    clip: bool = typer.Option(False, "--clip", help="Use 5-95 percentile clipping."),
    no_labels: bool = typer.Option(False, "--no-labels", help="Hide cluster labels."),
    scale: float = typer.Option(1.0, "--scale", min=0.1, help="Output size multiplier (2 for high-res)."),
    width: int = typer.Option(900, "--width", min=100, help="Canvas width in pixels."),
    height: int = typer.Option(650, "--height", min=100, help="Canvas height in pixels."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for demo data and synthesized expression."),
):
    """
    Render the scatter canvas to a static SVG file.

    Examples:
        cellcanvas render --seed 0 --gene MYH7 --out myh7.svg
        cellcanvas render heart.json --genes MYH7 --genes TNNT2 --palette magma
    """
    from cellcanvas.config import Config
    from cellcanvas.render.svg import write_svg

    try:
        config = Config(data_path=data_path, seed=seed, canvas_width=width, canvas_height=height)
        explorer = _load_explorer(config, "Loading dataset...")
        explorer.update_settings(
            palette=palette,
            selected_gene=gene,
            selected_genes=tuple(genes or ()),
            show_averaged_expression=bool(genes),
            annotation_key=annotation,
            use_percentile_clipping=clip,
            show_labels=not no_labels,
        )
        path = write_svg(explorer.render(), out, scale=scale)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Wrote[/green] {path} ({len(explorer.filtered_cells):,} cells)")


@app.command()
def demo(
    out: Path = typer.Argument(..., help="Output .json file."),
    cells: int = typer.Option(15000, "--cells", "-n", min=1, help="Number of cells."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed."),
):
    """
    Write the demo dataset as a JSON export.
    """
    from cellcanvas.data.demo import generate_demo_dataset

    dataset = generate_demo_dataset(cells, seed=seed)
    out.write_text(json.dumps(dataset.to_dict()), encoding="utf-8")
    console.print(f"[green]Wrote[/green] {out} ({dataset.n_cells:,} cells, {len(dataset.clusters)} clusters)")


if __name__ == "__main__":
    app()
