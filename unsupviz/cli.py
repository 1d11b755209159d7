"""Command-line interface for unsupviz.

Provides the `unsupviz` command with subcommands:
- `run`: Run an algorithm for some steps or to completion
- `play`: Autoplay an algorithm one step at a time
- `shapes`: List the available point-set shapes
- `version`: Show version information
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from unsupviz import __version__
from unsupviz.config import load_config, merge_cli_overrides
from unsupviz.controller import Algorithm, StepController
from unsupviz.engines.base import BaseEngine, EngineError
from unsupviz.engines.hierarchical import HACEngine, leaf_order, linkage_matrix
from unsupviz.engines.kmeans import KMeansEngine, inertia
from unsupviz.models.schemas import (
    DBSCANState,
    HACState,
    KMeansState,
    PCAState,
    PointState,
)
from unsupviz.utils.shapes import SHAPES, default_point_count

# Load environment variables from .env file
load_dotenv()

console = Console()

ALGORITHM_CHOICE = click.Choice([a.value for a in Algorithm])


def setup_logging(debug: bool = False) -> None:
    """Set up logging configuration.

    Args:
        debug: If True, enable debug logging.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_overrides(options: tuple[str, ...]) -> dict[str, str]:
    """Turn ``section.field=value`` options into config override keys.

    A bare ``field=value`` targets the ``algorithm`` section.

    Raises:
        click.BadParameter: If an option has no ``=``.
    """
    overrides: dict[str, str] = {}
    for option in options:
        if "=" not in option:
            raise click.BadParameter(f"Expected key=value, got '{option}'")
        key, value = option.split("=", 1)
        section, _, field = key.strip().rpartition(".")
        overrides[f"{section or 'algorithm'}__{field}"] = value.strip()
    return overrides


def _build_controller(
    algorithm: str,
    config_path: str | None,
    shape: str | None,
    count: int | None,
    options: tuple[str, ...],
) -> StepController:
    cfg = load_config(config_path)
    if options:
        cfg = merge_cli_overrides(cfg, **parse_overrides(options))
    cfg = merge_cli_overrides(cfg, dataset__shape=shape, dataset__count=count)

    controller = StepController(config=cfg)
    controller.select(algorithm)
    controller.load_dataset()
    controller.start()
    return controller


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """unsupviz - step through unsupervised learning algorithms

    K-Means, DBSCAN, hierarchical clustering and PCA, one step at a time.
    """
    setup_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("algorithm", type=ALGORITHM_CHOICE)
@click.option("-s", "--shape", type=click.Choice(sorted(SHAPES)), default=None, help="Point-set shape")
@click.option("-n", "--count", type=click.IntRange(min=0), default=None, help="Number of points")
@click.option(
    "-c", "--config",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file",
)
@click.option(
    "-o", "--option",
    "options",
    multiple=True,
    help="Parameter override, e.g. -o k=3 or -o playback.interval=0.5",
)
@click.option(
    "--steps",
    type=click.IntRange(min=0),
    default=None,
    help="Take this many single steps instead of fast-forwarding",
)
@click.option(
    "--json",
    "json_path",
    type=click.Path(),
    default=None,
    help="Write the final state to a JSON file",
)
@click.pass_context
def run(
    ctx: click.Context,
    algorithm: str,
    shape: str | None,
    count: int | None,
    config: str | None,
    options: tuple[str, ...],
    steps: int | None,
    json_path: str | None,
) -> None:
    """Run ALGORITHM and print a summary of the resulting state."""
    debug = ctx.obj.get("debug", False)

    try:
        controller = _build_controller(algorithm, config, shape, count, options)
        engine = controller.active_engine
        console.print(
            f"[bold blue]Running:[/] {algorithm} on {len(controller.points)} "
            f"'{controller.config.dataset.shape}' points"
        )

        if steps is None:
            result = controller.fast_forward()
            console.print(f"  {result.message}")
        else:
            for _ in range(steps):
                result = controller.step()
                if not result.advanced:
                    break
                console.print(f"  [dim]{result.message}[/]")

        _display_summary(engine)

        if json_path:
            _export_state(engine, Path(json_path))

    except (EngineError, ValueError) as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[bold red]Run failed:[/] {e}")
        if debug:
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument("algorithm", type=ALGORITHM_CHOICE)
@click.option("-s", "--shape", type=click.Choice(sorted(SHAPES)), default=None, help="Point-set shape")
@click.option("-n", "--count", type=click.IntRange(min=0), default=None, help="Number of points")
@click.option(
    "-c", "--config",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file",
)
@click.option("-o", "--option", "options", multiple=True, help="Parameter override")
@click.option(
    "-i", "--interval",
    type=click.FloatRange(min=0.0),
    default=None,
    help="Seconds between steps (defaults to playback.interval)",
)
@click.option("--max-steps", type=click.IntRange(min=1), default=None, help="Stop after this many steps")
@click.pass_context
def play(
    ctx: click.Context,
    algorithm: str,
    shape: str | None,
    count: int | None,
    config: str | None,
    options: tuple[str, ...],
    interval: float | None,
    max_steps: int | None,
) -> None:
    """Autoplay ALGORITHM, printing one line per step."""
    debug = ctx.obj.get("debug", False)

    try:
        controller = _build_controller(algorithm, config, shape, count, options)
        console.print(f"[bold blue]Playing:[/] {algorithm}")
        for number, result in enumerate(
            controller.autoplay(interval=interval, max_steps=max_steps), start=1
        ):
            console.print(f"[cyan]{number:>4}[/] {result.message}")
        if controller.active_engine.is_terminal:
            console.print("[bold green]Done![/]")
    except (EngineError, ValueError) as e:
        console.print(f"[bold red]Configuration error:[/] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/]")
    except Exception as e:
        console.print(f"[bold red]Playback failed:[/] {e}")
        if debug:
            console.print_exception()
        sys.exit(1)


def _display_summary(engine: BaseEngine[Any]) -> None:
    """Display the engine state in a table."""
    state = engine.state
    table = Table(title=f"{engine.name} summary")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Points", str(len(state.points)))
    table.add_row("Finished", "yes" if state.terminal else "no")

    if isinstance(state, DBSCANState):
        table.add_row("Clusters", str(state.cluster_count))
        table.add_row("Core points", str(state.point_states.count(PointState.CORE)))
        table.add_row("Noise points", str(state.noise_count))
        table.add_row("Queue length", str(len(state.queue)))
    elif isinstance(state, KMeansState) and isinstance(engine, KMeansEngine):
        table.add_row("Iteration", str(state.iteration))
        table.add_row("Converged", "yes" if state.converged else "no")
        table.add_row("Inertia", f"{inertia(state, engine.metric):.3f}")
        sizes = ", ".join(str(len(members)) for members in state.clusters())
        table.add_row("Cluster sizes", sizes)
    elif isinstance(state, HACState):
        table.add_row("Merges", str(state.merge_count))
        table.add_row("Clusters", str(len(state.forest)))
        if state.merges:
            table.add_row("Last merge distance", f"{state.merges[-1].distance:.3f}")
    elif isinstance(state, PCAState):
        table.add_row("Stage", state.stage.name)
        if state.eigenvalues:
            table.add_row("Eigenvalues", ", ".join(f"{v:.3f}" for v in state.eigenvalues))
        if state.eigenvectors:
            table.add_row(
                "Eigenvectors",
                ", ".join(f"({v.x:.3f}, {v.y:.3f})" for v in state.eigenvectors),
            )
        if state.ellipse:
            table.add_row("Ellipse angle", f"{state.ellipse.angle_degrees:.1f}")

    console.print(table)


def _export_state(engine: BaseEngine[Any], path: Path) -> None:
    """Write the engine state to a JSON file."""
    state = engine.state
    data: dict[str, Any] = {"algorithm": engine.name}
    if isinstance(engine, HACEngine) and isinstance(state, HACState):
        # The flat merge log replaces the recursive forest.
        data["state"] = state.model_dump(mode="json", exclude={"forest"})
        data["linkage_matrix"] = linkage_matrix(state.merges).tolist()
        if len(state.forest) == 1:
            data["leaf_order"] = leaf_order(state.forest[0])
    else:
        data["state"] = state.model_dump(mode="json")

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)
    console.print(f"  [dim]JSON:[/] {path}")


@cli.command()
def shapes() -> None:
    """List the available point-set shapes."""
    table = Table(title="Shapes")
    table.add_column("Name", style="cyan")
    table.add_column("Default count", style="green")
    for name in sorted(SHAPES):
        table.add_row(name, str(default_point_count(name)))
    console.print(table)


@cli.command()
def version() -> None:
    """Show unsupviz version information."""
    console.print(f"unsupviz version {__version__}")
    console.print("Step-by-step unsupervised learning")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
