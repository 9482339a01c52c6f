"""Command-line interface for the tablearn workflows."""

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from tablearn.config.settings import WorkflowConfig

app = typer.Typer(
    name="tablearn",
    help="Tree, ensemble and penalized-regression workflows on small tabular datasets.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]


def _load(config: Path, output: Path | None = None) -> "WorkflowConfig":
    """Load configuration, apply the output override and configure logging."""
    from pandera.errors import SchemaError

    from tablearn.config.loader import load_config
    from tablearn.utils.logging import configure_logging

    console.print(f"[blue]Loading configuration from {config}[/blue]")
    try:
        workflow_config = load_config(config)
    except (FileNotFoundError, ValueError, SchemaError) as e:
        console.print(f"[red]Error: invalid configuration: {e}[/red]")
        raise typer.Exit(code=1) from e

    if output is not None:
        workflow_config = workflow_config.model_copy(
            update={"output": workflow_config.output.model_copy(update={"output_root": output})}
        )

    configure_logging(
        level=workflow_config.logging.level,
        json_output=workflow_config.logging.json_output,
    )
    return workflow_config


@app.command()
def run(
    config: ConfigOption,
    model: Annotated[
        list[str] | None,
        typer.Option(
            "--model",
            "-m",
            help="Model to fit (repeatable). Default: models.enabled from config.",
        ),
    ] = None,
    tune: Annotated[
        bool | None,
        typer.Option(
            "--tune/--no-tune",
            help=(
                "Force or disable hyperparameter grid search. "
                "Default: training.tune from config."
            ),
        ),
    ] = None,
    no_mlflow: Annotated[
        bool,
        typer.Option(
            "--no-mlflow",
            help="Disable MLflow tracking for this run.",
        ),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Override output root directory.",
        ),
    ] = None,
) -> None:
    """
    Run a complete workflow.

    Loads and splits the dataset, fits the models, prunes the tree, fits the
    penalized regression paths (regression only), evaluates on the test set
    and writes plots, prediction tables, models and an HTML report.
    """
    from tablearn.workflows import run_workflow

    workflow_config = _load(config, output)
    if no_mlflow:
        workflow_config = workflow_config.model_copy(
            update={"mlflow": workflow_config.mlflow.model_copy(update={"enabled": False})}
        )

    console.print(
        f"[blue]Running {workflow_config.project} "
        f"({workflow_config.dataset.name}, {workflow_config.task.value})[/blue]"
    )
    if tune or (tune is None and workflow_config.training.tune):
        console.print("[dim]Hyperparameter tuning enabled[/dim]")

    try:
        result = run_workflow(workflow_config, model, tune=tune, console=console)
    except (FileNotFoundError, KeyError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Workflow failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    summary = Table(title="Run Summary")
    summary.add_column("Item", style="cyan")
    summary.add_column("Value", style="green")
    summary.add_row("Training samples", str(len(result.data.X_train)))
    summary.add_row("Test samples", str(len(result.data.X_test)))
    summary.add_row("Models evaluated", str(len(result.metrics)))
    summary.add_row("Best model", result.best_model or "-")
    if result.pruning is not None:
        summary.add_row(
            "Pruned tree",
            f"{result.pruning.n_leaves_pruned} leaves "
            f"(alpha={result.pruning.selected_alpha:.4g}, {result.pruning.rule.value})",
        )
    if "forest_oob_score" in result.diagnostics:
        summary.add_row("Random forest OOB", f"{result.diagnostics['forest_oob_score']:.4f}")
    if "boosting_best_stage" in result.diagnostics:
        summary.add_row("Boosting best stage", str(result.diagnostics["boosting_best_stage"]))
    summary.add_row("Plots", str(len(result.plots)))
    console.print(summary)

    if result.report_path is not None:
        console.print(f"\n[green]Report: {result.report_path}[/green]")
    console.print(f"[green]Outputs saved to: {workflow_config.run_dir}[/green]")


@app.command()
def prune(config: ConfigOption) -> None:
    """Run only the CART cost-complexity pruning search."""
    from tablearn.workflows import run_pruning

    workflow_config = _load(config)
    try:
        result = run_pruning(workflow_config, console=console)
    except Exception as e:
        console.print(f"[red]Pruning failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"\n[green]Selected alpha {result.selected_alpha:.4g} ({result.rule.value} rule): "
        f"{result.n_leaves_full} → {result.n_leaves_pruned} leaves[/green]"
    )
    console.print(f"[dim]Plots: {workflow_config.plots_dir}[/dim]")


@app.command()
def regularize(
    config: ConfigOption,
    penalty: Annotated[
        list[str] | None,
        typer.Option(
            "--penalty",
            "-p",
            help="Penalty to fit: ridge, lasso or elastic_net (repeatable).",
        ),
    ] = None,
) -> None:
    """Run only the ridge / lasso / elastic net paths (regression configs)."""
    from tablearn.config.settings import Penalty
    from tablearn.workflows import run_regularization

    workflow_config = _load(config)

    penalties = None
    if penalty:
        try:
            penalties = [Penalty(p) for p in penalty]
        except ValueError as e:
            valid = ", ".join(p.value for p in Penalty)
            console.print(f"[red]Error: unknown penalty ({e}). Use one of: {valid}[/red]")
            raise typer.Exit(code=1) from e

    try:
        run_regularization(workflow_config, penalties, console=console)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(f"[red]Regularization failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"\n[dim]Plots: {workflow_config.plots_dir}[/dim]")


@app.command()
def describe(config: ConfigOption) -> None:
    """Print a summary of the transformed dataset and its train/test split."""
    from pandera.errors import SchemaError

    from tablearn.modeling.data import load_dataset

    workflow_config = _load(config)
    try:
        data = load_dataset(workflow_config)
    except (FileNotFoundError, ValueError, KeyError, SchemaError) as e:
        console.print(f"[red]Error loading data: {e}[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title=f"{workflow_config.dataset.name} Data Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Total samples", str(data.n_samples))
    table.add_row("Training samples", str(len(data.X_train)))
    table.add_row("Test samples", str(len(data.X_test)))
    table.add_row("Features", str(len(data.feature_names)))
    table.add_row("Numeric features", str(len(data.numeric_features)))
    table.add_row("Factor features", str(len(data.categorical_features)))
    table.add_row("Outcome", workflow_config.dataset.target)
    for key, value in data.target_stats.items():
        formatted = f"{value:.2f}" if isinstance(value, float) else str(value)
        table.add_row(f"  {key}", formatted)
    console.print(table)

    console.print("\n[blue]Features:[/blue]")
    for feat in data.feature_names:
        console.print(f"  {feat} ({data.X_train[feat].dtype})")


@app.command()
def models(
    task: Annotated[
        str | None,
        typer.Option(
            "--task",
            "-t",
            help="Only list models for 'classification' or 'regression'.",
        ),
    ] = None,
) -> None:
    """List registered models."""
    from tablearn.config.settings import TaskType
    from tablearn.modeling.models import (
        MODEL_REGISTRY,
        get_param_grid,
        get_preprocessing_kind,
    )

    try:
        tasks = [TaskType(task)] if task is not None else list(TaskType)
    except ValueError as e:
        console.print(f"[red]Error: unknown task '{task}'[/red]")
        raise typer.Exit(code=1) from e

    table = Table(title="Model Registry")
    table.add_column("Task", style="magenta")
    table.add_column("Model", style="cyan")
    table.add_column("Estimator", style="green")
    table.add_column("Preprocessing", style="dim")
    table.add_column("Tunable", style="yellow")
    for task_type in tasks:
        for name, (model_class, _defaults, _kind) in MODEL_REGISTRY[task_type].items():
            table.add_row(
                task_type.value,
                name,
                model_class.__name__,
                get_preprocessing_kind(task_type, name),
                "yes" if get_param_grid(task_type, name) else "no",
            )
    console.print(table)


@app.command()
def validate(config: ConfigOption) -> None:
    """Validate the configured dataset against its schema."""
    import pandas as pd
    from pandera.errors import SchemaError

    from tablearn.schemas import SchemaRegistry

    workflow_config = _load(config)
    path = workflow_config.dataset.resolve()
    console.print("[blue]Running schema validation...[/blue]")

    if not path.exists():
        console.print(f"[red]Error: dataset file not found: {path}[/red]")
        raise typer.Exit(code=1)

    df = pd.read_csv(path)
    info = SchemaRegistry.get_info(workflow_config.dataset.name)
    try:
        SchemaRegistry.validate(df, workflow_config.dataset.name)
    except SchemaError as e:
        console.print(f"[red]✗ {info.schema.__name__} failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"[green]✓ {path.name} passed {info.schema.__name__} v{info.version} "
        f"({len(df)} rows, {len(df.columns)} columns)[/green]"
    )


@app.command()
def version() -> None:
    """Show version information."""
    from tablearn import __version__

    console.print(f"tablearn version {__version__}")


if __name__ == "__main__":
    app()
