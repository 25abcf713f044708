"""Typer CLI entrypoint and command definitions for shiftnorm."""

from pathlib import Path
from typing import Optional

import typer

from shiftnorm.core.defaults import DEFAULT_METRICS_FILENAME, DEFAULT_OUT_DIR

app = typer.Typer()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Layout-shift normalization metrics from recorded traces."""
    from shiftnorm.core.logging import configure_logging

    configure_logging(verbose)


def _load_config_or_exit(config_file: Optional[str]):
    from shiftnorm.core.config import default_config, load_config

    if config_file is None:
        return default_config()
    path = Path(config_file)
    if not path.exists():
        typer.echo(f"Config file not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        return load_config(path)
    except ValueError as exc:
        typer.echo(f"Invalid config {path}: {exc}", err=True)
        raise typer.Exit(code=1)


def _load_timeline_or_exit(input_file: str):
    from shiftnorm.adapters.trace.client import load_timeline

    path = Path(input_file)
    if not path.exists():
        typer.echo(f"Trace file not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        return load_timeline(path)
    except ValueError as exc:
        typer.echo(f"Could not parse {path}: {exc}", err=True)
        raise typer.Exit(code=1)


# -- score --------------------------------------------------------------------


@app.command("score")
def score_cmd(
    input_file: str = typer.Option(..., "--input", help="Performance-entry JSON or DevTools trace"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Window configuration YAML"),
    report_all_changes: bool = typer.Option(False, "--report-all-changes", help="Print every metric change, not only the final values"),
    dispatch_every: int = typer.Option(1, help="Deliver buffered shifts every N records (0 = only at hide or restore)"),
    out: str = typer.Option(str(Path(DEFAULT_OUT_DIR) / DEFAULT_METRICS_FILENAME), help="Output JSON path for final metrics"),
) -> None:
    """Replay a trace and compute the layout-shift normalization metrics."""
    from shiftnorm.core.types import Metric
    from shiftnorm.metrics.aggregate import observe_lsn
    from shiftnorm.observe.lifecycle import PageLifecycle
    from shiftnorm.observe.replay import replay_timeline
    from shiftnorm.observe.source import ShiftObserver
    from shiftnorm.report.export import export_metrics_json

    config = _load_config_or_exit(config_file)
    timeline = _load_timeline_or_exit(input_file)

    def on_report(metric: Metric) -> None:
        typer.echo(f"{metric.name}: {metric.value:.6f} (delta {metric.delta:+.6f})")

    observer = ShiftObserver()
    lifecycle = PageLifecycle()
    session = observe_lsn(
        on_report,
        observer,
        lifecycle,
        report_all_changes=report_all_changes or config.report_all_changes,
        config=config,
    )
    if session is None:
        typer.echo("Layout shifts are not observable by this source.", err=True)
        raise typer.Exit(code=1)

    try:
        pushed = replay_timeline(timeline, observer, lifecycle, dispatch_every=dispatch_every)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Replayed {pushed} shifts")

    out_path = export_metrics_json(session.metrics, Path(out))
    typer.echo(f"Metrics written to {out_path}")


# -- timeline -----------------------------------------------------------------


@app.command("timeline")
def timeline_cmd(
    input_file: str = typer.Option(..., "--input", help="Performance-entry JSON or DevTools trace"),
    out: str = typer.Option(..., "--out", help="Output path (.csv or .parquet)"),
    config_file: Optional[str] = typer.Option(None, "--config", help="Window configuration YAML"),
) -> None:
    """Write per-shift metric values for a trace as CSV or Parquet."""
    from shiftnorm.report.export import export_timeline_csv, export_timeline_parquet

    config = _load_config_or_exit(config_file)
    timeline = _load_timeline_or_exit(input_file)

    out_path = Path(out)
    if out_path.suffix == ".csv":
        written = export_timeline_csv(timeline, out_path, config)
    elif out_path.suffix == ".parquet":
        written = export_timeline_parquet(timeline, out_path, config)
    else:
        typer.echo(f"Unsupported output format {out_path.suffix!r}; use .csv or .parquet", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Timeline written to {written}")


# -- config -------------------------------------------------------------------
config_app = typer.Typer()
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init_cmd(
    out: str = typer.Option("configs/windows.yaml", "--out", help="Destination YAML path"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write the default five-window configuration to YAML."""
    from shiftnorm.core.config import default_config, save_config

    out_path = Path(out)
    if out_path.exists() and not force:
        typer.echo(f"{out_path} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(code=1)
    save_config(default_config(), out_path)
    typer.echo(f"Config written to {out_path}")


@config_app.command("show")
def config_show_cmd(
    config_file: Optional[str] = typer.Option(None, "--config", help="Window configuration YAML"),
) -> None:
    """Print the effective window configuration."""
    config = _load_config_or_exit(config_file)
    for spec in config.windows:
        gap = "-" if spec.gap_ms is None else f"{spec.gap_ms:g}ms"
        limit = "inf" if spec.limit_ms is None else f"{spec.limit_ms:g}ms"
        typer.echo(f"{spec.name}: kind={spec.kind.value} gap={gap} limit={limit} combinator={spec.combinator.value}")


if __name__ == "__main__":
    app()
