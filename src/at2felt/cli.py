import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from .config.settings import AIRTABLE, ALL_SECTIONS, FELT, Config, ConfigurationError
from .config_loader import load_sync_settings
from .domain.enums import EmptyPolicy
from .domain.models import SyncSettings
from .pipeline.felt import FeltLayerManager
from .pipeline.orchestrator import SyncPipeline
from .pipeline.publish import CsvFileServer, NgrokTunnel, TransientPublisher
from .pipeline.source import AirtableSource
from .pipeline.transform import CsvProjector
from .types import SyncError
from .utils import setup_logging, timer

app = typer.Typer(help="Airtable to Felt sync: Fetch -> Project -> Publish -> Synchronize")


def load_settings(config: Optional[str], overrides: dict) -> SyncSettings:
    try:
        return load_sync_settings(config, overrides)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        raise typer.Exit(1)


def load_credentials(env_file: Optional[Path], sections) -> Config:
    try:
        return Config(env_file=env_file, sections=sections)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        raise typer.Exit(1)


def build_source(secure: Config) -> AirtableSource:
    return AirtableSource(secure.airtable, timeout_s=secure.http_timeout_s)


def build_layer_manager(secure: Config) -> FeltLayerManager:
    return FeltLayerManager(
        api_key=secure.felt.api_key,
        map_id=secure.felt.map_id,
        api_url=secure.felt.api_url,
        timeout_s=secure.http_timeout_s,
    )


def build_pipeline(settings: SyncSettings, secure: Config) -> SyncPipeline:
    """Wire the pipeline stages from validated settings and credentials."""
    publisher = TransientPublisher(
        CsvFileServer(port=settings.port, host=settings.host, filename=settings.filename),
        NgrokTunnel(
            auth_token=secure.ngrok.auth_token,
            subdomain=secure.ngrok.subdomain,
            domain=secure.ngrok.domain,
        ),
    )
    return SyncPipeline(
        source=build_source(secure),
        projector=CsvProjector(settings.fields, settings.picture_field),
        publisher=publisher,
        synchronizer=build_layer_manager(secure),
        settings=settings,
    )


@timer
def run_pipeline(pipeline: SyncPipeline):
    return pipeline.run()


@app.command("sync")
def sync(
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Path to YAML pipeline settings (default: configs/sync.yml)")] = None,
    env_file: Annotated[Optional[Path], typer.Option("--env-file", help="Explicit .env file with credentials")] = None,
    settle: Annotated[Optional[float], typer.Option("--settle", help="Seconds to keep the tunnel up after create/refresh")] = None,
    wait: Annotated[Optional[bool], typer.Option("--wait/--no-wait", help="Poll Felt until the layer finishes processing")] = None,
    on_empty: Annotated[Optional[EmptyPolicy], typer.Option("--on-empty", help="When no records match: skip | publish")] = None,
    csv_output: Annotated[Optional[Path], typer.Option("--csv-output", "-o", help="Also save the generated CSV to this path")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Local port for the CSV listener")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Fetch and project only; no tunnel, no Felt calls")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Export approved records to CSV and create or refresh the Felt layer.

    Examples:
        at2felt sync
        at2felt sync --settle 30 --wait -o offerings.csv
        at2felt sync --dry-run -v
    """
    setup_logging(verbose, "sync", log_to_file)

    settings = load_settings(config, {
        "settle_seconds": settle,
        "wait_for_processing": wait,
        "on_empty": on_empty,
        "csv_output": csv_output,
        "port": port,
    })

    if dry_run:
        secure = load_credentials(env_file, [AIRTABLE])
        try:
            records = build_source(secure).fetch(settings.status, settings.status_field)
            document = CsvProjector(settings.fields, settings.picture_field).render(records)
        except SyncError as e:
            logging.error(f"Dry run failed: {e}")
            raise typer.Exit(1)
        logging.info(f"DRY RUN: Would publish {document.row_count} rows to layer '{settings.layer_name}'")
        logging.info(f"Columns: {', '.join(document.header)}")
        return

    secure = load_credentials(env_file, ALL_SECTIONS)
    logging.debug(f"Configuration: {secure.get_security_summary()}")

    report = run_pipeline(build_pipeline(settings, secure))

    if not report.ok:
        raise typer.Exit(1)

    if report.skipped:
        typer.echo("No matching records; layer left unchanged")
    else:
        typer.echo(f"Layer {report.sync.action.value}: {report.sync.layer_id or settings.layer_name} ({report.rows_written} rows)")


@app.command("export")
def export(
    output: Annotated[Path, typer.Argument(help="Destination CSV path")] = Path("offerings.csv"),
    config: Annotated[Optional[str], typer.Option("--config", "-c", help="Path to YAML pipeline settings (default: configs/sync.yml)")] = None,
    env_file: Annotated[Optional[Path], typer.Option("--env-file", help="Explicit .env file with credentials")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
):
    """
    Write the approved records to a local CSV file without publishing.

    Examples:
        at2felt export
        at2felt export exports/offerings.csv
    """
    setup_logging(verbose)

    settings = load_settings(config, {})
    secure = load_credentials(env_file, [AIRTABLE])

    try:
        records = build_source(secure).fetch(settings.status, settings.status_field)
        document = CsvProjector(settings.fields, settings.picture_field).render(records)
        path = document.write(output)
    except (SyncError, OSError) as e:
        logging.error(f"Export failed: {e}")
        raise typer.Exit(1)

    typer.echo(f"Wrote {document.row_count} rows to {path}")


@app.command("layers")
def layers(
    env_file: Annotated[Optional[Path], typer.Option("--env-file", help="Explicit .env file with credentials")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
):
    """
    List the layers on the configured Felt map.
    """
    setup_logging(verbose)

    secure = load_credentials(env_file, [FELT])

    try:
        found = build_layer_manager(secure).list_layers()
    except SyncError as e:
        logging.error(f"Could not list layers: {e}")
        raise typer.Exit(1)

    if not found:
        typer.echo(f"No layers on map {secure.felt.map_id}")
        return

    typer.echo(f"Layers on map {secure.felt.map_id}:")
    for layer in found:
        status = f" [{layer.status}]" if layer.status else ""
        typer.echo(f"  {layer.id}  {layer.name}{status}")


if __name__ == "__main__":
    app()
