"""Typer command line for ``tb-mirror``.

Each command loads settings, configures logging, wires the services and
runs one async use case. Exit codes: 0 success, 1 fatal error (bad
configuration, rejected token, name not found, missing input), 2 run
completed but at least one entity failed.
"""

import asyncio
from collections.abc import Coroutine
from typing import Annotated, Any, Optional, TypeVar

import typer

from tbmirror.application.services import Category, RESTORE_CATEGORIES
from tbmirror.config import Settings, get_settings
from tbmirror.domain.entities import RunReport
from tbmirror.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    EntityNotFoundError,
    PlatformError,
    TreeStoreError,
)
from tbmirror.infrastructure import dependencies
from tbmirror.infrastructure.logging.log_config import setup_logging
from tbmirror.infrastructure.storage import LocalTreeStore

T = TypeVar("T")

EXIT_FATAL = 1
EXIT_PARTIAL = 2

app = typer.Typer(
    name="tb-mirror",
    help="Back up, restore, clone and relabel ThingsBoard configuration.",
    no_args_is_help=True,
    add_completion=False,
)


# ── Plumbing ─────────────────────────────────────────────────────────


def _bootstrap() -> Settings:
    settings = get_settings()
    setup_logging(settings)
    return settings


def _fail(message: str) -> typer.Exit:
    typer.echo(f"error: {message}", err=True)
    return typer.Exit(code=EXIT_FATAL)


def _run(work: Coroutine[Any, Any, T]) -> T:
    """Run a use case; fatal errors become one diagnostic line and exit 1."""
    try:
        return asyncio.run(work)
    except AuthenticationError as e:
        raise _fail(
            f"{e.message}. Your token is missing or expired; set a fresh one in TBMIRROR_TOKEN"
        ) from e
    except (ConfigurationError, EntityNotFoundError, TreeStoreError, ValueError) as e:
        raise _fail(str(e)) from e
    except PlatformError as e:
        raise _fail(e.message) from e


def _finish(report: RunReport, action: str) -> None:
    typer.echo(f"{action}: {report.summary()}")
    for failure in report.failures:
        typer.echo(f"  failed {failure.category}/{failure.name}: {failure.detail}", err=True)
    if report.failed:
        raise typer.Exit(code=EXIT_PARTIAL)


def selected_categories(
    dashboards: bool, rulechains: bool, widgets: bool, devices: bool
) -> list[Category]:
    """Map restore flags to categories; no flag means every restorable category."""
    flags = {
        Category.DASHBOARDS: dashboards,
        Category.RULE_CHAINS: rulechains,
        Category.WIDGETS: widgets,
        Category.DEVICES: devices,
    }
    chosen = [category for category, enabled in flags.items() if enabled]
    return chosen or list(RESTORE_CATEGORIES)


# ── Use cases ────────────────────────────────────────────────────────


async def _backup(settings: Settings, output: str | None) -> tuple[RunReport, str]:
    root = dependencies.backup_root(settings, output)
    async with dependencies.get_platform_client(settings) as client:
        session = await dependencies.open_session(client, settings)
        store = LocalTreeStore(root)
        await store.make_dirs("")
        exporter = dependencies.get_exporter(client, store, settings)
        return await exporter.export(session), str(root)


async def _restore(settings: Settings, input_dir: str, categories: list[Category]) -> RunReport:
    store = LocalTreeStore(input_dir)
    async with dependencies.get_platform_client(settings) as client:
        importer = dependencies.get_importer(client, store, settings)
        # Validate the tree before touching the platform
        await importer.resolve_tree_dir("")
        session = await dependencies.open_session(client, settings)
        return await importer.import_tree(session, "", categories)


async def _clone(settings: Settings, dashboard: str, device: str, name: str | None) -> str:
    async with dependencies.get_platform_client(settings) as client:
        session = await dependencies.open_session(client, settings)
        service = dependencies.get_clone_service(client, settings)
        created = await service.clone(session, dashboard, device, name)
        return created.name


async def _label(settings: Settings, dashboard: str, device: str) -> None:
    async with dependencies.get_platform_client(settings) as client:
        session = await dependencies.open_session(client, settings)
        service = dependencies.get_label_service(client, settings)
        await service.label(session, dashboard, device)


async def _convert(settings: Settings, input_dir: str, output: str | None) -> tuple[RunReport, str]:
    target = dependencies.convert_root(settings, output)
    converter = dependencies.get_converter(input_dir, target, settings)
    return await converter.convert(), str(target)


# ── Commands ─────────────────────────────────────────────────────────


@app.command()
def backup(
    output: Annotated[
        Optional[str], typer.Option("-o", "--output", help="Directory to store backups")
    ] = None,
) -> None:
    """Backup rule chains, widgets, dashboards, devices and customers."""
    settings = _bootstrap()
    report, root = _run(_backup(settings, output))
    typer.echo(f"Backup written to {root}")
    _finish(report, "Backup")


@app.command()
def restore(
    input_dir: Annotated[
        Optional[str], typer.Option("-i", "--input", help="Directory to restore data from")
    ] = None,
    dashboards: Annotated[bool, typer.Option("-d", "--dashboards", help="Restore dashboards")] = False,
    rulechains: Annotated[bool, typer.Option("-r", "--rulechains", help="Restore rule chains")] = False,
    widgets: Annotated[bool, typer.Option("-w", "--widgets", help="Restore widgets")] = False,
    devices: Annotated[bool, typer.Option("--devices", help="Restore devices")] = False,
) -> None:
    """Restore backup data into the configured installation."""
    if not input_dir:
        raise _fail(
            'Input directory is not specified. Pass the input directory with "-i <directory>".'
        )
    settings = _bootstrap()
    categories = selected_categories(dashboards, rulechains, widgets, devices)
    report = _run(_restore(settings, input_dir, categories))
    _finish(report, "Restore")


@app.command()
def clone(
    dashboard_name: Annotated[str, typer.Argument(help="Dashboard to clone")],
    device_name: Annotated[str, typer.Argument(help="Device the clone is bound to")],
    name: Annotated[
        Optional[str], typer.Option("-n", "--name", help="Name of the cloned dashboard")
    ] = None,
) -> None:
    """Clone a dashboard onto another device."""
    settings = _bootstrap()
    cloned_name = _run(_clone(settings, dashboard_name, device_name, name))
    typer.echo(f"Dashboard {cloned_name} created successfully")


@app.command()
def label(
    dashboard_name: Annotated[str, typer.Argument(help="Dashboard to relabel")],
    device_name: Annotated[str, typer.Argument(help="Device holding the LABELS attribute")],
) -> None:
    """Update dashboard labels from a device's LABELS attribute."""
    settings = _bootstrap()
    _run(_label(settings, dashboard_name, device_name))
    typer.echo(f"Dashboard {dashboard_name} labeled successfully")


@app.command()
def convert(
    input_dir: Annotated[str, typer.Argument(help="Platform v2 backup directory")],
    output: Annotated[
        Optional[str], typer.Option("-o", "--output", help="Directory to store converted data")
    ] = None,
) -> None:
    """Convert rule chains and dashboards from platform v2 to v3 format."""
    settings = _bootstrap()
    report, root = _run(_convert(settings, input_dir, output))
    typer.echo(f"Converted data written to {root}")
    _finish(report, "Convert")
