"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.memory_store import InMemoryStore
from ..adapters.supabase_store import SupabaseStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BarberaError, RetrievalError
from ..domain.schedule import DAY_NAMES, entry_for_weekday
from ..domain.slot_calculator import SlotCalculator
from ..services.availability import AvailabilityService
from ..services.catalog import CatalogService
from ..services.context import BookingContext
from ..services.schedule_editor import ScheduleService

app = typer.Typer(
    name="barbera",
    help="Inspect barber schedules and bookable appointment slots",
    add_completion=False
)

console = Console()
err_console = Console(stderr=True)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled demo data instead of Supabase."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    """Load the config file; in mock mode a missing file means defaults."""
    config_path = config_file or get_default_config_path()
    if mock and config_file is None and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _configure_logging(config: AppConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _build_context(config: AppConfig, mock: bool) -> BookingContext:
    if mock:
        store = InMemoryStore.with_mock_data()
    else:
        supabase = config.require_supabase()
        store = SupabaseStore.connect(supabase.url, supabase.resolve_api_key())
    return BookingContext.from_store(store, timezone=config.timezone)


def _build_availability_service(config: AppConfig) -> AvailabilityService:
    calculator = SlotCalculator(
        step_minutes=config.booking.slot_step_minutes,
        fallback_service_minutes=config.booking.fallback_service_minutes,
    )
    return AvailabilityService(
        slot_calculator=calculator,
        booking_horizon_days=config.booking.booking_horizon_days,
    )


def _setup(config_file: Optional[Path], mock: bool, verbose: bool):
    config = _load_config(config_file, mock)
    _configure_logging(config, verbose)
    if mock:
        console.print("[yellow]⚠  MOCK MODE: using demo data[/yellow]\n")
    return config, _build_context(config, mock)


def _fail(exc: Exception) -> None:
    if isinstance(exc, RetrievalError):
        console.print(f"[bold red]Could not load data, please retry:[/bold red] {exc}")
        if exc.cause is not None:
            console.print(f"[dim]{exc.cause}[/dim]")
    else:
        console.print(f"[bold red]Error:[/bold red] {exc}")
    raise typer.Exit(1)


@app.command()
def slots(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    service: Annotated[Optional[str], typer.Option("--service", "-s", help="Service id")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", help="Duration in minutes, overrides the service")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List the bookable start times of a barber on a date.

    Examples:

        barbera slots marco --date 2030-01-07 --service svc-fade --mock

        barbera slots marco --date 2030-01-07 --duration 45
    """
    try:
        config, context = _setup(config_file, mock, verbose)
        availability = _build_availability_service(config)

        result = asyncio.run(
            availability.find_slots(
                context,
                barber_id=barber_id,
                selected_date=date,
                service_id=service,
                duration_minutes=duration,
            )
        )
    except (BarberaError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not result.is_available:
        console.print(f"[yellow]⚠ {result.message}[/yellow]")
        return

    console.print(f"[bold green]✓ {len(result.slots)} available slot(s):[/bold green]\n")
    for slot in result.slots:
        console.print(f"  {slot.format_display()}")
    console.print()


@app.command()
def calendar(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List the dates a customer can pick for a barber.
    """
    try:
        config, context = _setup(config_file, mock, verbose)
        dates = asyncio.run(
            _build_availability_service(config).selectable_dates(context, barber_id=barber_id)
        )
    except (BarberaError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not dates:
        console.print("[yellow]⚠ No selectable dates. The barber has not opened any day yet.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(dates)} selectable date(s):[/bold green]\n")
    for day in dates:
        console.print(f"  {day.format('ddd, YYYY-MM-DD')}")
    console.print()


@app.command()
def schedule(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    Show a barber's weekly working hours.
    """
    try:
        _, context = _setup(config_file, mock, verbose)
        entries = asyncio.run(ScheduleService().get_schedule(context, barber_id))
    except (BarberaError, FileNotFoundError, ValueError) as e:
        _fail(e)

    table = Table(
        title=f"Weekly schedule of {barber_id}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Day", style="bold yellow")
    table.add_column("Hours")

    for day, name in DAY_NAMES.items():
        entry = entry_for_weekday(entries, day)
        if entry is None:
            hours = "[dim]not set[/dim]"
        elif entry.is_closed:
            hours = "[red]closed[/red]"
        else:
            hours = f"{entry.start_time:%H:%M} - {entry.end_time:%H:%M}"
        table.add_row(name, hours)

    console.print()
    console.print(table)
    console.print()


@app.command()
def services(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    verbose: VerboseOption = False,
):
    """
    List the services a barber offers.
    """
    try:
        _, context = _setup(config_file, mock, verbose)
        offered = asyncio.run(CatalogService().list_services(context, barber_id))
    except (BarberaError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not offered:
        console.print(f"[yellow]No services configured for {barber_id}.[/yellow]")
        return

    table = Table(
        title=f"Services of {barber_id}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("Price", justify="right")
    table.add_column("Duration", justify="right")

    for offering in offered:
        price = "free" if offering.is_free else f"${offering.price:.2f}"
        table.add_row(offering.id, offering.name, price, f"{offering.duration_minutes} min")

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barbera[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
