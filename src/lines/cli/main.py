import os
import click
from datetime import date, datetime
from pathlib import Path
from rich import print
from rich.console import Console
from rich.table import Table

from lines.collisions import CollisionRange, is_overnight_shift
from lines.controller import Controller
from lines.errors import SchedulingError
from lines.lines_env import LinesEnvironment
from lines.model import DatabaseManager
from lines.schedule import FREQUENCIES, generate_suggestions
from lines.shared import WEEKDAY_NAMES, day_of_week, format_time_range
from lines.versioning import get_version


class _DateParam(click.ParamType):
    name = "date"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, date):
            return value
        s = str(value).strip().lower()
        if s in ("today", "now"):
            return date.today()
        try:
            return datetime.strptime(s, "%Y-%m-%d").date()
        except ValueError:
            self.fail("Expected YYYY-MM-DD or 'today'", param, ctx)


class _DaysParam(click.ParamType):
    """Comma separated weekday indices (0 = Sunday) or names: '1,3,5', 'mon,wed'."""

    name = "days"

    def convert(self, value, param, ctx):
        if isinstance(value, (list, tuple)):
            return list(value)
        days = []
        for part in str(value).split(","):
            part = part.strip().lower()
            if not part:
                continue
            if part.isdigit() and 0 <= int(part) <= 6:
                days.append(int(part))
                continue
            matches = [i for i, n in enumerate(WEEKDAY_NAMES) if n.lower().startswith(part)]
            if len(part) < 2 or len(matches) != 1:
                self.fail(f"Unknown day {part!r}; use 0-6 (0 = Sunday) or a day name", param, ctx)
            days.append(matches[0])
        return days


_DATE = _DateParam()
_DAYS = _DaysParam()

VERSION = get_version()


def ensure_database(db_path: str):
    if not Path(db_path).exists():
        print(
            f"[yellow]⚠️ [/yellow]Database not found. Creating new database at {db_path}"
        )
        DatabaseManager(db_path).close()


def _controller(ctx) -> Controller:
    return Controller(str(ctx.obj["DB"]), ctx.obj["ENV"])


def _fail(e: SchedulingError):
    raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(VERSION, prog_name="lines", message="%(prog)s version %(version)s")
@click.option(
    "--home",
    help="Override the Lines workspace directory (equivalent to setting $LINES_HOME).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, home, verbose):
    """Lines CLI – schedule recurring venue events from the command line."""
    if home:
        os.environ["LINES_HOME"] = (
            home  # Must be set before LinesEnvironment is instantiated
        )

    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    if ctx.invoked_subcommand in ("suggest", "overnight"):
        # pure calculations; no workspace needed
        return

    env = LinesEnvironment()
    env.ensure(init_config=True, init_db_fn=ensure_database)
    config = env.load_config()

    ctx.obj["ENV"] = env
    ctx.obj["DB"] = env.db_path
    ctx.obj["CONFIG"] = config
    if verbose:
        print(f"lines version: {VERSION}")
        print(f"using home directory: {env.home}")


@cli.command()
@click.option("--days", "-d", type=_DAYS, required=True, help="e.g. '1,3,5' or 'mon,wed,fri'.")
@click.option(
    "--frequency",
    "-f",
    type=click.Choice(FREQUENCIES),
    default="weekly",
    show_default=True,
)
@click.option("--anchor", "-a", type=_DATE, default="today", help="First date considered.")
@click.option(
    "--months", "-m", type=click.IntRange(0, 60), default=6, show_default=True
)
def suggest(days, frequency, anchor, months):
    """List the dates a schedule produces, one per line."""
    try:
        dates = generate_suggestions(days, frequency, anchor, months)
    except SchedulingError as e:
        _fail(e)
    for d in dates:
        click.echo(f"{d} {WEEKDAY_NAMES[day_of_week(d)][:3]}")


@cli.command()
@click.argument("start_time")
@click.argument("end_time")
def overnight(start_time, end_time):
    """Report whether START_TIME-END_TIME runs past midnight."""
    try:
        result = is_overnight_shift(start_time, end_time)
    except SchedulingError as e:
        _fail(e)
    click.echo("overnight" if result else "same day")


@cli.group()
def line():
    """Create, change and remove lines."""


@line.command("add")
@click.argument("name")
@click.option("--venue", "venue_id", type=int, required=True)
@click.option("--days", "-d", type=_DAYS, default="", help="e.g. '1,3,5' or 'mon,wed,fri'.")
@click.option("--start", "start_time", required=True, help="HH:MM")
@click.option("--end", "end_time", required=True, help="HH:MM; earlier than start for overnight")
@click.option("--frequency", "-f", type=click.Choice(FREQUENCIES), default="weekly")
@click.option("--color", default=None, help="Palette color; next free one when omitted.")
@click.option("--anchor", "-a", type=_DATE, default="today")
@click.option("--manual", "manual_dates", multiple=True, help="Extra YYYY-MM-DD date.")
@click.pass_context
def line_add(ctx, name, venue_id, days, start_time, end_time, frequency, color, anchor, manual_dates):
    """Create a line and generate its occurrences."""
    controller = _controller(ctx)
    try:
        created = controller.create_line(
            venue_id,
            name,
            days,
            start_time,
            end_time,
            frequency,
            color,
            manual_dates=list(manual_dates),
            anchor_date=anchor,
        )
        count = len(controller.get_occurrences(created.id))
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    print(f"[green]✔ Created line {created.id} '{created.name}' with {count} occurrences.[/green]")


@line.command("update")
@click.argument("line_id", type=int)
@click.option("--name", default=None)
@click.option("--days", "-d", type=_DAYS, default=None)
@click.option("--start", "start_time", default=None)
@click.option("--end", "end_time", default=None)
@click.option("--frequency", "-f", type=click.Choice(FREQUENCIES), default=None)
@click.option("--color", default=None)
@click.option("--anchor", "-a", type=_DATE, default="today")
@click.pass_context
def line_update(ctx, line_id, name, days, start_time, end_time, frequency, color, anchor):
    """Change a line; schedule changes regenerate its occurrences."""
    controller = _controller(ctx)
    try:
        updated = controller.update_line(
            line_id,
            name=name,
            days=days,
            start_time=start_time,
            end_time=end_time,
            frequency=frequency,
            color=color,
            anchor_date=anchor,
        )
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    print(f"[green]✔ Updated line {updated.id} '{updated.name}'.[/green]")


@line.command("list")
@click.option("--venue", "venue_id", type=int, required=True)
@click.pass_context
def line_list(ctx, venue_id):
    """Show the lines of a venue."""
    controller = _controller(ctx)
    table = Table(title=f"Lines for venue {venue_id}")
    for column in ("id", "name", "days", "time", "frequency", "events"):
        table.add_column(column)
    try:
        for ln in controller.list_lines(venue_id):
            summary = controller.line_summary(ln.id)
            table.add_row(
                str(ln.id),
                f"[{ln.color}]{ln.name}[/]",
                ",".join(WEEKDAY_NAMES[d][:3] for d in ln.days),
                format_time_range(ln.start_time, ln.end_time, controller.ampm),
                ln.frequency,
                f"{summary.active_events}/{summary.total_events}",
            )
    finally:
        controller.close()
    Console().print(table)


@line.command("delete")
@click.argument("line_id", type=int)
@click.confirmation_option(prompt="Delete this line and all of its occurrences?")
@click.pass_context
def line_delete(ctx, line_id):
    """Delete a line together with its occurrences."""
    controller = _controller(ctx)
    try:
        controller.delete_line(line_id)
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    print(f"[green]✔ Deleted line {line_id}.[/green]")


@cli.command()
@click.argument("line_id", type=int)
@click.pass_context
def occurrences(ctx, line_id):
    """List the occurrences of a line."""
    controller = _controller(ctx)
    try:
        found = controller.get_occurrences(line_id)
        table = Table(title=f"Occurrences for line {line_id}")
        for column in ("id", "date", "time", "kind", "status"):
            table.add_column(column)
        for occ in found:
            table.add_row(
                str(occ.id),
                f"{controller.fmt_user(occ.date)} {WEEKDAY_NAMES[day_of_week(occ.date)][:3]}",
                format_time_range(occ.start_time, occ.end_time, controller.ampm),
                "expected" if occ.is_expected else "manual",
                "active" if occ.is_active else "[red]cancelled[/red]",
            )
    finally:
        controller.close()
    Console().print(table)


@cli.command("add-date")
@click.argument("line_id", type=int)
@click.argument("on", type=_DATE)
@click.option("--start", "start_time", default=None, help="HH:MM; line default when omitted")
@click.option("--end", "end_time", default=None, help="HH:MM; line default when omitted")
@click.pass_context
def add_date(ctx, line_id, on, start_time, end_time):
    """Add a manual occurrence ON a date."""
    controller = _controller(ctx)
    try:
        occ = controller.add_manual_occurrence(line_id, on.isoformat(), start_time, end_time)
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    print(f"[green]✔ Added {occ.date} to line {line_id}.[/green]")


@cli.command()
@click.argument("occurrence_id", type=int)
@click.pass_context
def cancel(ctx, occurrence_id):
    """Cancel an occurrence (it stays on record)."""
    controller = _controller(ctx)
    try:
        controller.cancel_occurrence(occurrence_id)
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    print(f"[yellow]Occurrence {occurrence_id} cancelled.[/yellow]")


@cli.command()
@click.argument("occurrence_id", type=int)
@click.pass_context
def reactivate(ctx, occurrence_id):
    """Reactivate a cancelled occurrence."""
    controller = _controller(ctx)
    try:
        controller.reactivate_occurrence(occurrence_id)
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    print(f"[green]✔ Occurrence {occurrence_id} reactivated.[/green]")


@cli.command()
@click.option("--venue", "venue_id", type=int, required=True)
@click.option("--date", "dates", type=_DATE, multiple=True, required=True)
@click.option("--start", "start_time", required=True)
@click.option("--end", "end_time", required=True)
@click.option("--exclude-line", "exclude_line_id", type=int, default=None)
@click.pass_context
def collisions(ctx, venue_id, dates, start_time, end_time, exclude_line_id):
    """Check proposed dates and times against a venue's active events."""
    controller = _controller(ctx)
    try:
        ranges = [CollisionRange(d.isoformat(), start_time, end_time) for d in dates]
        result = controller.check_line_collisions(venue_id, ranges, exclude_line_id)
    except SchedulingError as e:
        _fail(e)
    finally:
        controller.close()
    if not result.has_collision:
        print("[green]✔ No collisions.[/green]")
        return
    print(f"[red]✘ {len(result.conflicting_ranges)} collisions found:[/red]")
    for r in result.conflicting_ranges:
        label = f" {r.line_name}" if r.line_name else ""
        click.echo(f"  {r.date} {r.start_time}-{r.end_time}{label}")
    ctx.exit(1)


@cli.command()
@click.option("--venue", "venue_id", type=int, required=True)
@click.pass_context
def calendar(ctx, venue_id):
    """Show every occurrence at a venue with its status."""
    controller = _controller(ctx)
    try:
        entries = controller.venue_calendar(venue_id)
        min_hour, max_hour = controller.hour_bounds(venue_id)
    finally:
        controller.close()

    console = Console(highlight=False)
    console.print(f"hours {min_hour:02d}:00-{max_hour:02d}:00")
    current = None
    for entry in entries:
        occ = entry.occurrence
        if occ.date != current:
            current = occ.date
            console.print(f"[bold]{occ.date} {WEEKDAY_NAMES[day_of_week(occ.date)]}[/bold]")
        moon = " ☾" if entry.is_overnight else ""
        console.print(
            f"  {format_time_range(occ.start_time, occ.end_time, controller.ampm)}{moon}"
            f" {occ.line_name or occ.line_id} ({entry.status})"
        )


if __name__ == "__main__":
    cli()
