"""
Planwright management commands.

Usage:
    planwright init-db
    planwright scenario derive master --as what-if
    planwright expenses report --output expenses.csv
    planwright expenses verify
    planwright serve --port 8000
"""
import logging
from typing import Optional

import click

from planwright import __version__
from planwright.config import configure_logging
from planwright.models import init_db, SessionLocal
from planwright.domain.exceptions import DomainError
from planwright.domain.services import DataBootstrap, ExpenseReportService, cents_to_display
from planwright.infrastructure.repositories import ScenarioRepository

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__)
def cli():
    """Planwright planning and expenses CLI."""
    configure_logging()


@cli.command('init-db')
def init_db_command():
    """Create tables and load required data."""
    init_db()
    db = SessionLocal()
    try:
        counts = DataBootstrap(db).load_required_data()
    finally:
        db.close()

    click.echo(click.style("✓ Database initialized", fg='green'))
    click.echo(f"  Scenarios created:     {counts['scenarios_created']}")
    click.echo(f"  Advance types created: {counts['advance_types_created']}")


# =============================================================================
# Scenarios
# =============================================================================

@cli.group()
def scenario():
    """Scenario commands."""
    pass


@scenario.command()
@click.argument('name')
@click.option('--as', 'new_name', default=None, help='Name of the derived scenario')
def derive(name: str, new_name: Optional[str]):
    """Derive a new scenario from scenario NAME."""
    db = SessionLocal()
    try:
        repo = ScenarioRepository(db)
        parent = repo.find_by_name(name)
        child = parent.new_derived_scenario(new_name)
        repo.save(child)
        db.commit()
        click.echo(click.style(f"✓ Derived '{child.name}' from '{parent.name}'", fg='green'))
        click.echo(f"  Orders: {len(child.orders)}")
    except DomainError as e:
        db.rollback()
        raise click.ClickException(e.message)
    finally:
        db.close()


# =============================================================================
# Expenses
# =============================================================================

@cli.group()
def expenses():
    """Expense commands."""
    pass


@expenses.command()
@click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Write the report as CSV instead of printing it')
def report(output: Optional[str]):
    """Summarize expenses of every active order."""
    db = SessionLocal()
    try:
        df = ExpenseReportService(db).order_expenses_frame()
    finally:
        db.close()

    if output:
        df.to_csv(output, index=False)
        click.echo(f"Wrote {len(df)} rows to {output}")
        return

    if df.empty:
        click.echo("No active orders")
        return

    display = df.copy()
    for column in ('direct_expenses_cents', 'indirect_expenses_cents', 'total_expenses_cents'):
        display[column] = display[column].map(cents_to_display)
    click.echo(display.to_string(index=False))


@expenses.command()
def verify():
    """Check cached expense totals against expense sheet lines."""
    db = SessionLocal()
    try:
        problems = ExpenseReportService(db).verify()
    finally:
        db.close()

    if not problems:
        click.echo(click.style("✓ Expense totals are consistent", fg='green'))
        return

    click.echo(click.style(f"✗ {len(problems)} inconsistent totals:", fg='red'))
    for problem in problems:
        click.echo(f"  - {problem}")
    raise SystemExit(1)


@cli.command()
@click.option('--port', type=int, default=8000, help='Server port')
@click.option('--host', default='0.0.0.0', help='Server host')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
def serve(port: int, host: str, reload: bool):
    """Start the API server."""
    import uvicorn

    click.echo(click.style('Planwright - API Server', fg='cyan', bold=True))
    click.echo(f"Starting server at http://{host}:{port}")

    uvicorn.run(
        "planwright.main:app",
        host=host,
        port=port,
        reload=reload
    )
