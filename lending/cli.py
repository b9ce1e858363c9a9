import os
import subprocess
import sys
from typing import Optional

import typer

from lending.catalog import Catalog
from lending.config import settings
from lending.database import Database
from lending.logging_setup import configure_logging
from lending.result import Outcome, attempt
from lending.service import LendingService
from lending.ui_helpers import (
    print_book,
    print_borrowing,
    print_borrowings,
    print_error,
    print_fine,
    print_user,
    set_output_mode,
)

APP_NAME = "Lending CLI"


class ServiceManager:
    """Lazily built database, catalog and service shared by the commands."""

    db_file: Optional[str] = None
    _database: Optional[Database] = None

    @classmethod
    def database(cls) -> Database:
        if cls._database is None or (cls.db_file and cls._database.db_file != cls.db_file):
            cls._database = Database(cls.db_file)
        return cls._database

    @classmethod
    def service(cls) -> LendingService:
        return LendingService(cls.database())

    @classmethod
    def catalog(cls) -> Catalog:
        return Catalog(cls.database())

    @classmethod
    def reset(cls) -> None:
        cls.db_file = None
        cls._database = None


def _finish(outcome: Outcome) -> None:
    """Exit non-zero on a rejection, after printing it."""
    if not outcome.ok:
        print_error(outcome.error)
        raise typer.Exit(code=1)


# --- Typer CLI application ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain | json | rich (default: plain)"
    ),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database file", envvar="LENDING_DB_FILE"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Global options (output mode, database file, verbosity)."""
    configure_logging("DEBUG" if verbose else None)
    if output:
        set_output_mode(output)
    if db:
        ServiceManager.db_file = db


@app.command("init-db")
def cli_init_db():
    """Create the database tables."""
    database = ServiceManager.database()
    print(f"Database ready: {database.db_file}")


@app.command("add-user")
def cli_add_user(
    username: str,
    email: str,
    full_name: str = typer.Option("", "--full-name"),
    role: str = typer.Option("member", "--role"),
    status: str = typer.Option("active", "--status"),
):
    """Register a user."""
    outcome = attempt(ServiceManager.catalog().add_user, username, email, full_name=full_name, role=role, status=status)
    _finish(outcome)
    print_user(outcome.value)


@app.command("set-status")
def cli_set_status(user_id: int, status: str):
    """Activate or deactivate a user."""
    outcome = attempt(ServiceManager.catalog().set_user_status, user_id, status)
    _finish(outcome)
    print_user(outcome.value)


@app.command("add-book")
def cli_add_book(
    isbn: str,
    title: str,
    copies: int = typer.Option(1, "--copies", "-c", help="Number of physical copies"),
    author: str = typer.Option("", "--author"),
):
    """Add a book with a number of copies."""
    outcome = attempt(ServiceManager.catalog().add_book, isbn, title, copies, author=author)
    _finish(outcome)
    print_book(outcome.value)


@app.command("book")
def cli_book(book_id: int):
    """Show a book and its available copies."""
    outcome = attempt(ServiceManager.catalog().get_book, book_id)
    _finish(outcome)
    print_book(outcome.value)


@app.command("borrow")
def cli_borrow(
    user_id: int,
    book_id: int,
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Loan period in days"),
):
    """Borrow one copy of a book."""
    outcome = attempt(ServiceManager.service().borrow_book, user_id, book_id, days)
    _finish(outcome)
    print_borrowing(outcome.value)


@app.command("return")
def cli_return(borrowing_id: int):
    """Return a borrowed copy."""
    outcome = attempt(ServiceManager.service().return_book, borrowing_id)
    _finish(outcome)
    print(f"Borrowing {borrowing_id} returned.")


@app.command("fine")
def cli_fine(
    borrowing_id: int,
    settle: bool = typer.Option(False, "--settle", help="Record the final fine of a returned borrowing"),
):
    """Show (or settle) the overdue fine of a borrowing."""
    service = ServiceManager.service()
    operation = service.settle_fine if settle else service.calculate_fine
    outcome = attempt(operation, borrowing_id)
    _finish(outcome)
    print_fine(borrowing_id, outcome.value)


@app.command("loans")
def cli_loans(user_id: int):
    """List a user's borrowings."""
    outcome = attempt(ServiceManager.service().borrowings_for_user, user_id)
    _finish(outcome)
    print_borrowings(outcome.value)


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
):
    """Run the HTTP API with uvicorn."""
    env = dict(os.environ)
    if ServiceManager.db_file:
        env["LENDING_DB_FILE"] = ServiceManager.db_file
    print(f"Starting API on http://{host}:{port}")
    subprocess.run(
        [sys.executable, "-m", "uvicorn", "lending.api:app", "--host", host, "--port", str(port)],
        env=env,
        check=False,
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
