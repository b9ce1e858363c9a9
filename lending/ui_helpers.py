import json
import os
from typing import List

from rich.console import Console
from rich.table import Table

from lending.errors import LendingError
from lending.models import Book, Borrowing, User

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LENDING_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_user(user: User) -> None:
    if get_output_mode() == "json":
        print(json.dumps(user.to_dict(), ensure_ascii=False))
    else:
        print(f"User {user.user_id}: {user.username} <{user.email}> [{user.role}, {user.status}]")


def print_book(book: Book) -> None:
    if get_output_mode() == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
    else:
        print(f"Book {book.book_id}: {book.title} - {book.available_copies}/{book.total_copies} available")


def print_borrowing(borrowing: Borrowing) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(borrowing.to_dict(), ensure_ascii=False))
    elif mode == "rich":
        print_borrowings([borrowing])
    else:
        print(
            f"Borrowing {borrowing.borrowing_id}: user {borrowing.user_id}, book {borrowing.book_id}, "
            f"{borrowing.status}, due {borrowing.due_date:%Y-%m-%d}"
        )


def print_borrowings(borrowings: List[Borrowing]) -> None:
    """Print a list of borrowings.
    - plain: one line per borrowing, or 'No borrowings.'
    - json: JSON array
    - rich: Rich table
    """
    mode = get_output_mode()

    if not borrowings:
        print("No borrowings.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in borrowings], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Borrowings", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("User")
        table.add_column("Book")
        table.add_column("Due")
        table.add_column("Status")
        for b in borrowings:
            status_style = "green" if b.is_active else "dim"
            table.add_row(
                str(b.borrowing_id), str(b.user_id), str(b.book_id),
                f"{b.due_date:%Y-%m-%d}", f"[{status_style}]{b.status}[/]",
            )
        _console.print(table)
    else:
        for b in borrowings:
            print_borrowing(b)


def print_fine(borrowing_id: int, amount: float) -> None:
    if get_output_mode() == "json":
        print(json.dumps({"borrowing_id": borrowing_id, "fine": amount}))
    else:
        print(f"Fine for borrowing {borrowing_id}: {amount:.2f}")


def print_error(error: LendingError) -> None:
    if get_output_mode() == "json":
        print(json.dumps(error.to_dict(), ensure_ascii=False))
    else:
        print(f"Error [{error.code}]: {error.reason}")
