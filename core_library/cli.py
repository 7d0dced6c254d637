"""
Command-Line Front End

Thin typer wrapper over LibrarySystem. Every command boots the library
from the root directory, runs one operation and shuts down (which writes
the ledger file back).
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich import box

from .circulation import BorrowEntry, LoanState
from .config import get_config
from .errors import BootError, LibraryError
from .logging_config import setup_logging
from .records import BookRecord
from .system import LibrarySystem


app = typer.Typer(help="Library management CLI", no_args_is_help=True)
console = Console()


@app.callback()
def _global_options(
    ctx: typer.Context,
    root: Path = typer.Option(Path("."), "--root", "-r", envvar="LIBSYS_ROOT",
                              help="Directory holding the library file"),
    user: Optional[str] = typer.Option(None, "--user", "-u", envvar="LIBSYS_USER",
                                       help="Account name to log in with"),
    password: Optional[str] = typer.Option(None, "--password", "-p", envvar="LIBSYS_PASSWORD",
                                           help="Account password"),
):
    """Global options: library location and credentials."""
    cfg = get_config()
    setup_logging(cfg.log_level, log_format=cfg.log_format, log_file=cfg.log_file)
    ctx.obj = {"root": root, "user": user, "password": password}


@contextmanager
def _library(ctx: typer.Context):
    """Boot the library, report refusals, always shut down"""
    try:
        system = LibrarySystem.open_or_create(ctx.obj["root"])
    except BootError as e:
        console.print(f"[bold red]Boot failed:[/] {escape(e.message)}")
        raise typer.Exit(code=2)
    try:
        yield system
    except LibraryError as e:
        console.print(f"[red]{escape(e.message)}[/]")
        raise typer.Exit(code=1)
    finally:
        _shutdown(system)


def _shutdown(system: LibrarySystem):
    """Write the ledger back; a failed write ends the command with exit code 1"""
    try:
        system.shutdown()
    except LibraryError as e:
        console.print(f"[bold red]Changes not saved:[/] {escape(e.message)}")
        raise typer.Exit(code=1)


def _login(ctx: typer.Context, system: LibrarySystem):
    user = ctx.obj["user"]
    if not user:
        console.print("[red]This command needs --user (or LIBSYS_USER)[/]")
        raise typer.Exit(code=1)
    password = ctx.obj["password"]
    if password is None:
        password = typer.prompt("Password", hide_input=True)
    return system.login(user, password)


def _book_table(books: Iterable[BookRecord]) -> Table:
    table = Table(box=box.SIMPLE)
    table.add_column("ISBN")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Stock", justify="right")
    table.add_column("Introduced")
    for book in books:
        table.add_row(escape(book.isbn), escape(book.title), escape(book.author),
                      str(book.stock), book.introduced_at.date_string())
    return table


def _loan_table(entries: Iterable[BorrowEntry], numbered: bool) -> Table:
    table = Table(box=box.SIMPLE)
    table.add_column("#" if numbered else "Record", justify="right")
    table.add_column("ISBN")
    table.add_column("Title")
    if not numbered:
        table.add_column("Borrower")
    table.add_column("Days", justify="right")
    table.add_column("Borrowed")
    table.add_column("Returned")
    for index, entry in enumerate(entries, start=1):
        record = entry.record
        title = escape(entry.book.title) if entry.book else "?"
        returned = ("pending" if entry.state is LoanState.ACTIVE
                    else record.returned_at.date_string())
        row = [str(index if numbered else entry.ref), escape(record.isbn), title]
        if not numbered:
            row.append(escape(entry.borrower_name) if entry.borrower_name else "<cancelled>")
        row += [str(record.loan_days), record.borrowed_at.date_string(), returned]
        table.add_row(*row)
    return table


@app.command("init")
def cli_init(ctx: typer.Context):
    """Create the library file (with the built-in admin) if it is missing."""
    with _library(ctx) as system:
        console.print(f"Library file ready: {escape(str(system.path))}")


@app.command("register")
def cli_register(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="New account name"),
    new_password: str = typer.Option(..., "--new-password", prompt=True,
                                     confirmation_prompt=True, hide_input=True),
):
    """Register a regular account."""
    with _library(ctx) as system:
        account = system.register(name, new_password)
        console.print(f"Registered {escape(account.name)} with ID {account.id}")


@app.command("profile")
def cli_profile(ctx: typer.Context):
    """Show the logged-in account."""
    with _library(ctx) as system:
        profile = system.profile(_login(ctx, system))
        console.print(f"ID: {profile.id}")
        console.print(f"Account: {escape(profile.name)} ({profile.role.name.lower()})")
        console.print(f"Balance: {profile.balance.to_string()}")
        console.print(f"Books on loan: {profile.active_loans}")
        console.print(f"Registered: {profile.registered_at}")


@app.command("recharge")
def cli_recharge(ctx: typer.Context, amount: str = typer.Argument(..., help="Amount to add")):
    """Add money to the logged-in account."""
    with _library(ctx) as system:
        balance = system.recharge(_login(ctx, system), amount)
        console.print(f"Recharged. Balance: {balance.to_string()}")


@app.command("cancel")
def cli_cancel(ctx: typer.Context,
               yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Cancel the logged-in account."""
    with _library(ctx) as system:
        session = _login(ctx, system)
        if not yes and not typer.confirm("Cancel this account permanently?"):
            console.print("Aborted.")
            return
        system.cancel_account(session)
        console.print("Account cancelled.")


@app.command("books")
def cli_books(ctx: typer.Context):
    """List every book."""
    with _library(ctx) as system:
        books = system.list_books(_login(ctx, system))
        if not books:
            console.print("No books in library.")
            return
        console.print(_book_table(books))


@app.command("search")
def cli_search(
    ctx: typer.Context,
    isbn: Optional[str] = typer.Option(None, "--isbn", help="Exact ISBN"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title fragment"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author fragment"),
):
    """Find books by ISBN, or by title/author fragment."""
    with _library(ctx) as system:
        books = system.search_book(_login(ctx, system), isbn=isbn, title=title, author=author)
        if not books:
            console.print("No matching books.")
            return
        console.print(_book_table(books))


@app.command("add-book")
def cli_add_book(
    ctx: typer.Context,
    isbn: str = typer.Argument(...),
    title: str = typer.Argument(...),
    author: str = typer.Argument(...),
    quantity: str = typer.Argument(..., help="Copies to add"),
):
    """Add copies of a book to the catalog."""
    with _library(ctx) as system:
        book = system.add_book(_login(ctx, system), isbn, title, author, quantity)
        console.print(f"{escape(book.title)} now has {book.stock} copies in stock")


@app.command("modify-book")
def cli_modify_book(
    ctx: typer.Context,
    isbn: str = typer.Argument(...),
    title: Optional[str] = typer.Option(None, "--title"),
    author: Optional[str] = typer.Option(None, "--author"),
    stock: Optional[str] = typer.Option(None, "--stock"),
):
    """Edit a catalog entry."""
    with _library(ctx) as system:
        book = system.modify_book(_login(ctx, system), isbn, title, author, stock)
        console.print(_book_table([book]))


@app.command("borrow")
def cli_borrow(ctx: typer.Context, isbn: str = typer.Argument(...),
               days: str = typer.Argument(..., help="Loan period in days")):
    """Borrow one copy of a book."""
    with _library(ctx) as system:
        entry = system.borrow(_login(ctx, system), isbn, days)
        console.print(f"Borrowed {escape(entry.book.title)} for {entry.record.loan_days} days")


@app.command("loans")
def cli_loans(ctx: typer.Context):
    """List the logged-in account's unreturned books."""
    with _library(ctx) as system:
        loans = system.active_loans(_login(ctx, system))
        if not loans:
            console.print("No books on loan.")
            return
        console.print(_loan_table(loans, numbered=True))


@app.command("return")
def cli_return(ctx: typer.Context, index: str = typer.Argument(..., help="# from `loans`")):
    """Return one of the logged-in account's loans."""
    with _library(ctx) as system:
        receipt = system.return_book(_login(ctx, system), index)
        if receipt.overdue_days:
            console.print(f"Returned {receipt.overdue_days} days late, "
                          f"fee {receipt.fee.to_string()}")
            if receipt.balance.is_negative():
                console.print("[yellow]Balance is negative: recharge to settle late fees[/]")
        console.print("Book returned.")


@app.command("withdraw")
def cli_withdraw(ctx: typer.Context, record: str = typer.Argument(..., help="Record from `records`")):
    """Close any borrow record on the borrower's behalf."""
    with _library(ctx) as system:
        receipt = system.withdraw_record(_login(ctx, system), record)
        console.print(f"Record {receipt.ref} closed, fee {receipt.fee.to_string()}")


@app.command("records")
def cli_records(ctx: typer.Context):
    """List every borrow record."""
    with _library(ctx) as system:
        entries = system.borrow_records(_login(ctx, system))
        if not entries:
            console.print("No borrow records.")
            return
        console.print(_loan_table(entries, numbered=False))


@app.command("users")
def cli_users(ctx: typer.Context):
    """List every account."""
    with _library(ctx) as system:
        table = Table(box=box.SIMPLE)
        for column in ("ID", "Account", "Role", "Balance", "On loan"):
            table.add_column(column)
        for summary in system.list_accounts(_login(ctx, system)):
            table.add_row(str(summary.id), escape(summary.name), summary.role.name.lower(),
                          summary.balance.to_string(), str(summary.active_loans))
        console.print(table)


@app.command("reset-password")
def cli_reset_password(ctx: typer.Context, account_id: str = typer.Argument(...)):
    """Reset an account's password to the default."""
    with _library(ctx) as system:
        default = system.reset_password(_login(ctx, system), account_id)
        console.print(f"Password of account {account_id} reset to \"{escape(default)}\"")


@app.command("set-role")
def cli_set_role(ctx: typer.Context, account_id: str = typer.Argument(...),
                 role: str = typer.Argument(..., help="regular, manager or admin")):
    """Change an account's role."""
    with _library(ctx) as system:
        account = system.assign_role(_login(ctx, system), account_id, role)
        console.print(f"Account {account.id} is now {account.role.name.lower()}")


@app.command("remove-user")
def cli_remove_user(ctx: typer.Context, account_id: str = typer.Argument(...)):
    """Cancel another account."""
    with _library(ctx) as system:
        system.remove_account(_login(ctx, system), account_id)
        console.print(f"Account {account_id} cancelled.")


@app.command("deduct")
def cli_deduct(ctx: typer.Context, account_id: str = typer.Argument(...),
               amount: str = typer.Argument(...)):
    """Take money from an account's balance."""
    with _library(ctx) as system:
        balance = system.deduct(_login(ctx, system), account_id, amount)
        console.print(f"Balance of account {account_id}: {balance.to_string()}")


def main():
    app()
