"""Command-line interface for labstock.

Built with Typer for commands and Rich for output.
"""

import json
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..utils import parse_date
from .config import get_config
from .db import get_db
from .db.schemas import BorrowStatus, ItemCondition, UserRole
from .errors import ConflictError, InventoryError, NotFoundError
from .log import setup_logging

# Exit statuses for application errors
EXIT_INVALID = 1
EXIT_NOT_FOUND = 3
EXIT_CONFLICT = 4

# Create the main app
app = typer.Typer(
    name="labstock",
    help="Track lab equipment and who has borrowed it.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
user_app = typer.Typer(help="Manage user accounts.")
app.add_typer(user_app, name="user")

item_app = typer.Typer(help="Manage the item catalog.")
app.add_typer(item_app, name="item")

lending_app = typer.Typer(help="Borrow and return items.")
app.add_typer(lending_app, name="lending")

# Rich console for pretty output
console = Console()


@app.callback()
def main_callback() -> None:
    """Configure logging before any command runs."""
    setup_logging(get_config())


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def fail(exc: Exception) -> None:
    """Report an application error and exit with its status code."""
    if isinstance(exc, NotFoundError):
        code = EXIT_NOT_FOUND
    elif isinstance(exc, ConflictError):
        code = EXIT_CONFLICT
    else:
        code = EXIT_INVALID

    if isinstance(exc, ValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        print_error(f"Invalid input - {details}")
    else:
        print_error(str(exc))
    raise typer.Exit(code)


def _parse_date_option(value: Optional[str], option: str):
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError:
        print_error(f"Invalid date for {option}: {value} (expected YYYY-MM-DD)")
        raise typer.Exit(EXIT_INVALID)


def _fmt_dt(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def format_status(record) -> str:
    """Render a record's display status with color."""
    status = record.display_status
    if status == BorrowStatus.OVERDUE:
        return f"[bold red]OVERDUE ({record.days_overdue}d)[/bold red]"
    if status == BorrowStatus.BORROWED:
        return "[green]borrowed[/green]"
    return "[dim]returned[/dim]"


def format_item_table(items: list, title: str = "Items") -> Table:
    """Create a rich table for displaying items."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Asset Code", style="cyan")
    table.add_column("Name", max_width=40)
    table.add_column("Condition")
    table.add_column("Location", style="green")
    table.add_column("Qty", justify="right")
    table.add_column("Borrower", justify="right")

    for item in items:
        table.add_row(
            str(item.id),
            item.asset_code,
            item.name,
            item.condition,
            item.storage_location,
            str(item.quantity),
            str(item.current_user_id) if item.current_user_id else "[green]available[/green]",
        )

    return table


def format_record_table(records: list, title: str = "Borrow Records") -> Table:
    """Create a rich table for displaying borrow records."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Item", justify="right", style="cyan")
    table.add_column("Borrower", justify="right")
    table.add_column("Borrowed")
    table.add_column("Due")
    table.add_column("Returned")
    table.add_column("Status")
    table.add_column("Notes", max_width=30)

    for record in records:
        table.add_row(
            str(record.id),
            str(record.item_id),
            str(record.borrower_id),
            _fmt_dt(record.borrowed_date),
            _fmt_dt(record.expected_return_date),
            _fmt_dt(record.actual_return_date),
            format_status(record),
            record.notes or "",
        )

    return table


# ============================================================================
# Setup Commands
# ============================================================================


@app.command()
def init() -> None:
    """Create the database tables."""
    db = get_db()
    print_success(f"Database ready at {db.db_path}")


# ============================================================================
# User Commands
# ============================================================================


@user_app.command("add")
def user_add(
    username: str = typer.Option(..., "--username", "-u", help="Unique username"),
    email: str = typer.Option(..., "--email", "-e", help="Unique email address"),
    full_name: str = typer.Option(..., "--full-name", "-n", help="Display name"),
    role: UserRole = typer.Option(UserRole.USER, "--role", "-r", help="Account role"),
) -> None:
    """Register a user who may borrow items."""
    from .accounts import AccountManager, UserCreate

    manager = AccountManager(get_db())
    try:
        user = manager.create_user(
            UserCreate(username=username, email=email, full_name=full_name, role=role)
        )
    except (ValidationError, InventoryError) as e:
        fail(e)

    print_success(f"Added user {user.username} (id {user.id})")


@user_app.command("list")
def user_list() -> None:
    """List all users."""
    from .accounts import AccountManager

    users = AccountManager(get_db()).list_users()
    if not users:
        print_info("No users found")
        return

    table = Table(title="Users", show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Username", style="cyan")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Role")
    for user in users:
        table.add_row(str(user.id), user.username, user.full_name, user.email, user.role)
    console.print(table)


# ============================================================================
# Item Commands
# ============================================================================


@item_app.command("add")
def item_add(
    name: str = typer.Option(..., "--name", "-n", help="Item name"),
    asset_code: str = typer.Option(..., "--code", "-c", help="Unique asset code"),
    location: str = typer.Option(..., "--location", "-l", help="Storage location"),
    condition: ItemCondition = typer.Option(ItemCondition.GOOD, "--condition", help="Condition"),
    quantity: int = typer.Option(1, "--quantity", "-q", help="Units in stock"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Description"),
    purchased: Optional[str] = typer.Option(None, "--purchased", help="Purchase date (YYYY-MM-DD)"),
) -> None:
    """Add an item to the catalog."""
    from .catalog import CatalogManager, ItemCreate

    purchase_date = _parse_date_option(purchased, "--purchased")
    manager = CatalogManager(get_db())
    try:
        item = manager.create_item(
            ItemCreate(
                name=name,
                asset_code=asset_code,
                storage_location=location,
                condition=condition,
                quantity=quantity,
                description=description,
                purchase_date=purchase_date,
            )
        )
    except (ValidationError, InventoryError) as e:
        fail(e)

    print_success(f"Added item {item.asset_code} (id {item.id})")


@item_app.command("list")
def item_list(
    available: bool = typer.Option(False, "--available", "-a", help="Only items not on loan"),
) -> None:
    """List items in the catalog."""
    from .catalog import CatalogManager, ItemSearch

    items = CatalogManager(get_db()).search_items(ItemSearch(available_only=available))
    if not items:
        print_info("No items found")
        return
    console.print(format_item_table(items, "Available Items" if available else "All Items"))


@item_app.command("show")
def item_show(
    item_id: int = typer.Argument(..., help="Item ID"),
    as_json: bool = typer.Option(False, "--json", help="Print the item as JSON"),
) -> None:
    """Show an item and its borrowing history."""
    from .catalog import CatalogManager, ItemResponse
    from .lending import LendingManager

    db = get_db()
    item = CatalogManager(db).get_item(item_id)
    if not item:
        fail(NotFoundError("item", item_id))

    if as_json:
        typer.echo(json.dumps(ItemResponse.model_validate(item).model_dump(mode="json"), indent=2))
        return

    borrower = db.get_user(item.current_user_id) if item.current_user_id else None
    lines = [
        f"[bold]{item.name}[/bold] ({item.asset_code})",
        f"Condition: {item.condition}",
        f"Location: {item.storage_location}",
        f"Quantity: {item.quantity}",
    ]
    if item.description:
        lines.append(f"Description: {item.description}")
    if item.purchase_date:
        lines.append(f"Purchased: {item.purchase_date.date().isoformat()}")
    lines.append(
        f"Borrowed by: {borrower.username} (id {borrower.id})" if borrower else "[green]Available[/green]"
    )
    console.print(Panel("\n".join(lines), title=f"Item {item.id}"))

    records = LendingManager(db).list_history(item_id)
    if records:
        console.print(format_record_table(records, "History"))


@item_app.command("search")
def item_search(
    query: Optional[str] = typer.Argument(None, help="Text to match in name or asset code"),
    condition: Optional[ItemCondition] = typer.Option(None, "--condition", help="Condition"),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="Storage location"),
    available: bool = typer.Option(False, "--available", "-a", help="Only items not on loan"),
) -> None:
    """Search the catalog."""
    from .catalog import CatalogManager, ItemSearch

    filters = ItemSearch(
        query=query,
        condition=condition,
        storage_location=location,
        available_only=available,
    )
    items = CatalogManager(get_db()).search_items(filters)
    if not items:
        print_info("No matching items")
        return
    console.print(format_item_table(items, f"Search Results ({len(items)})"))


@item_app.command("update")
def item_update(
    item_id: int = typer.Argument(..., help="Item ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New name"),
    asset_code: Optional[str] = typer.Option(None, "--code", "-c", help="New asset code"),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="New storage location"),
    condition: Optional[ItemCondition] = typer.Option(None, "--condition", help="New condition"),
    quantity: Optional[int] = typer.Option(None, "--quantity", "-q", help="New quantity"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="New description"),
) -> None:
    """Update an item's catalog fields."""
    from .catalog import CatalogManager, ItemUpdate

    changes = {
        "name": name,
        "asset_code": asset_code,
        "storage_location": location,
        "condition": condition,
        "quantity": quantity,
        "description": description,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        print_warning("Nothing to update")
        raise typer.Exit(EXIT_INVALID)

    try:
        item = CatalogManager(get_db()).update_item(item_id, ItemUpdate(**changes))
    except (ValidationError, InventoryError) as e:
        fail(e)

    if item is None:
        fail(NotFoundError("item", item_id))
    print_success(f"Updated item {item.asset_code}")


@item_app.command("delete")
def item_delete(
    item_id: int = typer.Argument(..., help="Item ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete an item that has never been borrowed."""
    from .catalog import CatalogManager

    if not yes and not typer.confirm(f"Delete item {item_id}?", default=False):
        print_info("Cancelled.")
        raise typer.Exit(0)

    try:
        deleted = CatalogManager(get_db()).delete_item(item_id)
    except InventoryError as e:
        fail(e)

    if not deleted:
        fail(NotFoundError("item", item_id))
    print_success(f"Deleted item {item_id}")


# ============================================================================
# Lending Commands
# ============================================================================


@lending_app.command("borrow")
def lending_borrow(
    item_id: int = typer.Argument(..., help="Item ID to borrow"),
    user_id: int = typer.Argument(..., help="Borrowing user ID"),
    due: str = typer.Option(..., "--due", "-d", help="Expected return date (YYYY-MM-DD)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Notes"),
) -> None:
    """Lend an available item to a user."""
    from .lending import BorrowCreate, LendingManager

    due_date = _parse_date_option(due, "--due")
    manager = LendingManager(get_db())
    try:
        record = manager.borrow(
            BorrowCreate(
                item_id=item_id,
                borrower_id=user_id,
                expected_return_date=due_date,
                notes=notes,
            )
        )
    except (ValidationError, InventoryError) as e:
        fail(e)

    print_success(f"Item {record.item_id} borrowed by user {record.borrower_id} (record {record.id})")
    print_info(f"Due: {record.expected_return_date.date().isoformat()}")


@lending_app.command("return")
def lending_return(
    record_id: int = typer.Argument(..., help="Borrow record ID"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Replace the record's notes"),
    clear_notes: bool = typer.Option(False, "--clear-notes", help="Remove the record's notes"),
) -> None:
    """Return a borrowed item."""
    from .lending import LendingManager, ReturnRequest

    if notes is not None and clear_notes:
        print_error("--notes and --clear-notes cannot be combined")
        raise typer.Exit(EXIT_INVALID)

    request = {"borrowing_id": record_id}
    if notes is not None:
        request["notes"] = notes
    elif clear_notes:
        request["notes"] = None

    manager = LendingManager(get_db())
    try:
        record = manager.return_item(ReturnRequest(**request))
    except (ValidationError, InventoryError) as e:
        fail(e)

    print_success(f"Item {record.item_id} returned (record {record.id})")
    if record.expected_return_date < record.actual_return_date:
        print_warning("Returned after the expected return date")


@lending_app.command("overdue")
def lending_overdue() -> None:
    """Show overdue items."""
    from .lending import LendingManager

    report = LendingManager(get_db()).get_overdue_report()

    if not report.records:
        print_success("No overdue items!")
        return

    console.print(Panel(
        f"[bold red]Overdue: {report.total_overdue}[/bold red]\n"
        f"Oldest: {report.oldest_overdue_days} days overdue",
        style="red",
    ))

    table = Table(show_header=True, header_style="bold red")
    table.add_column("Record", justify="right", style="dim")
    table.add_column("Item", style="cyan")
    table.add_column("Asset Code")
    table.add_column("Borrower")
    table.add_column("Due Date")
    table.add_column("Days Overdue", justify="right")

    for summary in report.records:
        table.add_row(
            str(summary.id),
            summary.item_name,
            summary.asset_code,
            summary.borrower_username,
            summary.expected_return_date.date().isoformat(),
            f"[bold red]{summary.days_overdue}[/bold red]",
        )

    console.print(table)


@lending_app.command("history")
def lending_history(
    item_id: Optional[int] = typer.Option(None, "--item", "-i", help="Only this item"),
    as_json: bool = typer.Option(False, "--json", help="Print records as JSON"),
) -> None:
    """Show borrowing history, newest first."""
    from .lending import BorrowRecordResponse, LendingManager

    records = LendingManager(get_db()).list_history(item_id)

    if as_json:
        payload = [
            BorrowRecordResponse.model_validate(r).model_dump(mode="json") for r in records
        ]
        typer.echo(json.dumps(payload, indent=2))
        return

    if not records:
        print_info("No borrowing history")
        return
    title = f"History for item {item_id}" if item_id is not None else "Borrowing History"
    console.print(format_record_table(records, title))


@lending_app.command("due-soon")
def lending_due_soon(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Days to look ahead"),
) -> None:
    """Show items due back soon."""
    from .lending import LendingManager

    records = LendingManager(get_db()).list_due_soon(days)
    if not records:
        print_info("Nothing due soon")
        return
    console.print(format_record_table(records, "Due Soon"))


@lending_app.command("stats")
def lending_stats() -> None:
    """Show lending statistics."""
    from .lending import LendingManager

    stats = LendingManager(get_db()).get_stats()

    table = Table(title="Lending Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Items", str(stats.total_items))
    table.add_row("Items on loan", str(stats.items_on_loan))
    table.add_row("Items available", str(stats.items_available))
    table.add_row("Borrow records", str(stats.total_records))
    table.add_row("Active", str(stats.active))
    table.add_row("Returned", str(stats.returned))
    table.add_row("Overdue", f"[red]{stats.overdue}[/red]" if stats.overdue else "0")
    console.print(table)


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"labstock version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
