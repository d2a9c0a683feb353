# ruff: noqa: I001
"""CLI for the ``budget_tracker`` package.

Each command loads the user's snapshot through a persistence gateway, performs
one operation on a :class:`~budget_tracker.session.BudgetSession`, and relies
on the session's autosave to write the result back. Environment variables
(``DATABASE_URL``, ``BUDGET_TRACKER_DATA_DIR``, ``BUDGET_TRACKER_USER``,
``BUDGET_TRACKER_LOG_LEVEL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs.

Command handlers (``cmd_*``) are plain functions returning a process exit
code; the Typer commands below only parse options and delegate.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .analytics import DateScope, DerivedViews, FilterSpec
from .errors import BudgetTrackerError
from .logging_setup import configure_logging, get_logger
from .models import Transaction

_logger = get_logger("budget_tracker.cli")

DEFAULT_USER = "local"


@dataclass(frozen=True, slots=True)
class CliSettings:
    user: str
    database_url: str | None = None
    data_dir: Path | None = None


# ---- Small module-level helpers used by CLI commands -------------------------


def _open_session(settings: CliSettings):
    """Load the user's session; load failures propagate instead of resetting."""

    from .persistence import resolve_gateway
    from .session import BudgetSession

    gateway = resolve_gateway(settings.database_url, data_dir=settings.data_dir)
    return BudgetSession.load(gateway, settings.user, strict=True)


def _load_session(settings: CliSettings):
    """Like :func:`_open_session`, but report a failure and return ``None``."""

    try:
        return _open_session(settings)
    except Exception as e:
        print(f"Error: failed to load data: {e}", file=sys.stderr)
        return None


def _finish(session) -> int:
    if session.save_error is not None:
        print(f"Error: failed to save data: {session.save_error}", file=sys.stderr)
        return 1
    return 0


def _fmt(amount: Decimal) -> str:
    return f"{amount:.2f}"


def _tx_line(t: Transaction) -> str:
    return f"{t.id}  {t.date}  {t.description}  {t.category}  {_fmt(t.amount)}"


def build_filter(
    *,
    categories: list[str] | None = None,
    description: str = "",
    category_search: str = "",
    year: str | None = None,
    month: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> FilterSpec:
    """Translate CLI filter options into a :class:`FilterSpec`.

    At most one date scope may be chosen; ``--start`` and ``--end`` go
    together.
    """

    if (start is None) != (end is None):
        raise ValueError("--start and --end must be given together")
    scopes: list[DateScope] = []
    if year:
        scopes.append("year")
    if month:
        scopes.append("month")
    if start is not None:
        scopes.append("range")
    if len(scopes) > 1:
        raise ValueError("choose only one of --year, --month or --start/--end")
    return FilterSpec(
        categories=frozenset(categories or ()),
        description=description,
        category_search=category_search,
        date_scope=scopes[0] if scopes else "all",
        year=year or "",
        month=month or "",
        start=start,
        end=end,
    )


def _print_views(views: DerivedViews) -> None:
    s = views.summary
    print(f"Transactions: {len(views.filtered)}")
    print(f"Total: {_fmt(s.total)}")
    print(f"Spending: {_fmt(s.spending)}")
    print(f"Income: {_fmt(s.income)}")
    if views.categories:
        print("Spending by category:")
        for row in views.categories:
            print(f"  {row.name}: {_fmt(row.value)}")
    if views.monthly:
        print("Monthly:")
        for p in views.monthly:
            print(f"  {p.label}  spending={_fmt(p.spending)}  income={_fmt(p.income)}")
    if views.savings:
        print("Savings:")
        for row in views.savings:
            print(f"  {row.name}: {_fmt(row.value)}")


# ---- Command handlers ----------------------------------------------------------


def cmd_import_csv(settings: CliSettings, csv_path: str) -> int:
    """Replace the active account's transactions with the rows of ``csv_path``."""

    from .ingest.utils import load_csv_text

    try:
        text = load_csv_text(csv_path)
    except OSError as e:
        print(f"Error: failed to read CSV: {e}", file=sys.stderr)
        return 1
    session = _load_session(settings)
    if session is None:
        return 1

    result = session.import_csv(text)
    print(
        f"Imported {len(result.transactions)} transaction(s) "
        f"({result.dropped} dropped, {result.learned} rule(s) learned)."
    )
    for d in result.diagnostics:
        print(f"Warning: {d}", file=sys.stderr)
    return _finish(session)


def cmd_export_csv(settings: CliSettings, out: str | None) -> int:
    from .ingest.export import export_filename
    from .ingest.utils import write_csv_text

    session = _load_session(settings)
    if session is None:
        return 1
    target = Path(out) if out else Path.cwd() / export_filename(date.today())
    try:
        path = write_csv_text(target, session.export_csv())
    except OSError as e:
        print(f"Error: failed to write CSV: {e}", file=sys.stderr)
        return 1
    print(f"Exported {len(session.transactions)} transaction(s) to {path}")
    return 0


def cmd_summary(settings: CliSettings, spec: FilterSpec) -> int:
    session = _load_session(settings)
    if session is None:
        return 1
    _print_views(session.views(spec))
    return 0


def cmd_list(settings: CliSettings, spec: FilterSpec) -> int:
    session = _load_session(settings)
    if session is None:
        return 1
    for t in session.views(spec).filtered:
        print(_tx_line(t))
    return 0


def cmd_categorize(settings: CliSettings, transaction_id: int) -> int:
    """Pick a category interactively and save it through the row-edit path."""

    from .term_ui import select_category

    session = _load_session(settings)
    if session is None:
        return 1
    try:
        form = session.begin_edit(transaction_id)
        known = list(session.views().category_options)
        known += [c for _p, c in session.rules.items() if c not in known]
        print(f"{form.date}  {form.description}  {_fmt(form.amount)}")
        category = select_category(sorted(known), default=form.category)
        session.update_edit(category=category)
        updated = session.save_edit()
    except BudgetTrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Categorized {updated.id} as {updated.category}")
    return _finish(session)


def cmd_edit(
    settings: CliSettings,
    transaction_id: int | None,
    fields: dict[str, str],
) -> int:
    """Edit one transaction (or add a new one when ``transaction_id`` is None)."""

    session = _load_session(settings)
    if session is None:
        return 1
    added = None
    try:
        if transaction_id is None:
            added = session.add_transaction()
        else:
            session.begin_edit(transaction_id)
        if fields:
            session.update_edit(**fields)
        updated = session.save_edit()
    except BudgetTrackerError as e:
        session.cancel_edit()
        if added is not None:
            session.delete_transaction(added.id)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(_tx_line(updated))
    return _finish(session)


def cmd_delete(settings: CliSettings, transaction_id: int) -> int:
    session = _load_session(settings)
    if session is None:
        return 1
    try:
        removed = session.delete_transaction(transaction_id)
    except BudgetTrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Deleted {removed.id}")
    return _finish(session)


def cmd_allocate(settings: CliSettings, transaction_id: int, purpose: str, amount: str) -> int:
    session = _load_session(settings)
    if session is None:
        return 1
    try:
        session.allocate(transaction_id, purpose, amount)
    except BudgetTrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    t = session.find(transaction_id)
    for i, a in enumerate(session.ledger.allocations_for(transaction_id)):
        print(f"  [{i}] {a.purpose}: {_fmt(a.amount)}")
    print(f"Unallocated: {_fmt(session.ledger.unallocated(t))}")
    return _finish(session)


def cmd_deallocate(settings: CliSettings, transaction_id: int, index: int) -> int:
    session = _load_session(settings)
    if session is None:
        return 1
    try:
        removed = session.deallocate(transaction_id, index)
    except IndexError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Removed {removed.purpose}: {_fmt(removed.amount)}")
    return _finish(session)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Track bank transactions across accounts: import CSV exports, categorize "
        "with learned rules, split savings deposits and summarize spending."
    ),
)
accounts_app = typer.Typer(no_args_is_help=True, help="Manage account partitions.")
rules_app = typer.Typer(no_args_is_help=True, help="Manage category rules.")
app.add_typer(accounts_app, name="accounts")
app.add_typer(rules_app, name="rules")


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a bank CSV export",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports a readable error instead
    readable=True,
)
ID_OPTION: OptionInfo = typer.Option(..., "--id", help="Transaction id")
CATEGORY_FILTER_OPTION: OptionInfo = typer.Option(
    "--category", help="Only these categories (repeatable)."
)
DATE_OPTION_FORMATS = ["%Y-%m-%d", "%d/%m/%Y"]


def _settings(ctx: typer.Context) -> CliSettings:
    settings = ctx.obj
    if not isinstance(settings, CliSettings):  # pragma: no cover - root callback always runs
        settings = CliSettings(user=os.getenv("BUDGET_TRACKER_USER") or DEFAULT_USER)
    return settings


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


def _filter_or_exit(**kwargs) -> FilterSpec:
    try:
        return build_filter(**kwargs)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e


def _as_date(value: datetime | None) -> date | None:
    return value.date() if value is not None else None


@app.command("import-csv")
def import_csv_cmd(ctx: typer.Context, csv_path: Annotated[Path, CSV_PATH_OPTION]) -> None:
    """Replace the active account's transactions with a CSV import."""

    _exit(cmd_import_csv(_settings(ctx), str(csv_path)))


@app.command("export-csv")
def export_csv_cmd(
    ctx: typer.Context,
    out: str | None = typer.Option(None, "--out", help="Output path (default: dated file)."),
) -> None:
    """Write the active account's transactions as CSV."""

    _exit(cmd_export_csv(_settings(ctx), out))


@app.command("summary")
def summary_cmd(
    ctx: typer.Context,
    category: Annotated[list[str] | None, CATEGORY_FILTER_OPTION] = None,
    description: str = typer.Option("", help="Description contains (case-insensitive)."),
    category_search: str = typer.Option("", help="Category name contains (case-insensitive)."),
    year: str | None = typer.Option(None, help="Only this year, e.g. 2024."),
    month: str | None = typer.Option(None, help="Only this month, YYYY-MM."),
    start: datetime | None = typer.Option(None, formats=DATE_OPTION_FORMATS, help="Range start."),
    end: datetime | None = typer.Option(None, formats=DATE_OPTION_FORMATS, help="Range end."),
) -> None:
    """Print totals, category breakdown, monthly series and savings split."""

    spec = _filter_or_exit(
        categories=category,
        description=description,
        category_search=category_search,
        year=year,
        month=month,
        start=_as_date(start),
        end=_as_date(end),
    )
    _exit(cmd_summary(_settings(ctx), spec))


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    category: Annotated[list[str] | None, CATEGORY_FILTER_OPTION] = None,
    description: str = typer.Option("", help="Description contains (case-insensitive)."),
    category_search: str = typer.Option("", help="Category name contains (case-insensitive)."),
    year: str | None = typer.Option(None, help="Only this year, e.g. 2024."),
    month: str | None = typer.Option(None, help="Only this month, YYYY-MM."),
    start: datetime | None = typer.Option(None, formats=DATE_OPTION_FORMATS, help="Range start."),
    end: datetime | None = typer.Option(None, formats=DATE_OPTION_FORMATS, help="Range end."),
) -> None:
    """Print the filtered transactions (id, date, description, category, amount)."""

    spec = _filter_or_exit(
        categories=category,
        description=description,
        category_search=category_search,
        year=year,
        month=month,
        start=_as_date(start),
        end=_as_date(end),
    )
    _exit(cmd_list(_settings(ctx), spec))


@app.command("categorize")
def categorize_cmd(ctx: typer.Context, transaction_id: Annotated[int, ID_OPTION]) -> None:
    """Choose a category for one transaction; a matching rule is learned."""

    _exit(cmd_categorize(_settings(ctx), transaction_id))


def _edit_fields(**values: str | None) -> dict[str, str]:
    return {k: v for k, v in values.items() if v is not None}


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    date_: str | None = typer.Option(None, "--date", help="DD/MM/YYYY (default: today)."),
    description: str | None = typer.Option(None, help="Description."),
    category: str | None = typer.Option(None, help="Category."),
    amount: str | None = typer.Option(None, help="Signed amount, negative for spending."),
) -> None:
    """Add a transaction to the active account."""

    fields = _edit_fields(date=date_, description=description, category=category, amount=amount)
    _exit(cmd_edit(_settings(ctx), None, fields))


@app.command("edit")
def edit_cmd(
    ctx: typer.Context,
    transaction_id: Annotated[int, ID_OPTION],
    date_: str | None = typer.Option(None, "--date", help="DD/MM/YYYY."),
    description: str | None = typer.Option(None, help="Description."),
    category: str | None = typer.Option(None, help="Category."),
    amount: str | None = typer.Option(None, help="Signed amount."),
) -> None:
    """Change fields of one transaction."""

    fields = _edit_fields(date=date_, description=description, category=category, amount=amount)
    _exit(cmd_edit(_settings(ctx), transaction_id, fields))


@app.command("delete")
def delete_cmd(ctx: typer.Context, transaction_id: Annotated[int, ID_OPTION]) -> None:
    """Delete one transaction."""

    _exit(cmd_delete(_settings(ctx), transaction_id))


@app.command("allocate")
def allocate_cmd(
    ctx: typer.Context,
    transaction_id: Annotated[int, ID_OPTION],
    purpose: str = typer.Option(..., help="What the money is set aside for."),
    amount: str = typer.Option(..., help="Positive amount."),
) -> None:
    """Earmark part of a savings deposit for a purpose."""

    _exit(cmd_allocate(_settings(ctx), transaction_id, purpose, amount))


@app.command("deallocate")
def deallocate_cmd(
    ctx: typer.Context,
    transaction_id: Annotated[int, ID_OPTION],
    index: int = typer.Option(..., help="Position shown by `allocate`."),
) -> None:
    """Remove one allocation from a savings deposit."""

    _exit(cmd_deallocate(_settings(ctx), transaction_id, index))


# ---- accounts ------------------------------------------------------------------


def _account_op(ctx: typer.Context, op) -> None:
    session = _load_session(_settings(ctx))
    if session is None:
        raise typer.Exit(1)
    try:
        op(session)
    except BudgetTrackerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise typer.Exit(1) from e
    _exit(_finish(session))


@accounts_app.command("list")
def accounts_list_cmd(ctx: typer.Context) -> None:
    """List accounts; the active one is marked with ``*``."""

    def op(session) -> None:
        for acc in session.accounts:
            marker = "*" if acc.id == session.active_account_id else " "
            print(f"{marker} {acc.id}  {acc.name}")

    _account_op(ctx, op)


@accounts_app.command("add")
def accounts_add_cmd(ctx: typer.Context, name: str) -> None:
    """Create an account and make it active."""

    def op(session) -> None:
        account = session.add_account(name)
        if account is None:
            print("Error: account name cannot be empty", file=sys.stderr)
            raise typer.Exit(1)
        print(f"Added {account.id} ({account.name}); now active")

    _account_op(ctx, op)


@accounts_app.command("switch")
def accounts_switch_cmd(ctx: typer.Context, account_id: str) -> None:
    """Make another account active."""

    def op(session) -> None:
        session.switch_account(account_id)
        print(f"Active account: {session.state.active_account.name}")

    _account_op(ctx, op)


@accounts_app.command("rename")
def accounts_rename_cmd(ctx: typer.Context, account_id: str, name: str) -> None:
    """Change an account's display name."""

    def op(session) -> None:
        if not session.rename_account(account_id, name):
            print("Error: account name cannot be empty", file=sys.stderr)
            raise typer.Exit(1)
        print(f"Renamed {account_id} to {name.strip()}")

    _account_op(ctx, op)


@accounts_app.command("delete")
def accounts_delete_cmd(
    ctx: typer.Context,
    account_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete an account and all of its data."""

    from .term_ui import confirm_account_deletion

    def op(session) -> None:
        confirm = None if yes else confirm_account_deletion
        if session.delete_account(account_id, confirm):
            print(f"Deleted {account_id}")
        else:
            print("Cancelled")

    _account_op(ctx, op)


# ---- rules ---------------------------------------------------------------------


@rules_app.command("list")
def rules_list_cmd(ctx: typer.Context) -> None:
    """List rules in matching order (first match wins)."""

    def op(session) -> None:
        for pattern, category in session.rules.items():
            print(f"{pattern} -> {category}")

    _account_op(ctx, op)


@rules_app.command("add")
def rules_add_cmd(ctx: typer.Context, pattern: str, category: str) -> None:
    """Add or overwrite a rule."""

    def op(session) -> None:
        key = session.add_rule(pattern, category)
        print(f"{key} -> {session.rules.get(key)}")

    _account_op(ctx, op)


@rules_app.command("delete")
def rules_delete_cmd(ctx: typer.Context, pattern: str) -> None:
    """Delete a rule by pattern."""

    def op(session) -> None:
        if session.delete_rule(pattern):
            print(f"Deleted rule {pattern!r}")
        else:
            print(f"No rule {pattern!r}")

    _account_op(ctx, op)


@rules_app.command("reapply")
def rules_reapply_cmd(ctx: typer.Context) -> None:
    """Categorize every ``Uncategorized`` transaction with the current rules."""

    def op(session) -> None:
        print(f"Recategorized {session.reapply_rules()} transaction(s)")

    _account_op(ctx, op)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    user: str | None = typer.Option(
        None, help="User id for stored data (falls back to BUDGET_TRACKER_USER, then 'local')."
    ),
    database_url: str | None = typer.Option(
        None, help="Store data in this database (falls back to DATABASE_URL)."
    ),
    data_dir: Path | None = typer.Option(
        None,
        help="Directory for JSON data files (falls back to BUDGET_TRACKER_DATA_DIR).",
        file_okay=False,
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging before any
    subcommand runs.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    ctx.obj = CliSettings(
        user=user or os.getenv("BUDGET_TRACKER_USER") or DEFAULT_USER,
        database_url=database_url,
        data_dir=data_dir,
    )
    _logger.debug("cli user=%s", ctx.obj.user)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m budget_tracker.cli`
    app()
