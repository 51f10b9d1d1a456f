"""CLI entry point for SheetBooks.

Commands:
    sheetbooks companies list                      List companies
    sheetbooks companies add NAME [--prefix P]     Add a company and its invoice counter
    sheetbooks companies edit ID [--name N]        Rename / re-prefix a company
    sheetbooks companies delete ID                 Delete a company and its counter
    sheetbooks categories list                     List categories
    sheetbooks categories add NAME [--type T]      Add a category
    sheetbooks transactions list                   Most recent transactions
    sheetbooks transactions add ...                Record income or an expense
    sheetbooks transactions edit ROW ...           Rewrite a transaction row
    sheetbooks transactions delete ROW             Delete a transaction row
    sheetbooks bills list|add|pay|delete           Manage bills
    sheetbooks invoices list|create|status         Manage invoices
    sheetbooks report [--company C] [--start D]    Income/expense summary
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on SHEETBOOKS_LOG_LEVEL env var."""
    level = os.environ.get("SHEETBOOKS_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load application config from config directory."""
    from sheetbooks.config import Config

    config_dir = os.environ.get("SHEETBOOKS_CONFIG_DIR", "config")
    return Config(config_dir=config_dir)


def _get_token_provider(config, notifier):
    """A fixed token from SHEETBOOKS_ACCESS_TOKEN, else interactive OAuth."""
    from sheetbooks.auth.token_provider import AccessTokenProvider, StaticTokenProvider

    token = os.environ.get("SHEETBOOKS_ACCESS_TOKEN")
    if token:
        return StaticTokenProvider(token)
    if config is None or config.client_secrets_path is None:
        notifier.error("No Google client secrets configured (google.client_secrets).")
        return None
    return AccessTokenProvider(
        config.client_secrets_path, config.token_path, notifier=notifier,
    )


def _get_repo(config, notifier):
    """Create a SheetRepository for the configured spreadsheet, or None."""
    from sheetbooks.database.repository import SheetRepository

    spreadsheet_id = os.environ.get("SHEETBOOKS_SPREADSHEET_ID") or (
        config.spreadsheet_id if config is not None else ""
    )
    if not spreadsheet_id:
        notifier.error("No spreadsheet configured. Set spreadsheet_id in settings.yaml.")
        return None
    return SheetRepository(spreadsheet_id, notifier=notifier)


def _get_uploader(config, notifier):
    from sheetbooks.drive.uploader import DriveUploader

    folder_id = config.upload_folder_id if config is not None else None
    return DriveUploader(folder_id=folder_id, notifier=notifier)


@dataclass
class Session:
    """Everything a command needs: accessors, workflows and a token."""
    notifier: object
    repo: object
    books: object
    token: str


def _open_session() -> Session | None:
    """Load config, build accessors and obtain an access token.

    Prints the reason and returns None if any piece is missing.
    """
    from sheetbooks.bookkeeper import Bookkeeper
    from sheetbooks.notices import Notifier

    notifier = Notifier()
    try:
        config = _get_config()
    except FileNotFoundError:
        if not (os.environ.get("SHEETBOOKS_SPREADSHEET_ID")
                and os.environ.get("SHEETBOOKS_ACCESS_TOKEN")):
            raise
        config = None

    repo = _get_repo(config, notifier)
    provider = _get_token_provider(config, notifier)
    token = provider.get_access_token() if provider is not None else None
    if repo is None or not token:
        _print_notices(notifier)
        return None

    books = Bookkeeper(repo, uploader=_get_uploader(config, notifier))
    return Session(notifier=notifier, repo=repo, books=books, token=token)


def _print_notices(notifier) -> None:
    for notice in notifier.drain():
        print(f"[{notice.level}] {notice.message}")


def _finish(session: Session, result) -> int:
    _print_notices(session.notifier)
    return 0 if result.ok else 1


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}")


def _find(records: list, attr: str, value):
    for record in records:
        if getattr(record, attr) == value:
            return record
    return None


def _kind(name: str):
    from sheetbooks.sheets.codec import TableKind

    return TableKind[name]


# ── Command handlers ─────────────────────────────────────


def _run(args: argparse.Namespace, group: str, handlers: dict) -> int:
    """Open a session and dispatch a ``<group> <sub>`` command."""
    sub = getattr(args, f"{group}_command", None)
    if sub is None:
        print(f"Usage: sheetbooks {group} {{{','.join(handlers)}}}")
        return 1
    try:
        session = _open_session()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    if session is None:
        return 1
    return handlers[sub](session, args)


def cmd_companies(args: argparse.Namespace) -> int:
    """Company management commands."""
    return _run(args, "companies", {
        "list": _cmd_companies_list,
        "add": _cmd_companies_add,
        "edit": _cmd_companies_edit,
        "delete": _cmd_companies_delete,
    })


def _cmd_companies_list(session: Session, args: argparse.Namespace) -> int:
    companies = session.repo.fetch(_kind("COMPANY"), session.token)
    _print_notices(session.notifier)
    if companies is None:
        return 1
    if not companies:
        print("No companies found.")
        return 0
    print(f"{'Row':>4}  {'ID':<32} {'Name':<28} Prefix")
    print("-" * 75)
    for c in companies:
        print(f"{c.row_index:>4}  {c.id:<32} {c.name:<28} {c.invoice_prefix}")
    return 0


def _cmd_companies_add(session: Session, args: argparse.Namespace) -> int:
    result = session.books.create_company(
        session.token, args.name, invoice_prefix=args.prefix, logo_path=args.logo,
    )
    return _finish(session, result)


def _lookup_company(session: Session, company_id: str):
    companies = session.repo.fetch(_kind("COMPANY"), session.token)
    if companies is None:
        _print_notices(session.notifier)
        return None
    company = _find(companies, "id", company_id)
    if company is None:
        print(f"Error: Company '{company_id}' not found.")
    return company


def _cmd_companies_edit(session: Session, args: argparse.Namespace) -> int:
    company = _lookup_company(session, args.id)
    if company is None:
        return 1
    result = session.books.update_company(
        session.token, company,
        name=args.name or company.name,
        invoice_prefix=args.prefix or company.invoice_prefix,
        logo_path=args.logo,
    )
    return _finish(session, result)


def _cmd_companies_delete(session: Session, args: argparse.Namespace) -> int:
    company = _lookup_company(session, args.id)
    if company is None:
        return 1
    return _finish(session, session.books.delete_company(session.token, company))


def cmd_categories(args: argparse.Namespace) -> int:
    """Category management commands."""
    return _run(args, "categories", {
        "list": _cmd_categories_list,
        "add": _cmd_categories_add,
    })


def _cmd_categories_list(session: Session, args: argparse.Namespace) -> int:
    categories = session.repo.fetch(_kind("CATEGORY"), session.token)
    _print_notices(session.notifier)
    if categories is None:
        return 1
    if not categories:
        print("No categories found.")
        return 0
    for c in categories:
        print(f"  {c.name:<30} {c.type:<8} [{c.id}]")
    return 0


def _cmd_categories_add(session: Session, args: argparse.Namespace) -> int:
    result = session.books.add_category(session.token, args.name, args.type)
    return _finish(session, result)


def cmd_transactions(args: argparse.Namespace) -> int:
    """Transaction commands."""
    return _run(args, "transactions", {
        "list": _cmd_transactions_list,
        "add": _cmd_transactions_add,
        "edit": _cmd_transactions_edit,
        "delete": _cmd_transactions_delete,
    })


def _cmd_transactions_list(session: Session, args: argparse.Namespace) -> int:
    txns = session.repo.list_transactions(session.token)
    failed = bool(session.notifier.messages("error"))
    _print_notices(session.notifier)
    if failed:
        return 1
    if not txns:
        print("No transactions found.")
        return 0
    shown = txns[:args.limit] if args.limit else txns
    print(f"{'Row':>5}  {'Date':<10}  {'Company':<20} {'Category':<18} {'Amount':>12}  Description")
    print("-" * 95)
    for t in shown:
        sign = "+" if t.type == "Income" else "-"
        print(
            f"{t.row_index:>5}  {t.date:<10}  {t.company[:20]:<20} {t.category[:18]:<18}"
            f" {sign}{t.amount:>11,.2f}  {t.description}"
        )
    return 0


def _cmd_transactions_add(session: Session, args: argparse.Namespace) -> int:
    from sheetbooks.bookkeeper import TransactionEntry

    entry = TransactionEntry(
        date=args.date,
        company=args.company,
        category=args.category,
        amount=args.amount,
        type=args.type,
        description=args.description,
    )
    result = session.books.add_transaction(session.token, entry, receipt_path=args.receipt)
    return _finish(session, result)


def _cmd_transactions_edit(session: Session, args: argparse.Namespace) -> int:
    from sheetbooks.bookkeeper import TransactionEntry
    from sheetbooks.reports import parse_sheet_date

    txns = session.repo.fetch(_kind("TRANSACTION"), session.token)
    if txns is None:
        _print_notices(session.notifier)
        return 1
    current = _find(txns, "row_index", args.row)
    if current is None:
        print(f"Error: No transaction at row {args.row}.")
        return 1

    entry = TransactionEntry(
        date=args.date or parse_sheet_date(current.date),
        company=args.company or current.company,
        category=args.category or current.category,
        amount=args.amount if args.amount is not None else current.amount,
        type=args.type or current.type,
        description=args.description if args.description is not None else current.description,
    )
    result = session.books.update_transaction(
        session.token, current, entry, receipt_path=args.receipt,
    )
    return _finish(session, result)


def _cmd_transactions_delete(session: Session, args: argparse.Namespace) -> int:
    return _finish(session, session.books.delete_transaction(session.token, args.row))


def cmd_bills(args: argparse.Namespace) -> int:
    """Bill commands."""
    return _run(args, "bills", {
        "list": _cmd_bills_list,
        "add": _cmd_bills_add,
        "pay": _cmd_bills_pay,
        "delete": _cmd_bills_delete,
    })


def _cmd_bills_list(session: Session, args: argparse.Namespace) -> int:
    bills = session.repo.fetch(_kind("BILL"), session.token)
    _print_notices(session.notifier)
    if bills is None:
        return 1
    if not bills:
        print("No bills found.")
        return 0
    for b in bills:
        print(f"  {b.bill_id:<20} {b.due_date:<10}  {b.payee[:30]:<30} {b.amount:>10,.2f}  {b.status}")
    return 0


def _cmd_bills_add(session: Session, args: argparse.Namespace) -> int:
    result = session.books.add_bill(session.token, args.due, args.payee, args.amount)
    return _finish(session, result)


def _lookup_bill(session: Session, bill_id: str):
    bills = session.repo.fetch(_kind("BILL"), session.token)
    if bills is None:
        _print_notices(session.notifier)
        return None
    bill = _find(bills, "bill_id", bill_id)
    if bill is None:
        print(f"Error: Bill '{bill_id}' not found.")
    return bill


def _cmd_bills_pay(session: Session, args: argparse.Namespace) -> int:
    bill = _lookup_bill(session, args.bill_id)
    if bill is None:
        return 1
    result = session.books.pay_bill(
        session.token, bill, args.company, args.category, paid_on=args.date,
    )
    return _finish(session, result)


def _cmd_bills_delete(session: Session, args: argparse.Namespace) -> int:
    bill = _lookup_bill(session, args.bill_id)
    if bill is None:
        return 1
    return _finish(session, session.books.delete_bill(session.token, bill))


def cmd_invoices(args: argparse.Namespace) -> int:
    """Invoice commands."""
    return _run(args, "invoices", {
        "list": _cmd_invoices_list,
        "create": _cmd_invoices_create,
        "status": _cmd_invoices_status,
    })


def _cmd_invoices_list(session: Session, args: argparse.Namespace) -> int:
    invoices = session.repo.fetch(_kind("INVOICE"), session.token)
    _print_notices(session.notifier)
    if invoices is None:
        return 1
    if not invoices:
        print("No invoices found.")
        return 0
    for inv in invoices:
        print(
            f"  {inv.invoice_id:<14} {inv.issue_date:<10}  {inv.customer_name[:28]:<28}"
            f" {inv.total_amount:>10,.2f}  {inv.status}"
        )
    return 0


def _cmd_invoices_create(session: Session, args: argparse.Namespace) -> int:
    from sheetbooks.bookkeeper import InvoiceRequest

    company = _lookup_company(session, args.company)
    if company is None:
        return 1
    request = InvoiceRequest(
        customer_name=args.customer,
        amount=args.amount,
        category=args.category,
        issue_date=args.issue_date or date.today(),
        due_date=args.due_date,
        customer_address=args.address,
        description=args.description,
    )
    result = session.books.create_invoiced_transaction(session.token, company, request)
    return _finish(session, result)


def _cmd_invoices_status(session: Session, args: argparse.Namespace) -> int:
    invoices = session.repo.fetch(_kind("INVOICE"), session.token)
    if invoices is None:
        _print_notices(session.notifier)
        return 1
    invoice = _find(invoices, "invoice_id", args.invoice_id)
    if invoice is None:
        print(f"Error: Invoice '{args.invoice_id}' not found.")
        return 1
    result = session.books.set_invoice_status(session.token, invoice, args.status)
    return _finish(session, result)


def cmd_report(args: argparse.Namespace) -> int:
    """Print an income/expense summary."""
    from sheetbooks.reports import build_report

    try:
        session = _open_session()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    if session is None:
        return 1

    txns = session.repo.fetch(_kind("TRANSACTION"), session.token)
    _print_notices(session.notifier)
    if txns is None:
        return 1

    report = build_report(txns, company=args.company, start=args.start, end=args.end)
    print(f"Report: {args.company or 'all companies'}")
    print("=" * 40)
    print(f"  Transactions:   {report.transaction_count:,}")
    print(f"  Total income:   {report.total_income:>12,.2f}")
    print(f"  Total expense:  {report.total_expense:>12,.2f}")
    print(f"  Net income:     {report.net_income:>12,.2f}")
    for title, rows in (("Income", report.income_by_category),
                        ("Expense", report.expense_by_category)):
        if rows:
            print(f"\n  {title} by category:")
            for row in rows:
                print(f"    {row.name:<28} {row.value:>12,.2f}")
    return 0


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "companies": cmd_companies,
    "categories": cmd_categories,
    "transactions": cmd_transactions,
    "bills": cmd_bills,
    "invoices": cmd_invoices,
    "report": cmd_report,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="sheetbooks",
        description="SheetBooks spreadsheet finance tracker",
    )
    subparsers = parser.add_subparsers(dest="command")

    # companies
    comp_p = subparsers.add_parser("companies", help="Manage companies")
    comp_sub = comp_p.add_subparsers(dest="companies_command")
    comp_sub.add_parser("list", help="List companies")
    comp_add_p = comp_sub.add_parser("add", help="Add a company")
    comp_add_p.add_argument("name", help="Company display name")
    comp_add_p.add_argument("--prefix", default="INV-", help="Invoice number prefix")
    comp_add_p.add_argument("--logo", type=Path, help="Logo image to upload")
    comp_edit_p = comp_sub.add_parser("edit", help="Edit a company")
    comp_edit_p.add_argument("id", help="Company ID")
    comp_edit_p.add_argument("--name", help="New display name")
    comp_edit_p.add_argument("--prefix", help="New invoice prefix")
    comp_edit_p.add_argument("--logo", type=Path, help="New logo image to upload")
    comp_del_p = comp_sub.add_parser("delete", help="Delete a company and its invoice counter")
    comp_del_p.add_argument("id", help="Company ID")

    # categories
    cat_p = subparsers.add_parser("categories", help="Manage categories")
    cat_sub = cat_p.add_subparsers(dest="categories_command")
    cat_sub.add_parser("list", help="List categories")
    cat_add_p = cat_sub.add_parser("add", help="Add a category")
    cat_add_p.add_argument("name", help="Category display name")
    cat_add_p.add_argument("--type", choices=["Income", "Expense"], default="Expense")

    # transactions
    txn_p = subparsers.add_parser("transactions", help="Manage transactions")
    txn_sub = txn_p.add_subparsers(dest="transactions_command")
    txn_list_p = txn_sub.add_parser("list", help="List recent transactions")
    txn_list_p.add_argument("--limit", type=int, default=0, help="Show at most N rows")
    txn_add_p = txn_sub.add_parser("add", help="Add a transaction")
    txn_add_p.add_argument("--date", type=_parse_date, default=date.today(), help="YYYY-MM-DD")
    txn_add_p.add_argument("--company", required=True, help="Company name")
    txn_add_p.add_argument("--category", required=True, help="Category name")
    txn_add_p.add_argument("--amount", type=float, required=True)
    txn_add_p.add_argument("--type", choices=["Income", "Expense"], default="Expense")
    txn_add_p.add_argument("--description", default="")
    txn_add_p.add_argument("--receipt", type=Path, help="Receipt file to upload")
    txn_edit_p = txn_sub.add_parser("edit", help="Edit the transaction at a sheet row")
    txn_edit_p.add_argument("row", type=int, help="Sheet row number (from 'list')")
    txn_edit_p.add_argument("--date", type=_parse_date)
    txn_edit_p.add_argument("--company")
    txn_edit_p.add_argument("--category")
    txn_edit_p.add_argument("--amount", type=float)
    txn_edit_p.add_argument("--type", choices=["Income", "Expense"])
    txn_edit_p.add_argument("--description")
    txn_edit_p.add_argument("--receipt", type=Path, help="Replacement receipt file")
    txn_del_p = txn_sub.add_parser("delete", help="Delete the transaction at a sheet row")
    txn_del_p.add_argument("row", type=int, help="Sheet row number (from 'list')")

    # bills
    bill_p = subparsers.add_parser("bills", help="Manage bills")
    bill_sub = bill_p.add_subparsers(dest="bills_command")
    bill_sub.add_parser("list", help="List bills")
    bill_add_p = bill_sub.add_parser("add", help="Add a pending bill")
    bill_add_p.add_argument("--due", type=_parse_date, required=True, help="Due date YYYY-MM-DD")
    bill_add_p.add_argument("--payee", required=True)
    bill_add_p.add_argument("--amount", type=float, required=True)
    bill_pay_p = bill_sub.add_parser("pay", help="Pay a bill and record the expense")
    bill_pay_p.add_argument("bill_id", help="Bill ID")
    bill_pay_p.add_argument("--company", required=True, help="Company name for the expense")
    bill_pay_p.add_argument("--category", required=True, help="Category name for the expense")
    bill_pay_p.add_argument("--date", type=_parse_date, help="Payment date (default today)")
    bill_del_p = bill_sub.add_parser("delete", help="Delete a bill")
    bill_del_p.add_argument("bill_id", help="Bill ID")

    # invoices
    inv_p = subparsers.add_parser("invoices", help="Manage invoices")
    inv_sub = inv_p.add_subparsers(dest="invoices_command")
    inv_sub.add_parser("list", help="List invoices")
    inv_create_p = inv_sub.add_parser("create", help="Create an invoice and its income transaction")
    inv_create_p.add_argument("--company", required=True, help="Company ID")
    inv_create_p.add_argument("--customer", required=True, help="Customer name")
    inv_create_p.add_argument("--amount", type=float, required=True)
    inv_create_p.add_argument("--category", required=True, help="Income category name")
    inv_create_p.add_argument("--due-date", type=_parse_date, required=True)
    inv_create_p.add_argument("--issue-date", type=_parse_date, help="Default today")
    inv_create_p.add_argument("--address", default="", help="Customer address")
    inv_create_p.add_argument("--description", default="")
    inv_status_p = inv_sub.add_parser("status", help="Set an invoice's status")
    inv_status_p.add_argument("invoice_id")
    inv_status_p.add_argument("status", choices=["Draft", "Sent", "Paid", "Void"])

    # report
    report_p = subparsers.add_parser("report", help="Income/expense summary")
    report_p.add_argument("--company", help="Company name (default all)")
    report_p.add_argument("--start", type=_parse_date, help="First day YYYY-MM-DD")
    report_p.add_argument("--end", type=_parse_date, help="Last day YYYY-MM-DD")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
