from __future__ import annotations

import argparse
import logging
import sys

from shopledger.application.container import build_container
from shopledger.config import Settings, get_app_paths, load_settings
from shopledger.domain.errors import AppError
from shopledger.domain.money import format_currency
from shopledger.logging_config import setup_logging

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shop-ledger", description="Point-of-sale inventory and cash ledger.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="create or migrate the database")

    imp = sub.add_parser("import-articles", help="bulk import articles from a spreadsheet")
    imp.add_argument("path")

    exp = sub.add_parser("export-report", help="write an Excel report for a period")
    exp.add_argument("path")
    exp.add_argument("--start", required=True, help="YYYY-MM-DD[ HH:MM:SS]")
    exp.add_argument("--end", required=True, help="YYYY-MM-DD[ HH:MM:SS], exclusive")

    sub.add_parser("stats", help="today's dashboard figures")

    cash = sub.add_parser("cash-summary", help="entries, exits and balance for a period")
    cash.add_argument("--start")
    cash.add_argument("--end")

    arts = sub.add_parser("articles", help="list active articles")
    arts.add_argument("--page", type=int, default=1)
    arts.add_argument("--search")
    arts.add_argument("--category")
    return parser


def _run(args: argparse.Namespace, settings: Settings) -> None:
    container = build_container(settings.db_path, settings)

    if args.command == "init":
        print(f"Database ready at {settings.db_path} (schema v{container.repo.schema_version()})")
    elif args.command == "import-articles":
        created, skipped = container.excel.import_articles_excel(args.path)
        print(f"{created} articles imported, {skipped} rows skipped")
    elif args.command == "export-report":
        container.reporting.export_report_excel(args.path, args.start, args.end)
        print(f"Report written to {args.path}")
    elif args.command == "stats":
        stats = container.reporting.dashboard_stats()
        print(f"Customers: {stats.customers}")
        print(f"Articles: {stats.articles}")
        print(f"Sales today: {format_currency(stats.sales_today)}")
        print(f"Stock available: {stats.stock_total}")
    elif args.command == "cash-summary":
        summary = container.cash.summary(args.start, args.end)
        print(f"Entries: {format_currency(summary.entries)}")
        print(f"Exits: {format_currency(summary.exits)}")
        print(f"Balance: {format_currency(summary.balance)}")
    elif args.command == "articles":
        page = container.inventory.list_articles(
            page=args.page, page_size=settings.page_size, category=args.category, search=args.search
        )
        for a in page.items:
            print(f"{a.code}\t{a.name}\t{format_currency(a.sale_price)}\t{a.stock_available}/{a.stock_reserved}")
        print(f"Page {page.page} of {page.pages} ({page.total} articles)")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = load_settings(get_app_paths())
        setup_logging(settings.logs_dir, level=settings.log_level)
        _run(args, settings)
    except AppError as e:
        log.error("command_failed command=%s error=%s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
