"""Satellite survey command line.

Usage::

    python -m satsurvey serve
    python -m satsurvey list [--search TEXT] [--filter sat-leo]
    python -m satsurvey import satellites.csv
    python -m satsurvey export [-o PATH]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from satsurvey.config import SurveyConfig
from satsurvey.facade import SurveyFacade
from satsurvey.view import FILTERS


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m satsurvey",
        description="Satellite sensor survey",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        default=None,
        help="JSON config file (default: SURVEY_* environment variables)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP server")

    list_cmd = sub.add_parser("list", help="Print satellites")
    list_cmd.add_argument("--search", default="")
    list_cmd.add_argument("--filter", default="all", choices=FILTERS)

    import_cmd = sub.add_parser("import", help="Import satellites from CSV")
    import_cmd.add_argument("file", type=Path)

    export_cmd = sub.add_parser("export", help="Export satellites to CSV")
    export_cmd.add_argument("-o", "--output", type=Path, default=None)
    return parser


async def _run(args: argparse.Namespace, config: SurveyConfig) -> int:
    facade = SurveyFacade.from_config(config)
    try:
        loaded = await facade.start()
        if not loaded.success:
            print(loaded.message, file=sys.stderr)
            return 1

        if args.command == "list":
            facade.set_search(args.search)
            snapshot = facade.set_filter(args.filter)
            for record in snapshot.satellites:
                print(f"{record.id:>6}  {record.norad_id:>7}  {record.status:<12} {record.title}")
            stats = snapshot.statistics
            print(f"{snapshot.count} shown · {stats.total} total · {stats.operational} operational")
            return 0

        if args.command == "import":
            result = await facade.import_file(args.file)
            print(result.message)
            for failure in result.failures:
                print(f"  {failure}", file=sys.stderr)
            return 0 if result.success else 1

        if args.command == "export":
            result = facade.export()
            if not result.success:
                print(result.message, file=sys.stderr)
                return 1
            target = args.output or Path(result.filename)
            target.write_text(result.content + "\n", encoding="utf-8")
            print(f"Wrote {target}")
            return 0
    finally:
        await facade.aclose()
    return 2


def main() -> None:
    args = _build_parser().parse_args()
    config = SurveyConfig.load(args.config) if args.config else SurveyConfig.from_env()
    logging.basicConfig(level=config.log_level.upper(), format="%(levelname)s: %(message)s")

    if args.command == "serve":
        from satsurvey.server import main as serve

        serve(config)
        return

    try:
        sys.exit(asyncio.run(_run(args, config)))
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(1)


if __name__ == "__main__":
    main()
