"""Seed the tag catalogue from the command line or a text file."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from ihfiction.adapters.observability import configure_runtime_logging
from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.application.tags import seed_tags

DEFAULT_DB_PATH = Path("work/local/ihfiction.db")

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create missing tags given as category:value or category:subcategory:value."
    )
    parser.add_argument("tags", nargs="*", help="Tags to seed.")
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Text file with one tag per line; blank lines and # comments are ignored.",
    )
    parser.add_argument("--db-path", type=Path, default=DEFAULT_DB_PATH)
    return parser


def _read_tag_file(path: Path) -> list[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip() and not line.lstrip().startswith("#")]


def main(argv: list[str] | None = None) -> int:
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    displays = list(parsed.tags)
    if parsed.file is not None:
        displays.extend(_read_tag_file(parsed.file))
    if not displays:
        logger.warning("tags.seed_empty db_path=%s", parsed.db_path)
        return 1
    store = SQLiteFictionStore(db_path=parsed.db_path)
    seeded = seed_tags(store, displays)
    for tag in seeded:
        print(tag)
    logger.info("tags.seed_complete requested=%s seeded=%s", len(displays), len(seeded))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
