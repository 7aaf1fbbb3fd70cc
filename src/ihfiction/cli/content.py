"""Remove content bodies that were marked for deletion and are no longer referenced."""

from __future__ import annotations

import argparse
from pathlib import Path

from ihfiction.adapters.observability import configure_runtime_logging
from ihfiction.adapters.sqlite_fiction_store import SQLiteFictionStore
from ihfiction.adapters.work_body_store_factory import create_work_body_store
from ihfiction.application.content import ContentReaper

DEFAULT_DB_PATH = Path("work/local/ihfiction.db")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reap pending-delete content bodies.")
    parser.add_argument("--db-path", type=Path, default=DEFAULT_DB_PATH)
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    store = SQLiteFictionStore(db_path=parsed.db_path)
    reaper = ContentReaper(store, create_work_body_store(db_path=parsed.db_path))
    removed = reaper.reap()
    print(f"removed={removed}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
