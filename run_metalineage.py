from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

# Ensure src/ is importable when running as a script
ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from metalineage.config import load_config  # noqa: E402
from metalineage.graph.service import GraphStore  # noqa: E402
from metalineage.pathcheck.checker import LocalPathChecker  # noqa: E402
from metalineage.store.db import create_db, get_engine, get_session  # noqa: E402
from metalineage.store.repo import LineageRepository  # noqa: E402

logger = logging.getLogger("metalineage")


def main(argv: Optional[list[str]] = None) -> int:
    config = load_config()
    parser = argparse.ArgumentParser(description="Launch the Metalineage desktop app.")
    parser.add_argument(
        "--graph",
        type=Path,
        default=None,
        help="Graph JSON file to load at startup.",
    )
    parser.add_argument(
        "--log-level",
        default=config.log_level,
        help="Logging level (defaults to METALINEAGE_LOG_LEVEL or INFO).",
    )
    args, extra = parser.parse_known_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = get_engine(config.db_url)
    create_db(engine)
    session = get_session(engine)
    store = GraphStore(LineageRepository(session))

    try:
        if args.graph:
            store.import_graph(args.graph.read_text(encoding="utf-8"))
            logger.info("Loaded graph from %s", args.graph)

        from metalineage.ui.app import run_app

        return run_app(
            store,
            checker=LocalPathChecker(),
            path_check_timeout=config.path_check_timeout_s,
            argv=extra if extra else None,
        )
    finally:
        session.close()


if __name__ == "__main__":
    raise SystemExit(main())
