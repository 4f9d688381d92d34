#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a demo board database for the taskboard AI backend")
    parser.add_argument("--db-path", default=None, help="defaults to $TASKBOARD_AI_DB_PATH or ./focalboard.db")
    parser.add_argument("--user-id", default="u-demo", help="user the demo cards are assigned to")
    args = parser.parse_args()

    user_id = str(args.user_id).strip()
    if not user_id:
        raise SystemExit("empty --user-id")

    # Needs the package installed (`pip install -e .`).
    from taskboard_ai_api.services.rag.demo_db import ensure_demo_board_db

    db_path = Path(args.db_path or os.getenv("TASKBOARD_AI_DB_PATH") or "./focalboard.db")
    db_path = db_path.expanduser().resolve()
    ensure_demo_board_db(str(db_path), user_id=user_id)
    print(f"ok (sqlite): {db_path} user_id={user_id}")


if __name__ == "__main__":
    main()
