"""Apply moderation schema migrations up to head (no downgrade).

Usage:
  python scripts/migrate_upgrade_head.py          # apply
  python scripts/migrate_upgrade_head.py --sql    # print the DDL instead

DATABASE_URL comes from the environment or `.env` / `backend/.env`.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config


ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from moderation.core.db import DATABASE_URL_ENV  # noqa: E402
from moderation.core.env import load_env_if_present  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--sql", action="store_true", help="Emit SQL (offline mode) without touching the database.")
    args = ap.parse_args()

    load_env_if_present()
    url = os.environ.get(DATABASE_URL_ENV)
    if not url:
        print(f"Missing {DATABASE_URL_ENV} (set env var or create .env).")
        return 2

    cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)

    command.upgrade(cfg, "head", sql=args.sql)
    if not args.sql:
        print("PASS: moderation schema at head.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
