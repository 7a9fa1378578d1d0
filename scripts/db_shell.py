"""
Run ad-hoc SQL against the marketplace database (DATABASE_URL required).

Usage:
  python scripts/db_shell.py                                   # row counts per table
  python scripts/db_shell.py "SELECT * FROM jobs LIMIT 5"      # run a custom query

`?` placeholders work the same as in core/db.
"""
from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.db.base import get_conn  # noqa: E402
from core.db.schema import ALL_TABLES  # noqa: E402

load_dotenv(override=True)


def table_counts(cur) -> None:
    for table in ALL_TABLES:
        cur.execute(f"SELECT COUNT(*) AS n FROM {table}")
        print(f"{table:32} {cur.fetchone()['n']}")


def main() -> None:
    query = " ".join(sys.argv[1:]).strip()
    conn = get_conn()
    cur = conn.cursor()
    try:
        if not query:
            table_counts(cur)
            return
        cur.execute(query)
        if cur.description is not None:
            for row in cur.fetchall():
                print(dict(row))
        else:
            conn.commit()
            print(f"OK ({cur.rowcount} row(s) affected)")
    except Exception as exc:
        raise SystemExit(f"Error running query: {exc}") from exc
    finally:
        conn.close()


if __name__ == "__main__":
    main()
