"""Seed the diary table with sample entries.

Writes a few hand-written entries plus optional filler rows so the
listing view has enough data to page through (the default page holds
10 entries) without typing anything in.
"""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy import MetaData, Table, create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert

from backend.app.config import load_settings
from backend.app.domain.diary.gateway import DIARY_TABLE_NAME

SEED_ENTRIES = [
    ("Moved into the new flat", "Boxes everywhere. Found the kettle first, priorities intact."),
    ("Long walk by the river", "Cold but bright. " * 12),
    ("Reading list", "Finished the second book this month; started on the essays."),
]


def build_seed_entries(now: datetime, filler: int = 0) -> List[dict[str, object]]:
    """Return seed rows, newest first, one minute apart."""

    texts = list(SEED_ENTRIES)
    texts.extend(
        (f"Filler entry {index + 1}", f"Generated paragraph number {index + 1}. " * 5)
        for index in range(filler)
    )
    rows = []
    for position, (title, body) in enumerate(texts):
        rows.append(
            {
                "uuid": f"00000000-0000-0000-0000-{position + 1:012d}",
                "name": title,
                "content": body.strip(),
                "created_at": now - timedelta(minutes=position),
            }
        )
    return rows


def seed_entries(filler: int = 0) -> int:
    settings = load_settings()
    engine = create_engine(settings.database_url, future=True)
    diary_table = Table(DIARY_TABLE_NAME, MetaData(), autoload_with=engine)

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    records = build_seed_entries(now, filler)
    stmt = pg_insert(diary_table).values(records)
    update_cols = {col: stmt.excluded[col] for col in ("name", "content", "created_at")}

    with engine.begin() as conn:
        conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[diary_table.c.uuid], set_=update_cols
            )
        )

    return len(records)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--filler",
        type=int,
        default=0,
        help="Number of generated entries to add after the sample ones.",
    )
    args = parser.parse_args()
    inserted = seed_entries(args.filler)
    print(f"Seeded {inserted} diary entries.")


if __name__ == "__main__":
    main()
