"""Per-phone profile kept between conversations (last known name, membership, tone)."""
import sqlite3
from contextlib import contextmanager
from typing import Optional

from . import config

PROFILE_FIELDS = ("name", "is_member", "last_tone", "last_message")


@contextmanager
def get_conn():
    conn = sqlite3.connect(config.PROFILE_DB_PATH)
    try:
        yield conn
    finally:
        conn.close()


def init_db():
    """Creates the profiles table if needed."""
    with get_conn() as conn:
        conn.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            phone TEXT PRIMARY KEY,
            name TEXT,
            is_member BOOLEAN DEFAULT 0 NOT NULL,
            last_tone TEXT,
            last_message TEXT,
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
        """)
        conn.commit()


def get_profile(phone: str) -> Optional[dict]:
    """Retrieves the stored profile for a phone, or None."""
    with get_conn() as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute("SELECT * FROM profiles WHERE phone = ?", (phone,))
        row = cur.fetchone()
        if not row:
            return None
        profile = dict(row)
        profile["is_member"] = bool(profile["is_member"])
        return profile


def update_profile(phone: str, **fields) -> dict:
    """Merges `fields` into the phone's profile using an UPSERT.

    Unknown keys are ignored; `created_at` is preserved on updates.
    """
    values = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
    if "is_member" in values:
        values["is_member"] = 1 if values["is_member"] else 0

    columns = ["phone", *values.keys()]
    placeholders = ", ".join("?" for _ in columns)
    updates = "".join(f"{col} = excluded.{col}, " for col in values)
    with get_conn() as conn:
        conn.execute(f"""
            INSERT INTO profiles ({", ".join(columns)}, created_at, updated_at)
            VALUES ({placeholders}, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
            ON CONFLICT(phone) DO UPDATE SET
                {updates}updated_at = excluded.updated_at;
        """, (phone, *values.values()))
        conn.commit()
    return get_profile(phone)
