"""
Google Sheets access: member roster lookups plus the message and lead logs.

The roster tab (`SHEET_TAB`) holds one member per row: A name, B phone,
C DNI (optional). Reads go through a `RosterCache` with a TTL so a burst of
messages costs one spreadsheet read.

The Sheets client is synchronous; every `.execute()` runs in the default
executor so the event loop is never blocked.
"""
import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_incrementing,
)

from . import config

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

ROSTER_RANGE = "A2:C10000"  # A: Nombre, B: Teléfono, C: DNI (opcional)

LOG_HEADER = [
    "ts",         # ISO timestamp
    "direction",  # inbound|outbound
    "phone",
    "isMember",
    "name",
    "intent",
    "tone",       # amable|formal|urgente
    "message",    # text received (inbound)
    "reply",      # text sent (outbound)
    "error",
    "extra",      # JSON (latency, message ids, ...)
]

# Append retries for 429/5xx from the Sheets API
LOG_MAX_ATTEMPTS = 3
LOG_RETRY_WAIT_SECONDS = 0.5


class SheetsNotConfigured(RuntimeError):
    """Raised when SPREADSHEET_ID is missing."""


@dataclass
class MemberRecord:
    is_member: bool
    name: Optional[str] = None
    phone: Optional[str] = None
    dni: Optional[str] = None
    error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LogResult:
    ok: bool
    error: Optional[str] = None


class RosterCache:
    """Last roster read plus the time it was fetched.

    Args:
        ttl_seconds: How long a read stays valid.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self.rows: Optional[List[List[str]]] = None
        self.fetched_at: float = 0.0

    def is_valid(self) -> bool:
        return self.rows is not None and (self._clock() - self.fetched_at) < self.ttl_seconds

    def get(self) -> Optional[List[List[str]]]:
        return self.rows if self.is_valid() else None

    def store(self, rows: List[List[str]]) -> None:
        self.rows = rows
        self.fetched_at = self._clock()

    def clear(self) -> None:
        self.rows = None
        self.fetched_at = 0.0


roster_cache = RosterCache(ttl_seconds=config.CACHE_TTL_SECONDS)

_service = None
_logs_header_checked = False


# --- Helpers ---
def only_digits(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))


def normalize_phone_ar(value: Any) -> str:
    """Reduce an Argentine phone number to its national digits.

    Accepts +54 9 2664..., 549..., 54..., 02664..., 2664... and WhatsApp ids.
    """
    d = only_digits(value)
    # Country code
    if d.startswith("54"):
        d = d[2:]
    # Mobile '9' that WhatsApp inserts after the country code
    if d.startswith("9") and len(d) >= 11:
        d = d[1:]
    return d


def match_member(rows: List[List[str]], phone: str, dni: Optional[str] = None) -> MemberRecord:
    """Find the caller in the roster rows.

    A row matches when the caller's normalized phone ends with the row's
    normalized phone (tolerates local prefixes like 0 / 15), or when `dni`
    equals the row's DNI exactly.
    """
    p = normalize_phone_ar(phone)
    wanted_dni = only_digits(dni) if dni else ""
    for row in rows:
        name = (row[0] if len(row) > 0 else "").strip()
        tel = normalize_phone_ar(row[1] if len(row) > 1 else "")
        doc = only_digits(row[2] if len(row) > 2 else "")

        if tel and p.endswith(tel):
            return MemberRecord(is_member=True, name=name, phone=tel, dni=doc)
        if wanted_dni and doc and wanted_dni == doc:
            return MemberRecord(is_member=True, name=name, phone=tel, dni=doc)
    return MemberRecord(is_member=False)


def _get_credentials():
    return service_account.Credentials.from_service_account_file(
        config.GOOGLE_SERVICE_ACCOUNT_FILE, scopes=SCOPES
    )


def get_sheets_service():
    """Build (once) the Sheets v4 service from the service account file."""
    global _service
    if _service is None:
        _service = build("sheets", "v4", credentials=_get_credentials(), cache_discovery=False)
        logger.info("[SHEETS] Google Sheets client initialized")
    return _service


async def _execute(request) -> Dict[str, Any]:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, request.execute)


def _require_spreadsheet() -> str:
    if not config.SPREADSHEET_ID:
        raise SheetsNotConfigured("SPREADSHEET_ID no configurado")
    return config.SPREADSHEET_ID


async def read_members(cache: RosterCache = None) -> List[List[str]]:
    """Roster rows, from cache when still valid."""
    cache = cache or roster_cache
    cached = cache.get()
    if cached is not None:
        return cached

    spreadsheet_id = _require_spreadsheet()
    values = get_sheets_service().spreadsheets().values()
    resp = await _execute(values.get(
        spreadsheetId=spreadsheet_id,
        range=f"{config.SHEET_TAB}!{ROSTER_RANGE}",
    ))
    rows = resp.get("values", []) or []
    cache.store(rows)
    logger.info(f"[SHEETS] Roster refreshed: {len(rows)} rows")
    return rows


# --- Public API ---
async def check_member(phone: str, dni: Optional[str] = None, cache: RosterCache = None) -> MemberRecord:
    """Look the caller up in the roster.

    Never raises: missing configuration or any Sheets failure comes back as
    `MemberRecord(is_member=False, error=True)`.
    """
    try:
        rows = await read_members(cache)
        return match_member(rows, phone, dni)
    except Exception as e:
        logger.error(f"[SHEETS] check_member error: {e}")
        return MemberRecord(is_member=False, error=True)


async def ensure_logs_header() -> None:
    """Write the header row to LOGS_TAB when A1:K1 is empty."""
    global _logs_header_checked
    if _logs_header_checked:
        return

    spreadsheet_id = _require_spreadsheet()
    values = get_sheets_service().spreadsheets().values()
    try:
        res = await _execute(values.get(
            spreadsheetId=spreadsheet_id,
            range=f"{config.LOGS_TAB}!A1:K1",
        ))
    except HttpError as e:
        logger.warning(f"[SHEETS] Could not read log header: {e}")
        res = None

    has_header = bool(res and res.get("values") and res["values"][0])
    if not has_header:
        await _execute(values.update(
            spreadsheetId=spreadsheet_id,
            range=f"{config.LOGS_TAB}!A1",
            valueInputOption="RAW",
            body={"values": [LOG_HEADER]},
        ))
        logger.info(f"[SHEETS] Wrote header row to '{config.LOGS_TAB}'")
    _logs_header_checked = True


async def _append_row(tab: str, row: List[str]) -> None:
    spreadsheet_id = _require_spreadsheet()
    values = get_sheets_service().spreadsheets().values()
    await _execute(values.append(
        spreadsheetId=spreadsheet_id,
        range=f"{tab}!A1",
        valueInputOption="USER_ENTERED",
        body={"values": [row]},
    ))


async def log_message(
    direction: str = "inbound",
    phone: str = "",
    is_member: Any = "",
    name: str = "",
    intent: str = "",
    tone: str = "",
    message: str = "",
    reply: str = "",
    error: str = "",
    extra: Optional[Dict[str, Any]] = None,
    ts: Optional[str] = None,
) -> LogResult:
    """Append one interaction row to LOGS_TAB (best-effort, never raises)."""
    row = [
        ts or datetime.now(timezone.utc).isoformat(),
        direction,
        str(phone),
        str(is_member).lower() if isinstance(is_member, bool) else str(is_member),
        str(name or ""),
        str(intent or ""),
        str(tone or ""),
        str(message or ""),
        str(reply or ""),
        str(error or ""),
        json.dumps(extra or {}, ensure_ascii=False),
    ]
    try:
        await ensure_logs_header()
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(LOG_MAX_ATTEMPTS),
            wait=wait_incrementing(start=LOG_RETRY_WAIT_SECONDS, increment=LOG_RETRY_WAIT_SECONDS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await _append_row(config.LOGS_TAB, row)
        return LogResult(ok=True)
    except Exception as e:
        logger.warning(f"[SHEETS] log_message warn: {e}")
        return LogResult(ok=False, error=str(e))


async def log_lead(name: str = "", phone: str = "", topic: str = "", note: str = "") -> LogResult:
    """Append a prospective member to LEADS_TAB (best-effort, never raises)."""
    record = [datetime.now(timezone.utc).isoformat(), name, phone, topic, note]
    try:
        await _append_row(config.LEADS_TAB, record)
        return LogResult(ok=True)
    except Exception as e:
        logger.warning(f"[SHEETS] log_lead warn: {e}")
        return LogResult(ok=False, error=str(e))
