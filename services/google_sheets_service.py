import logging
import os
import threading
import time
from pathlib import Path

import gspread
from gspread.exceptions import APIError
from google.oauth2.service_account import Credentials

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _is_rate_limited(e: APIError) -> bool:
    code = getattr(getattr(e, "response", None), "status_code", None)
    text = str(e).lower()
    return code == 429 or "quota" in text or "rate" in text


class GoogleSheetsService:
    """
    gspread wrapper for the catalog and inventory workbooks.

    Reads use the values API and are cached for a few seconds, so a request
    that reads the catalog and one inventory tab costs two calls. Writes are
    single range updates. A write drops the cached reads of its spreadsheet,
    so the next slot scan sees the column group that was just filled.

    Safe to share between the write threads of one dispatch.
    """

    READ_TTL = 15       # seconds
    HANDLE_TTL = 60

    @staticmethod
    def _get_service_account_path():
        env = os.environ.get("GSHEETS_CREDENTIALS") or os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if env and os.path.isfile(env):
            return env

        candidates = [
            Path(__file__).resolve().parents[1] / "credentials" / "service_account.json",
            Path.cwd() / "credentials" / "service_account.json",
            Path.cwd() / "service_account.json",
        ]
        for p in candidates:
            if p.is_file():
                return str(p)

        raise FileNotFoundError(
            "service_account.json not found. Set GSHEETS_CREDENTIALS or GOOGLE_APPLICATION_CREDENTIALS.")

    @staticmethod
    def _authenticate_google_sheets(json_file: str) -> Credentials:
        """
        Load service account credentials scoped to read and write spreadsheets.

        :param json_file: Path to the service account JSON key.
        :rtype: google.oauth2.service_account.Credentials
        """
        return Credentials.from_service_account_file(json_file, scopes=SCOPES)

    def __init__(self, json_file: str = None):
        if json_file is None:
            json_file = self._get_service_account_path()
        self._client = gspread.authorize(self._authenticate_google_sheets(json_file))

        self._lock = threading.Lock()
        self._values: dict[tuple[str, str], tuple[float, list[list[str]]]] = {}
        self._spreadsheets: dict[str, tuple[float, gspread.Spreadsheet]] = {}

    def _open(self, spreadsheet_id: str) -> gspread.Spreadsheet:
        now = time.time()
        with self._lock:
            hit = self._spreadsheets.get(spreadsheet_id)
            if hit and now - hit[0] < self.HANDLE_TTL:
                return hit[1]
        sh = self._client.open_by_key(spreadsheet_id)
        with self._lock:
            self._spreadsheets[spreadsheet_id] = (now, sh)
        return sh

    def _read_range(self, spreadsheet_id: str, range_name: str, fresh: bool = False) -> list[list[str]]:
        key = (spreadsheet_id, range_name)
        now = time.time()
        if not fresh:
            with self._lock:
                hit = self._values.get(key)
                if hit and now - hit[0] < self.READ_TTL:
                    return hit[1]

        sh = self._open(spreadsheet_id)
        resp = self._with_backoff(lambda: sh.values_batch_get([range_name]))
        ranges = resp.get("valueRanges", [])
        values = ranges[0].get("values", []) if ranges else []

        with self._lock:
            self._values[key] = (now, values)
        return values

    def invalidate(self, spreadsheet_id: str) -> None:
        """Forget cached reads for one spreadsheet."""
        with self._lock:
            for k in [k for k in self._values if k[0] == spreadsheet_id]:
                del self._values[k]

    def fetch_sheet_data(self, spreadsheet_id: str, range_name: str, *, fresh: bool = False) -> list[list[str]]:
        """
        Return the values of an A1 range ("'店舗A'!C3:AG"), or of a whole tab
        when `range_name` is just a tab name. Returns [] and logs on failure.

        `fresh=True` skips the read cache. Another process may have written to
        the sheet since the cached read, so anything that picks a ledger slot
        reads fresh.
        """
        try:
            if "!" not in range_name:
                ws = self._open(spreadsheet_id).worksheet(range_name)
                return self._with_backoff(lambda: ws.get_all_values())
            return self._read_range(spreadsheet_id, range_name, fresh=fresh)
        except Exception as e:
            logger.error(f"Error fetching data from {spreadsheet_id} range '{range_name}': {e}")
            return []

    def update_range(self, spreadsheet_id: str, range_name: str, values: list[list]) -> None:
        """
        Write a 2D block into one A1 range, parsed as if typed by a user.
        Errors propagate; the dispatcher records them per command.
        """
        sh = self._open(spreadsheet_id)
        self._with_backoff(lambda: sh.values_update(
            range_name,
            params={"valueInputOption": "USER_ENTERED"},
            body={"values": values},
        ))
        self.invalidate(spreadsheet_id)

    def get_sheet_names(self, spreadsheet_id: str, *, include_hidden: bool = True) -> list[str]:
        """Tab names in sheet order. Set include_hidden=False to skip hidden tabs."""
        try:
            names: list[str] = []
            for ws in self._open(spreadsheet_id).worksheets():
                hidden = getattr(ws, "hidden", None)
                if hidden is None:
                    props = getattr(ws, "_properties", None) or {}
                    hidden = bool(props.get("hidden", False))
                if include_hidden or not hidden:
                    names.append(ws.title)
            return names
        except Exception as e:
            logger.error(f"Error listing sheets for {spreadsheet_id}: {e}")
            return []

    @staticmethod
    def _with_backoff(fn, *, tries: int = 5, base: float = 0.6, factor: float = 2.0):
        """Retry `fn` on Sheets 429 / quota errors with exponential backoff."""
        delay = base
        for attempt in range(tries):
            try:
                return fn()
            except APIError as e:
                if not _is_rate_limited(e) or attempt == tries - 1:
                    raise
                logger.warning(f"Sheets rate limit hit, retrying in {delay:.1f}s")
                time.sleep(delay)
                delay *= factor
