"""
Owner-sheet cross-check via the Google Sheets values API.

The sales team keeps a sheet of plots with owner references. One batched
read of ``<sheet>!A:Z`` answers a whole match set; rows are matched on the
plot-number column, with ids normalised (case, punctuation) on both sides.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import quote

import httpx

from hyperplot.config import Settings, settings

logger = logging.getLogger(__name__)

SHEETS_VALUES_URL = "https://sheets.googleapis.com/v4/spreadsheets/{spreadsheet_id}/values/{range}"

PLOT_COLUMN_CANDIDATES = [
    "plot number", "plotnumber", "plot_number", "plot no", "plot",
    "land number", "land_number",
]
OWNER_COLUMN_CANDIDATES = [
    "owner reference", "owner_reference", "ownerreference", "owner ref",
    "owner id", "owner_id", "reference", "ref",
]


def extract_spreadsheet_id(value: str) -> str:
    """Accept a bare spreadsheet id or a full docs.google.com URL."""
    m = re.search(r"/spreadsheets/d/([a-zA-Z0-9_-]+)", value or "")
    if m:
        return m.group(1)
    return (value or "").strip()


def normalize_plot_key(value) -> str:
    return re.sub(r"[^0-9a-zA-Z_-]", "", str(value)).lower()


def _find_column(header: list[str], candidates: list[str]) -> int | None:
    for name in candidates:
        if name in header:
            return header.index(name)
    return None


def match_sheet_rows(values: list[list], plot_ids: list[str]) -> dict[str, dict]:
    """Map each requested plot id to its sheet row (header → cell).

    The first row is the header. Without a recognisable plot column the first
    column is used. Every matched row gets an ``owner_reference`` entry, empty
    when the sheet has no owner column.
    """
    if not values or not plot_ids:
        return {}

    header = [str(h).strip().lower() for h in values[0]]
    plot_col = _find_column(header, PLOT_COLUMN_CANDIDATES)
    if plot_col is None:
        plot_col = 0
    owner_col = _find_column(header, OWNER_COLUMN_CANDIDATES)

    wanted = {normalize_plot_key(pid): pid for pid in plot_ids}
    matches: dict[str, dict] = {}
    for row in values[1:]:
        if plot_col >= len(row):
            continue
        plot_id = wanted.get(normalize_plot_key(row[plot_col]))
        if plot_id is None or plot_id in matches:
            continue

        record = {}
        for i, name in enumerate(header):
            record[name or f"column_{i + 1}"] = str(row[i]) if i < len(row) else ""
        owner = row[owner_col] if owner_col is not None and owner_col < len(row) else ""
        record["owner_reference"] = str(owner).strip()
        matches[plot_id] = record
    return matches


class SheetsClient:
    def __init__(
        self,
        api_key: str,
        spreadsheet_id: str,
        sheet_name: str = "Sheet1",
        timeout: float = 8.0,
    ):
        self.api_key = api_key
        self.spreadsheet_id = extract_spreadsheet_id(spreadsheet_id)
        self.sheet_name = sheet_name or "Sheet1"
        self.timeout = timeout

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "SheetsClient":
        return cls(
            api_key=config.sheets_api_key,
            spreadsheet_id=config.sheets_spreadsheet_id,
            sheet_name=config.sheets_name,
            timeout=config.sheets_timeout_s,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.spreadsheet_id)

    async def fetch_values(self) -> list[list]:
        if not self.configured:
            raise ValueError("Sheets cross-check is not configured (api key / spreadsheet id)")

        url = SHEETS_VALUES_URL.format(
            spreadsheet_id=self.spreadsheet_id,
            range=quote(f"{self.sheet_name}!A:Z", safe=""),
        )
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(url, params={"key": self.api_key})
            resp.raise_for_status()
            data = resp.json()
        return data.get("values") or []

    async def lookup_sheet_rows(self, plot_ids: list[str]) -> dict[str, dict]:
        if not plot_ids:
            return {}
        values = await self.fetch_values()
        matches = match_sheet_rows(values, plot_ids)
        logger.info("Sheet cross-check: %d of %d plot(s) found", len(matches), len(plot_ids))
        return matches
