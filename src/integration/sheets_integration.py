import logging
from typing import List

from googleapiclient.discovery import build

from integration.base import TabularDataSource
from integration.google_errors import store_call

logger = logging.getLogger(__name__)


def _a1(sheet: str, cells: str = "") -> str:
    # tab names contain spaces, so they are always quoted
    quoted = "'" + sheet.replace("'", "''") + "'"
    return f"{quoted}!{cells}" if cells else quoted


class SheetsDataSource(TabularDataSource):
    """Google Sheets backed row store; each input list is one tab of the spreadsheet."""

    def __init__(self, spreadsheet_id: str, credentials=None):
        self.spreadsheet_id = spreadsheet_id
        self.credentials = credentials
        self._service = None

    @property
    def values(self):
        if self._service is None:
            self._service = build("sheets", "v4", credentials=self.credentials, cache_discovery=False)
        return self._service.spreadsheets().values()

    @store_call("read sheet")
    def read_rows(self, sheet: str) -> List[List[str]]:
        resp = self.values.get(spreadsheetId=self.spreadsheet_id, range=_a1(sheet)).execute()
        rows = resp.get("values", [])
        # first row is the header
        return rows[1:]

    @store_call("append row")
    def append_row(self, sheet: str, row: List[str]) -> None:
        self.values.append(
            spreadsheetId=self.spreadsheet_id,
            range=_a1(sheet),
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [row]},
        ).execute()

    @store_call("update row")
    def update_row(self, sheet: str, row_index: int, row: List[str]) -> None:
        # row_index is 0-based over data rows; +1 for 1-based A1, +1 for the header
        a1 = _a1(sheet, f"A{row_index + 2}")
        self.values.update(
            spreadsheetId=self.spreadsheet_id,
            range=a1,
            valueInputOption="RAW",
            body={"values": [row]},
        ).execute()
