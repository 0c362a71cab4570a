"""
Google Sheets data source.

One "Users" worksheet lists accounts; every agent has a worksheet of their
own, named after them, holding their sales. gspread is blocking, so every
call runs in the default executor.
"""

import asyncio
import functools
from typing import Any, Callable, TypeVar

import gspread
from gspread.exceptions import APIError, WorksheetNotFound
from loguru import logger

from salesdash.datasource.base import AGENT_COLUMN, BaseDataSource, Record
from salesdash.services.errors import RateLimitError, UpstreamError

T = TypeVar("T")

SALES_HEADERS = [
    "Timestamp",
    "Info Details",
    "Student Code",
    "Activation Date",
    "Student Name",
    "Student Number",
    "Parent Number",
    "Birthday",
    "City",
    "Area",
    "State Of Order",
    "Subtype",
    "Class",
    "Subject Name",
    "Order Cost",
    "Proof URL",
    "Note",
    "Wallet",
    "Transfer Number",
    "Transfer Code Status",
    "Date That Msg Arrive",
    "Time That Msg Arrive",
    "Transfer Code",
    "Source Of Data",
    "Agent Name",
]


def translate_api_error(error: APIError, service_id: str) -> Exception:
    """Map a gspread APIError onto the service error taxonomy."""
    status = getattr(error, "code", None)
    if status is None and getattr(error, "response", None) is not None:
        status = error.response.status_code

    detail = str(error)
    if status == 429 or "RESOURCE_EXHAUSTED" in detail:
        return RateLimitError(service_id)
    return UpstreamError(
        f"Google Sheets API error {status}: {detail[:200]}",
        service_id=service_id,
        status_code=status,
    )


class SheetsDataSource(BaseDataSource):
    """
    Sales and users stored in a single Google spreadsheet.

    Usage:
        source = SheetsDataSource(
            spreadsheet_id=global_settings.spreadsheet_id,
            credentials_file=global_settings.google_credentials_file,
        )
        sales = await source.fetch_sales()
    """

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_file: str = "credentials.json",
        users_sheet: str = "Users",
        admin_agent_name: str = "Admin",
        client: gspread.Client | None = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.credentials_file = credentials_file
        self.users_sheet = users_sheet
        self.admin_agent_name = admin_agent_name
        self._client = client
        self._spreadsheet: gspread.Spreadsheet | None = None

    @property
    def service_id(self) -> str:
        return "google_sheets"

    def is_configured(self) -> bool:
        return bool(self.spreadsheet_id)

    def _get_spreadsheet(self) -> gspread.Spreadsheet:
        """Open the spreadsheet on first use."""
        if self._spreadsheet is None:
            if self._client is None:
                self._client = gspread.service_account(filename=self.credentials_file)
            self._spreadsheet = self._client.open_by_key(self.spreadsheet_id)
        return self._spreadsheet

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking gspread call off the event loop."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))
        except APIError as e:
            raise translate_api_error(e, self.service_id) from e

    # Reads

    async def fetch_users(self) -> list[Record]:
        users = await self._run(self._read_users)
        logger.info(f"Fetched {len(users)} users from Google Sheets")
        return users

    def _read_users(self) -> list[Record]:
        sheet = self._get_spreadsheet().worksheet(self.users_sheet)
        rows = sheet.get_all_records()
        # Row 1 is the header
        return [{**row, "row": index + 2} for index, row in enumerate(rows)]

    async def fetch_sales(self) -> list[Record]:
        users = await self.fetch_users()
        agents = [
            user.get(AGENT_COLUMN)
            for user in users
            if user.get(AGENT_COLUMN) and user.get(AGENT_COLUMN) != self.admin_agent_name
        ]

        all_sales: list[Record] = []
        succeeded = failed = 0
        for agent in agents:
            try:
                sales = await self._run(self._read_agent_sales, str(agent))
            except RateLimitError:
                raise
            except UpstreamError as e:
                logger.warning(f"Failed to fetch sales for agent {agent}: {e}")
                failed += 1
                continue
            all_sales.extend(sales)
            succeeded += 1

        if succeeded == 0 and failed > 0:
            raise UpstreamError(
                f"Failed to fetch sales from Google Sheets (all {failed} agents failed)",
                service_id=self.service_id,
            )

        logger.info(
            f"Fetched {len(all_sales)} sales for {len(agents)} agents "
            f"(succeeded: {succeeded}, failed: {failed})"
        )
        return all_sales

    def _read_agent_sales(self, agent: str) -> list[Record]:
        try:
            sheet = self._get_spreadsheet().worksheet(agent)
        except WorksheetNotFound:
            logger.warning(f"No sales sheet for agent {agent}, skipping")
            return []

        sales = []
        for index, row in enumerate(sheet.get_all_records()):
            sales.append(
                {
                    **row,
                    "sheet_id": sheet.id,
                    "row": index + 2,
                    AGENT_COLUMN: row.get(AGENT_COLUMN) or agent,
                }
            )
        return sales

    # Writes

    async def append_sale(self, agent_name: str, record: Record) -> None:
        await self._run(self._append_sale, agent_name, record)
        logger.info(f"Appended sale for agent {agent_name}")

    def _append_sale(self, agent_name: str, record: Record) -> None:
        spreadsheet = self._get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(agent_name)
        except WorksheetNotFound:
            if agent_name == self.admin_agent_name:
                raise UpstreamError(
                    f"No sales sheet for '{agent_name}' and auto-creation is disabled",
                    service_id=self.service_id,
                )
            logger.info(f"Creating sales sheet for agent {agent_name}")
            sheet = spreadsheet.add_worksheet(
                title=agent_name, rows=1000, cols=len(SALES_HEADERS)
            )
            sheet.append_row(SALES_HEADERS)

        headers = sheet.row_values(1) or SALES_HEADERS
        sheet.append_row(
            [record.get(header, "") for header in headers],
            value_input_option="USER_ENTERED",
        )

    async def append_user(self, record: Record) -> None:
        await self._run(self._append_user, record)
        logger.info("Appended user")

    def _append_user(self, record: Record) -> None:
        sheet = self._get_spreadsheet().worksheet(self.users_sheet)
        headers = sheet.row_values(1)
        sheet.append_row(
            [record.get(header, "") for header in headers],
            value_input_option="USER_ENTERED",
        )

    async def update_user(self, row_number: int, record: Record) -> None:
        if row_number < 2:
            raise ValueError(f"Row {row_number} is the header or out of range")
        await self._run(self._update_user, row_number, record)
        logger.info(f"Updated user at row {row_number}")

    def _update_user(self, row_number: int, record: Record) -> None:
        sheet = self._get_spreadsheet().worksheet(self.users_sheet)
        headers = sheet.row_values(1)
        current = sheet.row_values(row_number)
        current += [""] * (len(headers) - len(current))
        values = [
            record.get(header, current[index]) for index, header in enumerate(headers)
        ]
        sheet.update(range_name=f"A{row_number}", values=[values])
