"""
Excel workbook ledger.

Rows live in a named sheet of an .xlsx workbook. Each flush writes the whole
workbook to a temporary file next to the target, fsyncs it and atomically
replaces the target, so readers never see a half-written workbook.
"""

import os
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

from loguru import logger
from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException

from .ledger_base import LedgerBase
from ..bill_types import BillingRecord, LEDGER_HEADER, IDENTIFIER_COLUMN
from ..errors import LedgerWriteFailure


class XlsxLedger(LedgerBase):
    """
    Ledger stored in one sheet of an Excel workbook.

    The workbook is created on first flush if it does not exist yet; other
    sheets in an existing workbook are preserved.
    """

    def __init__(self, workbook_path: str, sheet_name: str = "Bills"):
        """
        Args:
            workbook_path: Path to the .xlsx file
            sheet_name: Sheet holding the ledger rows
        """
        self.workbook_path = Path(workbook_path)
        self.sheet_name = sheet_name
        self._workbook: Optional[Workbook] = None

    def _load(self):
        """Open (or create in memory) the workbook and the ledger sheet"""
        if self._workbook is None:
            if self.workbook_path.exists():
                try:
                    self._workbook = load_workbook(self.workbook_path)
                except (OSError, zipfile.BadZipFile, InvalidFileException, KeyError, ValueError) as e:
                    raise LedgerWriteFailure(f"Could not open workbook {self.workbook_path}: {e}")
            else:
                self._workbook = Workbook()
                # Replace the default sheet with the ledger sheet
                self._workbook.active.title = self.sheet_name

        if self.sheet_name not in self._workbook.sheetnames:
            self._workbook.create_sheet(self.sheet_name)
        return self._workbook[self.sheet_name]

    def _rows(self) -> list[tuple]:
        sheet = self._load()
        return [
            row for row in sheet.iter_rows(values_only=True)
            if any(value is not None for value in row)
        ]

    def _last_row_index(self) -> int:
        """Index of the last non-blank row, 0 for an empty sheet"""
        # openpyxl's max_row also counts cells that were only touched
        sheet = self._load()
        last = 0
        for index, row in enumerate(sheet.iter_rows(values_only=True), start=1):
            if any(value is not None for value in row):
                last = index
        return last

    def load_processed_identifiers(self) -> frozenset[str]:
        # Always snapshot what is on disk, not a workbook cached by an earlier run
        self._workbook = None
        rows = self._rows()
        identifiers = set()
        for row in rows[1:]:
            if len(row) <= IDENTIFIER_COLUMN:
                continue
            value = row[IDENTIFIER_COLUMN]
            if value is None or str(value).strip() == "":
                continue
            identifiers.add(str(value).strip())
        return frozenset(identifiers)

    def is_empty(self) -> bool:
        return not self._rows()

    def _write_row(self, row_index: int, values: list) -> None:
        sheet = self._load()
        for column, value in enumerate(values, start=1):
            if isinstance(value, str):
                value = ILLEGAL_CHARACTERS_RE.sub("", value)
            sheet.cell(row=row_index, column=column, value=value)

    def write_header(self) -> None:
        self._write_row(1, LEDGER_HEADER)

    def append(self, record: BillingRecord) -> None:
        self._write_row(self._last_row_index() + 1, record.to_row())

    def flush(self) -> None:
        workbook = self._workbook
        if workbook is None:
            return

        directory = self.workbook_path.parent
        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(suffix=".xlsx", dir=directory)
            with os.fdopen(fd, "wb") as f:
                workbook.save(f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.workbook_path)
            tmp_path = None
        except OSError as e:
            raise LedgerWriteFailure(f"Could not save workbook {self.workbook_path}: {e}")
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.debug("Ledger flushed", workbook=str(self.workbook_path), sheet=self.sheet_name)
