
import os
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from pydantic import BaseModel

PDF_CONTENT_TYPE = "application/pdf"

LEDGER_HEADER = [
    "corp-id",
    "acc-no",
    "prim-no",
    "bill-no.",
    "bill-period",
    "due-date",
    "subtotal",
    "vat",
    "total",
    "Difference (Formula : total-399)",
    "filename",
]

# Column holding the source identifier (dedup key)
IDENTIFIER_COLUMN = LEDGER_HEADER.index("filename")


def identifier_from_name(name: str) -> str:
    """
    Strip the final extension: ``INV-2024-001.pdf`` -> ``INV-2024-001``.

    Control characters a spreadsheet cell cannot hold are dropped, so the
    identifier matches what the ledger stores.
    """
    stem, _ = os.path.splitext(os.path.basename(name))
    return ILLEGAL_CHARACTERS_RE.sub("", stem)


class DocumentRef(BaseModel):
    """Listing entry for a candidate document, before its content is downloaded"""
    model_config = {"frozen": True}

    identifier: str
    name: str
    content_type: str
    location: str  # Graph item id or local file path


class SourceDocument(BaseModel):
    model_config = {"frozen": True}

    identifier: str
    name: str
    content: bytes
    content_type: str = PDF_CONTENT_TYPE


class BillingRecord(BaseModel):
    corporate_id: str | None = None
    account_number: str | None = None
    primary_number: str | None = None
    bill_number: str | None = None
    billing_period: str | None = None
    due_date: str | None = None
    subtotal: str | None = None
    vat: str | None = None
    total: str | None = None
    difference: str | None = None
    source_identifier: str | None = None

    def to_row(self) -> list[str | None]:
        """Values in ledger header order."""
        return [
            self.corporate_id,
            self.account_number,
            self.primary_number,
            self.bill_number,
            self.billing_period,
            self.due_date,
            self.subtotal,
            self.vat,
            self.total,
            self.difference,
            self.source_identifier,
        ]


class FailedDocument(BaseModel):
    identifier: str
    stage: str
    reason: str


class IngestionReport(BaseModel):
    folder: str
    language: str
    processed: list[str] = []
    skipped: list[str] = []
    failed: list[FailedDocument] = []
