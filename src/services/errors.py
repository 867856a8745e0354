"""
Typed failures raised by the ingestion pipeline.

Each error carries the document identifier (when one applies) and the
pipeline stage it came from, so a caller or a log line can tell which bill
failed and where.
"""

from typing import Optional


class IngestionError(Exception):
    """Base class for all ingestion failures."""

    stage = "ingest"

    def __init__(self, message: str, identifier: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        if self.identifier:
            return f"[{self.stage}] {self.identifier}: {self.message}"
        return f"[{self.stage}] {self.message}"


class LockBusy(IngestionError):
    """Another run held the ingestion lock past the wait window."""

    stage = "lock"


class FolderAccessFailure(IngestionError):
    """The bill folder could not be resolved or listed."""

    stage = "enumerate"


class DocumentFetchFailure(IngestionError):
    """A single document could not be downloaded."""

    stage = "fetch"


class OcrFailure(IngestionError):
    """OCR could not produce text for a document, or its artifact could not be removed."""

    stage = "ocr"


class LedgerWriteFailure(IngestionError):
    """Writing or flushing the ledger failed. Fatal for the run."""

    stage = "ledger"
