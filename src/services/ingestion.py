"""
Bill ingestion pipeline.

One run lists the PDFs in a bill folder, OCRs every bill whose identifier is
not yet in the ledger, parses the fixed-format fields and appends one ledger
row per bill, flushing after each row. Runs are serialized by the run lock.

Re-running is safe: the ledger is the record of what has been processed, so
a bill is appended at most once even if an earlier run crashed half way.
"""

from typing import Optional

from loguru import logger

from .bill_types import DocumentRef, IngestionReport, FailedDocument
from .errors import DocumentFetchFailure, OcrFailure
from .field_extractor import extract_billing_fields
from .folders import FolderSource
from .ocr import DocumentIntelligenceOcr
from .storage.ledger_base import LedgerBase
from .storage.run_lock import SQLiteRunLock
from ..core.config import settings


class IngestionOrchestrator:
    """
    Drives folder listing, OCR, field extraction and ledger appends.

    Collaborators are injected so tests and alternative backends can swap
    any of them.
    """

    def __init__(
        self,
        folder_source: FolderSource,
        ocr: DocumentIntelligenceOcr,
        ledger: LedgerBase,
        run_lock: SQLiteRunLock,
        default_folder: Optional[str] = None,
        default_language: Optional[str] = None,
    ):
        self.folder_source = folder_source
        self.ocr = ocr
        self.ledger = ledger
        self.run_lock = run_lock
        self.default_folder = default_folder or settings.bills_folder_id
        self.default_language = default_language or settings.ocr_default_language

    def run(self, folder_ref: Optional[str] = None, language_hint: Optional[str] = None) -> IngestionReport:
        """
        Ingest every unprocessed bill in a folder.

        Args:
            folder_ref: Folder to read (default: BILLS_FOLDER_ID)
            language_hint: OCR language code (default: OCR_DEFAULT_LANGUAGE, "en")

        Returns:
            IngestionReport listing processed, skipped and failed identifiers

        Raises:
            FolderAccessFailure: the folder could not be listed
            LockBusy: another run held the lock past the wait window
            LedgerWriteFailure: a row could not be persisted
        """
        folder_ref = folder_ref or self.default_folder
        language_hint = language_hint or self.default_language

        refs = self.folder_source.list_documents(folder_ref)
        logger.info("Starting ingestion run", folder=folder_ref, language=language_hint, candidates=len(refs))

        report = IngestionReport(folder=folder_ref, language=language_hint)

        with self.run_lock.held():
            # Snapshot is not refreshed during the run
            processed = set(self.ledger.load_processed_identifiers())

            for ref in refs:
                if ref.identifier in processed:
                    logger.debug("Skipping already processed bill", identifier=ref.identifier)
                    report.skipped.append(ref.identifier)
                    continue

                try:
                    self._ingest_one(ref, language_hint)
                except (DocumentFetchFailure, OcrFailure) as e:
                    logger.error(f"Bill not ingested: {e.message}", identifier=ref.identifier, stage=e.stage)
                    report.failed.append(FailedDocument(identifier=ref.identifier, stage=e.stage, reason=e.message))
                    continue

                processed.add(ref.identifier)
                report.processed.append(ref.identifier)

        logger.info(
            "Ingestion run finished",
            folder=folder_ref,
            processed=len(report.processed),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    def _ingest_one(self, ref: DocumentRef, language_hint: str) -> None:
        document = self.folder_source.fetch(ref)
        conversion = self.ocr.convert(document, language_hint)

        try:
            self.ocr.delete_artifact(conversion.artifact)
        except OcrFailure as e:
            logger.warning(f"Could not delete OCR artifact: {e.message}", identifier=ref.identifier)

        record = extract_billing_fields(conversion.text)
        record.source_identifier = ref.identifier

        if self.ledger.is_empty():
            self.ledger.write_header()
        self.ledger.append(record)
        self.ledger.flush()

        logger.info(
            "Appended ledger row",
            identifier=ref.identifier,
            bill_number=record.bill_number,
            total=record.total,
        )
