
from fastapi import HTTPException
from ..core.config import settings
from ..services.errors import OcrFailure
from ..services.folders import create_folder_source
from ..services.ingestion import IngestionOrchestrator
from ..services.ocr import DocumentIntelligenceOcr
from ..services.storage.ledger_xlsx import XlsxLedger
from ..services.storage.run_lock import SQLiteRunLock


def get_ledger() -> XlsxLedger:
    return XlsxLedger(settings.ledger_workbook_path, settings.ledger_sheet_name)


def get_orchestrator() -> IngestionOrchestrator:
    try:
        ocr = DocumentIntelligenceOcr.from_settings()
    except OcrFailure as e:
        raise HTTPException(status_code=503, detail=str(e))

    return IngestionOrchestrator(
        folder_source=create_folder_source(),
        ocr=ocr,
        ledger=get_ledger(),
        run_lock=SQLiteRunLock(settings.lock_path, timeout=settings.lock_timeout_seconds),
    )
