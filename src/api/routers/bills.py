from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from ..deps import get_ledger, get_orchestrator
from ...services.bill_types import IngestionReport
from ...services.errors import FolderAccessFailure, LedgerWriteFailure, LockBusy
from ...services.ingestion import IngestionOrchestrator
from ...services.storage.ledger_xlsx import XlsxLedger

router = APIRouter(prefix="/bills", tags=["bills"])


@router.post("/ingest", response_model=IngestionReport)
def ingest(
    folder_id: str | None = Query(default=None, description="Bill folder (default: BILLS_FOLDER_ID)"),
    language: str | None = Query(default=None, description="OCR language code (default: en)"),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """
    Run one ingestion pass over a bill folder.

    Every PDF not yet in the ledger is OCR'd, parsed and appended as a row.
    Bills that fail OCR are listed under `failed` and retried on the next run.

    Example response:
    {
        "folder": "bills-incoming",
        "language": "en",
        "processed": ["INV-2024-002"],
        "skipped": ["INV-2024-001"],
        "failed": []
    }
    """
    try:
        return orchestrator.run(folder_id, language)
    except LockBusy as e:
        logger.warning(f"Ingestion rejected: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except FolderAccessFailure as e:
        logger.error(f"Ingestion aborted: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except LedgerWriteFailure as e:
        logger.error(f"Ingestion aborted: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/processed", response_model=list[str])
def processed(ledger: XlsxLedger = Depends(get_ledger)):
    """Identifiers already present in the ledger."""
    try:
        return sorted(ledger.load_processed_identifiers())
    except LedgerWriteFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
