"""
Pytest configuration and shared fixtures.

Registers the integration marker / --run-integration option and builds
pipelines over temporary folders, workbooks and lock files.
"""

import pytest
from src.services.ingestion import IngestionOrchestrator
from src.services.folders import LocalFolderSource
from src.services.storage.ledger_xlsx import XlsxLedger
from src.services.storage.run_lock import SQLiteRunLock
from tests.fakes import FakeOcr


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against real Azure / Graph resources"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real Azure resources"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def bills_folder(tmp_path):
    """Folder with two PDF bills and one file the pipeline must ignore"""
    folder = tmp_path / "bills"
    folder.mkdir()
    (folder / "INV-2024-001.pdf").write_bytes(b"%PDF-1.4 bill one")
    (folder / "INV-2024-002.pdf").write_bytes(b"%PDF-1.4 bill two")
    (folder / "notes.txt").write_text("not a bill")
    return folder


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "ledger.xlsx"


@pytest.fixture
def lock_path(tmp_path):
    return str(tmp_path / "ingest.lock")


@pytest.fixture
def make_orchestrator(bills_folder, ledger_path, lock_path):
    """Factory building an orchestrator over the temporary folder, ledger and lock"""

    def _make(ocr=None, ledger=None, timeout=0.2):
        return IngestionOrchestrator(
            folder_source=LocalFolderSource(str(bills_folder.parent)),
            ocr=ocr or FakeOcr(),
            ledger=ledger or XlsxLedger(str(ledger_path), "Bills"),
            run_lock=SQLiteRunLock(lock_path, timeout=timeout),
            default_folder="bills",
            default_language="en",
        )

    return _make
