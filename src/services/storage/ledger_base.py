"""
Abstract base class for bill ledgers.

A ledger is the append-only table of parsed bills, one row per source
document, keyed by the source identifier in the "filename" column.
"""

from abc import ABC, abstractmethod
from ..bill_types import BillingRecord


class LedgerBase(ABC):
    """
    Interface used by the ingestion orchestrator.

    Implementations must make every appended row durable on flush(), so a
    crash mid-run leaves a consistent prefix of committed rows.
    """

    @abstractmethod
    def load_processed_identifiers(self) -> frozenset[str]:
        """
        Snapshot of identifiers already present in the ledger.

        Returns:
            Identifiers from the filename column (header row excluded).
            Empty when the ledger has no rows.
        """
        pass

    @abstractmethod
    def is_empty(self) -> bool:
        """True when the ledger holds no rows at all, header included."""
        pass

    @abstractmethod
    def write_header(self) -> None:
        """Write the fixed header row. Only valid on an empty ledger."""
        pass

    @abstractmethod
    def append(self, record: BillingRecord) -> None:
        """Append one record as a new row (not yet durable)."""
        pass

    @abstractmethod
    def flush(self) -> None:
        """
        Persist all appended rows.

        Raises:
            LedgerWriteFailure: the store could not be written
        """
        pass
