"""Book-closing ledger."""

from motoring.ledger.book_closing import BookClosingLedger, PeriodRef

__all__ = ["BookClosingLedger", "PeriodRef"]
