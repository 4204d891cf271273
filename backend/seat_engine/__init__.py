"""Seat reservation engine: seat holds, booking commit, payment reconciliation and seat-status fanout."""

__version__ = "1.0.0"
