"""Exceptions and warnings raised by the search pipeline."""


class InvalidCriteriaError(ValueError):
    """Search criteria are structurally invalid (never coerced or guessed)."""


class SkippedRecordWarning(UserWarning):
    """A malformed record was left out of geo ranking.

    Emitted per record; the rest of the batch is still ranked.
    """

    def __init__(self, record_id: str, reason: str) -> None:
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Skipped record {record_id!r}: {reason}")
