"""Append-only record of per-item outcomes for one batch run."""

from __future__ import annotations

from typing import Iterator

from fleet.schemas import ItemResult, LedgerResponse


class ResultLedger:
    """Ordered, append-only list of ItemResult.

    Entries are frozen models and can never be replaced or removed, so the
    ledger length always equals the number of items attempted.
    """

    def __init__(self) -> None:
        self._items: list[ItemResult] = []
        self.cancelled = False

    def append(self, result: ItemResult) -> None:
        if not isinstance(result, ItemResult):
            raise TypeError(f"Expected ItemResult, got {type(result).__name__}")
        self._items.append(result)

    @property
    def items(self) -> tuple[ItemResult, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ItemResult]:
        return iter(tuple(self._items))

    def __getitem__(self, index: int) -> ItemResult:
        return self._items[index]

    @property
    def ok_count(self) -> int:
        return sum(1 for item in self._items if item.ok)

    @property
    def failed_count(self) -> int:
        return len(self._items) - self.ok_count

    @property
    def failed(self) -> list[ItemResult]:
        return [item for item in self._items if not item.ok]

    def summary(self) -> str:
        """One-line outcome, e.g. "2 of 5 failed"."""
        total = len(self._items)
        if self.failed_count:
            text = f"{self.failed_count} of {total} failed"
        else:
            text = f"{total} of {total} succeeded"
        if self.cancelled:
            text += " (cancelled)"
        return text

    def to_response(self) -> LedgerResponse:
        return LedgerResponse(
            items=list(self._items),
            ok_count=self.ok_count,
            failed_count=self.failed_count,
            cancelled=self.cancelled,
            summary=self.summary(),
        )
