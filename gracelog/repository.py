from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator

from .models import Entry


class EntryRepository:
    """Newest-first, in-memory list of journal entries."""

    def __init__(self, entries: Iterable[Entry] = ()):
        self._entries: list[Entry] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(list(self._entries))

    @property
    def entries(self) -> list[Entry]:
        return list(self._entries)

    def upsert(self, entry: Entry) -> Entry:
        for index, existing in enumerate(self._entries):
            if existing.id == entry.id:
                self._entries[index] = entry
                return entry
        self._entries.insert(0, entry)
        return entry

    def get(self, entry_id: str) -> Entry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def find_by_date(self, day: str) -> Entry | None:
        for entry in self._entries:
            if entry.day == day:
                return entry
        return None

    def filter_by_date(self, day: str) -> list[Entry]:
        return [entry for entry in self._entries if entry.day == day]

    def days_with_entries(self) -> set[str]:
        return {entry.day for entry in self._entries}

    def streak(self, today: date) -> int:
        """Count consecutive days with an entry, walking back from ``today``.

        A day without an entry stops the count, so a missing ``today`` gives 0.
        """
        days = self.days_with_entries()
        count = 0
        check = today
        while check.isoformat() in days:
            count += 1
            check -= timedelta(days=1)
        return count

    def tag_frequency_top(self, n: int) -> list[str]:
        seen: dict[str, None] = {}
        for entry in self._entries:
            for tag in entry.tags:
                seen.setdefault(tag, None)
        return list(seen)[: max(0, n)]
