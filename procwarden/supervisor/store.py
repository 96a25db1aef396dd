"""
Process Descriptor Store - the supervisor's belief of what is running.
"""

# ProcWarden - Local Process Supervisor
# Copyright (C) 2026 ProcWarden Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import Iterable, Iterator

from procwarden.supervisor.records import ProcessRecord


class DescriptorStore:
    """Ordered collection of process records keyed by name.

    Insertion order is preserved and drives the order of ``stop_all`` and
    status listings.  Re-adding a name replaces the existing record in place.
    Only the supervision engine mutates the store.
    """

    def __init__(self, records: Iterable[ProcessRecord] = ()) -> None:
        self._records: dict[str, ProcessRecord] = {}
        for record in records:
            self.put(record)

    def put(self, record: ProcessRecord) -> None:
        self._records[record.name] = record

    def get(self, name: str) -> ProcessRecord | None:
        return self._records.get(name)

    def remove(self, name: str) -> ProcessRecord | None:
        return self._records.pop(name, None)

    def names(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[ProcessRecord]:
        return list(self._records.values())

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __iter__(self) -> Iterator[ProcessRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)
