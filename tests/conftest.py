from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from portaria.config import LedgerConfig
from portaria.ledger import MovementLedger
from portaria.store.memory import MemoryStore


@dataclass
class FakeClock:
    # 09:00 in America/Sao_Paulo.
    now: datetime = field(default_factory=lambda: datetime(2026, 3, 10, 12, 0, tzinfo=UTC))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def ledger(store: MemoryStore, clock: FakeClock) -> MovementLedger:
    return MovementLedger(store, config=LedgerConfig(), clock=clock)
