"""
In-memory odds history for line-movement detection.

Each external price refresh appends :class:`OddsSnapshot` records; the
contrarian detector reads them back to compare the opening price of a
market with its current price.

The buffer is an explicit object handed to the detector, never module
state.  It is process-local and non-durable: it is not a system of record,
and :meth:`OddsHistoryBuffer.reset_if_new_day` clears it at the first
access after midnight (UTC).

Concurrency: writes and reads for one fixture are serialised by a lock
per fixture id, so refreshes of different fixtures never contend.  The
fixture map itself is only read or changed under a registry lock, taken
after (never before) a fixture lock.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from football_edge.schemas import OddsHistoryPayload, OddsSnapshotPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OddsSnapshot:
    """Point-in-time capture of one market price."""

    fixture_id: int
    market: str
    price: float
    pick: str = ""
    bookmaker: str = "consensus"
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Buffer
# ---------------------------------------------------------------------------

class OddsHistoryBuffer:
    """
    Per-fixture, per-market ordered price history.

    Usage::

        buffer = OddsHistoryBuffer()
        buffer.record(OddsSnapshot(fixture_id=1, market="home", price=1.80))
        buffer.opening(1, "home")
    """

    def __init__(self, max_per_market: int = 200):
        self.max_per_market = max_per_market
        self._history: Dict[int, Dict[str, List[OddsSnapshot]]] = {}
        self._locks: Dict[int, threading.Lock] = defaultdict(threading.Lock)
        self._registry_lock = threading.Lock()
        self._day: date = datetime.now(timezone.utc).date()

    def _lock_for(self, fixture_id: int) -> threading.Lock:
        with self._registry_lock:
            return self._locks[fixture_id]

    # ------------------------------------------------------------------ #
    #  Writes                                                              #
    # ------------------------------------------------------------------ #

    def record(self, snapshot: OddsSnapshot) -> None:
        """Append one snapshot, keeping each market sorted by ``observed_at``."""
        self.reset_if_new_day()
        with self._lock_for(snapshot.fixture_id):
            with self._registry_lock:
                markets = self._history.setdefault(snapshot.fixture_id, {})
            series = markets.setdefault(snapshot.market, [])
            if series and snapshot.observed_at < series[-1].observed_at:
                series.append(snapshot)
                series.sort(key=lambda s: s.observed_at)
            else:
                series.append(snapshot)
            # The opening price is always kept; the rolling window drops the
            # oldest intermediate ticks.
            while len(series) > self.max_per_market:
                del series[1]

    def record_many(self, snapshots: Iterable[OddsSnapshot]) -> int:
        count = 0
        for snap in snapshots:
            self.record(snap)
            count += 1
        return count

    def record_prices(
        self,
        fixture_id: int,
        prices: Dict[str, float],
        bookmaker: str = "consensus",
        observed_at: Optional[datetime] = None,
    ) -> None:
        """Record one refresh of several markets at the same timestamp."""
        ts = observed_at or datetime.now(timezone.utc)
        for market, price in prices.items():
            if price is None:
                continue
            self.record(OddsSnapshot(
                fixture_id=fixture_id,
                market=market,
                price=price,
                bookmaker=bookmaker,
                observed_at=ts,
            ))

    # ------------------------------------------------------------------ #
    #  Reads                                                               #
    # ------------------------------------------------------------------ #

    def history(self, fixture_id: int, market: Optional[str] = None) -> List[OddsSnapshot]:
        """Ordered copy of a fixture's snapshots (one market or all)."""
        with self._lock_for(fixture_id):
            markets = self._history.get(fixture_id, {})
            if market is not None:
                return list(markets.get(market, []))
            merged = [s for series in markets.values() for s in series]
        return sorted(merged, key=lambda s: s.observed_at)

    def opening(self, fixture_id: int, market: str) -> Optional[OddsSnapshot]:
        with self._lock_for(fixture_id):
            series = self._history.get(fixture_id, {}).get(market)
            return series[0] if series else None

    def latest(self, fixture_id: int, market: str) -> Optional[OddsSnapshot]:
        with self._lock_for(fixture_id):
            series = self._history.get(fixture_id, {}).get(market)
            return series[-1] if series else None

    def fixtures(self) -> List[int]:
        with self._registry_lock:
            return list(self._history.keys())

    # ------------------------------------------------------------------ #
    #  Reset                                                               #
    # ------------------------------------------------------------------ #

    def clear(self, fixture_id: Optional[int] = None) -> None:
        """Drop one fixture's history, or everything."""
        if fixture_id is not None:
            with self._lock_for(fixture_id):
                with self._registry_lock:
                    self._history.pop(fixture_id, None)
            return
        # Each fixture lock is taken in turn so in-flight writes land first
        for fid in self.fixtures():
            with self._lock_for(fid):
                with self._registry_lock:
                    self._history.pop(fid, None)
        logger.info("Odds history cleared")

    def reset_if_new_day(self, now: Optional[datetime] = None) -> bool:
        """Clear the buffer when ``now`` falls on a later UTC day.  Returns True if cleared."""
        today = (now or datetime.now(timezone.utc)).date()
        if today <= self._day:
            return False
        with self._registry_lock:
            if today <= self._day:
                return False
            self._history.clear()
            self._day = today
        logger.info("Odds history reset for new day %s", today.isoformat())
        return True

    def __len__(self) -> int:
        total = 0
        for fixture_id in self.fixtures():
            with self._lock_for(fixture_id):
                markets = self._history.get(fixture_id, {})
                total += sum(len(s) for s in markets.values())
        return total

    # ------------------------------------------------------------------ #
    #  Serialisation                                                       #
    # ------------------------------------------------------------------ #

    def to_json(self) -> str:
        snapshots = [
            OddsSnapshotPayload(
                fixture_id=s.fixture_id,
                market=s.market,
                pick=s.pick,
                price=s.price,
                bookmaker=s.bookmaker,
                observed_at=s.observed_at,
            )
            for fid in self.fixtures()
            for s in self.history(fid)
        ]
        return OddsHistoryPayload(snapshots=snapshots, day=self._day.isoformat()).model_dump_json()

    @classmethod
    def from_json(cls, payload: str, max_per_market: int = 200) -> "OddsHistoryBuffer":
        data = OddsHistoryPayload.model_validate_json(payload)
        buffer = cls(max_per_market=max_per_market)
        if data.day:
            buffer._day = max(buffer._day, date.fromisoformat(data.day))
        buffer.record_many(s.to_snapshot() for s in data.snapshots)
        logger.info("Loaded %d odds snapshots", len(data.snapshots))
        return buffer
