"""
Lap Record Store
In-memory table of every recorded lap, grouped by track key then driver GUID
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

@dataclass(frozen=True)
class LapEntry:
    """A single completed lap for one driver"""
    driver_guid: int
    driver_name: str
    car_name: str
    lap_time_ms: int
    cuts: int = 0

    @property
    def is_clean(self) -> bool:
        return self.cuts == 0

    @property
    def dedup_key(self) -> Tuple[int, int, str]:
        """Fields that make two laps of the same driver the same lap"""
        return (self.lap_time_ms, self.cuts, self.car_name)


# driver_guid -> laps in arrival order
TrackLaps = Dict[int, List[LapEntry]]


class LapStore:
    """Owns the lap data of all tracks.

    Mutation happens only through record_lap. Callers that need to read the
    ledger and act on what they read (rank, persist, notify) hold
    track_lock(track_key) for the whole sequence.
    """

    def __init__(self):
        self.tracks: Dict[str, TrackLaps] = {}
        self.logger = logging.getLogger(__name__)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, track_key: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(track_key)
            if lock is None:
                lock = threading.RLock()
                self._locks[track_key] = lock
            return lock

    @contextmanager
    def track_lock(self, track_key: str):
        """Serialize read-modify-write sequences on one track"""
        lock = self._lock_for(track_key)
        with lock:
            yield

    def record_lap(self, track_key: str, driver_guid: int, driver_name: str,
                   car_name: str, lap_time_ms: int, cuts: int) -> Tuple[bool, Optional[LapEntry]]:
        """Add a lap unless the driver already has an equal one on this track.

        Returns (accepted, entry). For a duplicate, entry is the lap already
        stored. For an invalid lap (zero duration, negative cuts) the result
        is (False, None).
        """
        if not lap_time_ms or lap_time_ms < 0:
            self.logger.warning(f"Rejected lap with invalid time {lap_time_ms} for driver {driver_guid}")
            return False, None
        if cuts < 0:
            self.logger.warning(f"Rejected lap with negative cuts {cuts} for driver {driver_guid}")
            return False, None

        new_lap = LapEntry(
            driver_guid=driver_guid,
            driver_name=driver_name or "UnknownDriver",
            car_name=car_name or "UnknownCar",
            lap_time_ms=lap_time_ms,
            cuts=cuts,
        )

        with self.track_lock(track_key):
            track_laps = self.tracks.get(track_key)
            if track_laps is None:
                track_laps = {}
                self.tracks[track_key] = track_laps
                self.logger.info(f"Initialized lap storage for track: {track_key}")

            driver_laps = track_laps.setdefault(driver_guid, [])

            for existing in driver_laps:
                if existing.dedup_key == new_lap.dedup_key:
                    self.logger.debug(f"Duplicate lap for {new_lap.driver_name} on {track_key}, skipping")
                    return False, existing

            driver_laps.append(new_lap)

        self.logger.debug(f"Recorded lap for {new_lap.driver_name} on {track_key}: {lap_time_ms} ms, {cuts} cuts")
        return True, new_lap

    def get_track(self, track_key: str) -> TrackLaps:
        """Live ledger for a track (empty dict when the track is unknown).

        The returned mapping is the store's own; hold track_lock while using it.
        """
        return self.tracks.get(track_key, {})

    def snapshot(self, track_key: str) -> TrackLaps:
        """Copy of a track ledger that is safe to use without the lock"""
        with self.track_lock(track_key):
            return {guid: list(laps) for guid, laps in self.get_track(track_key).items()}

    def replace_track(self, track_key: str, track_laps: TrackLaps) -> None:
        """Install a ledger loaded from storage"""
        with self.track_lock(track_key):
            self.tracks[track_key] = track_laps

    def track_keys(self) -> List[str]:
        return sorted(self.tracks.keys())

    def lap_count(self, track_key: str) -> int:
        with self.track_lock(track_key):
            return sum(len(laps) for laps in self.get_track(track_key).values())
