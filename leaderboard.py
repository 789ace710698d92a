"""
Leaderboard Ranker
Derives the top-N personal-best clean laps of a track from the lap store
"""

from typing import List

import pandas as pd

from lap_store import LapEntry, TrackLaps

LAP_COLUMNS = ['DriverGuid', 'LapTimeMs', 'Order', 'Lap']


def _clean_laps_frame(track_laps: TrackLaps) -> pd.DataFrame:
    """One row per clean lap; Order is the arrival index within the driver history"""
    rows = [
        {'DriverGuid': guid, 'LapTimeMs': lap.lap_time_ms, 'Order': order, 'Lap': lap}
        for guid, laps in track_laps.items()
        for order, lap in enumerate(laps)
        if lap.is_clean
    ]
    return pd.DataFrame(rows, columns=LAP_COLUMNS)


def rank_personal_bests(track_laps: TrackLaps, limit: int) -> List[LapEntry]:
    """Best clean lap per driver, fastest first, at most `limit` drivers.

    Equal times are ordered by driver GUID; a driver's equal laps keep the
    earliest one.
    """
    if limit <= 0:
        return []

    df = _clean_laps_frame(track_laps)
    if df.empty:
        return []

    best = (
        df.sort_values(['LapTimeMs', 'DriverGuid', 'Order'], kind='mergesort')
        .drop_duplicates(subset='DriverGuid', keep='first')
        .head(limit)
    )
    return best['Lap'].tolist()


def lap_qualifies(track_laps: TrackLaps, limit: int, candidate: LapEntry) -> bool:
    """True when the candidate is its driver's personal best and inside the top `limit`"""
    if not candidate.is_clean:
        return False
    return any(
        lap.driver_guid == candidate.driver_guid and lap.lap_time_ms == candidate.lap_time_ms
        for lap in rank_personal_bests(track_laps, limit)
    )


def driver_top_laps(track_laps: TrackLaps, driver_guid: int, count: int = 3) -> List[LapEntry]:
    """A driver's fastest clean laps on one track"""
    clean = [lap for lap in track_laps.get(driver_guid, []) if lap.is_clean]
    return sorted(clean, key=lambda lap: lap.lap_time_ms)[:max(count, 0)]
