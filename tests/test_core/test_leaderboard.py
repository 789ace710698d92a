from lap_store import LapEntry
from leaderboard import driver_top_laps, lap_qualifies, rank_personal_bests


def lap(guid, lap_time, cuts=0, car='ks_ferrari', name=None):
    return LapEntry(guid, name or f'Driver {guid}', car, lap_time, cuts)


class TestRankPersonalBests:
    def test_empty_track(self):
        """Test that a track without laps has an empty leaderboard."""
        assert rank_personal_bests({}, 5) == []

    def test_only_cut_laps(self):
        """Test that laps with cuts never rank."""
        track_laps = {1: [lap(1, 80000, cuts=2)], 2: [lap(2, 85000, cuts=1)]}
        assert rank_personal_bests(track_laps, 5) == []

    def test_one_entry_per_driver_with_personal_best(self):
        """Test that each driver appears once with their fastest clean lap."""
        track_laps = {
            1: [lap(1, 95000), lap(1, 91000), lap(1, 93000)],
            2: [lap(2, 92000)],
        }
        ranked = rank_personal_bests(track_laps, 5)

        assert [(entry.driver_guid, entry.lap_time_ms) for entry in ranked] == [(1, 91000), (2, 92000)]

    def test_cut_lap_faster_than_clean_is_ignored(self):
        """Test that a faster lap with cuts does not replace the clean best."""
        track_laps = {1: [lap(1, 95000), lap(1, 80000, cuts=3)]}
        ranked = rank_personal_bests(track_laps, 5)

        assert len(ranked) == 1
        assert ranked[0].lap_time_ms == 95000

    def test_truncated_to_limit(self):
        """Test that at most `limit` drivers are returned, fastest first."""
        track_laps = {guid: [lap(guid, 90000 + guid * 100)] for guid in range(1, 8)}
        ranked = rank_personal_bests(track_laps, 5)

        assert [entry.driver_guid for entry in ranked] == [1, 2, 3, 4, 5]

    def test_sorted_and_distinct(self):
        """Test ordering and uniqueness over a mixed ledger."""
        track_laps = {
            10: [lap(10, 99000), lap(10, 97000, cuts=1), lap(10, 98000)],
            20: [lap(20, 91000, cuts=1)],
            30: [lap(30, 96000), lap(30, 96000, car='ks_bmw')],
            40: [lap(40, 89000)],
        }
        ranked = rank_personal_bests(track_laps, 10)
        times = [entry.lap_time_ms for entry in ranked]
        guids = [entry.driver_guid for entry in ranked]

        assert times == sorted(times)
        assert len(guids) == len(set(guids))
        assert guids == [40, 30, 10]
        for entry in ranked:
            clean = [l.lap_time_ms for l in track_laps[entry.driver_guid] if l.cuts == 0]
            assert entry.lap_time_ms == min(clean)

    def test_tie_broken_by_driver_guid(self):
        """Test that equal personal bests are ordered by driver GUID."""
        track_laps = {30: [lap(30, 90000)], 10: [lap(10, 90000)], 20: [lap(20, 90000)]}
        ranked = rank_personal_bests(track_laps, 5)
        assert [entry.driver_guid for entry in ranked] == [10, 20, 30]

    def test_equal_laps_of_one_driver_keep_earliest(self):
        """Test that a driver's equal-time laps resolve to the first one recorded."""
        first = lap(1, 90000, car='ks_bmw')
        second = lap(1, 90000, car='ks_ferrari')
        ranked = rank_personal_bests({1: [first, second]}, 5)
        assert ranked == [first]

    def test_non_positive_limit(self):
        """Test that a zero limit gives nothing."""
        assert rank_personal_bests({1: [lap(1, 90000)]}, 0) == []


class TestLapQualifies:
    def test_personal_best_in_top_n_qualifies(self):
        """Test that a new personal best inside the top N qualifies."""
        new_lap = lap(1, 90000)
        track_laps = {1: [lap(1, 95432), new_lap], 2: [lap(2, 92000)]}
        assert lap_qualifies(track_laps, 5, new_lap) is True

    def test_slower_than_own_best_does_not_qualify(self):
        """Test that a lap slower than the driver's best is not announced."""
        new_lap = lap(1, 96000)
        track_laps = {1: [lap(1, 90000), new_lap]}
        assert lap_qualifies(track_laps, 5, new_lap) is False

    def test_outside_top_n_does_not_qualify(self):
        """Test that a seventh, slower driver misses a top 5 board."""
        track_laps = {guid: [lap(guid, 90000 + guid * 1000)] for guid in range(1, 7)}
        slow_lap = lap(7, 120000)
        track_laps[7] = [slow_lap]
        assert lap_qualifies(track_laps, 5, slow_lap) is False

    def test_cut_lap_never_qualifies(self):
        """Test that a lap with cuts cannot make the leaderboard."""
        cut_lap = lap(1, 50000, cuts=3)
        assert lap_qualifies({1: [cut_lap]}, 5, cut_lap) is False


class TestDriverTopLaps:
    def test_top_three_clean_laps(self):
        """Test the /laptimes selection."""
        track_laps = {1: [lap(1, t) for t in (95000, 91000, 99000, 93000)] + [lap(1, 80000, cuts=1)]}
        top = driver_top_laps(track_laps, 1, 3)
        assert [entry.lap_time_ms for entry in top] == [91000, 93000, 95000]

    def test_unknown_driver(self):
        """Test that a driver without laps gets an empty list."""
        assert driver_top_laps({}, 42) == []
