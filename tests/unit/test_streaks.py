"""Streak engine: consecutive periods, gaps, duplicates, replay."""

from datetime import datetime, timedelta, timezone

from streakboard.scoring.periods import PERIOD_LENGTH
from streakboard.scoring.streaks import StreakState, advance_streak, is_backfill, replay_streak

P1 = datetime(2026, 2, 2, tzinfo=timezone.utc)  # Monday


def week(n: int) -> datetime:
    """Period start n periods after P1."""
    return P1 + n * PERIOD_LENGTH


class TestAdvanceStreak:
    def test_first_approval_starts_at_one(self):
        state = advance_streak(StreakState(), week(0))
        assert state == StreakState(current_streak=1, longest_streak=1, last_activity_marker=week(0))

    def test_consecutive_periods_increment(self):
        state = StreakState()
        for n in range(5):
            state = advance_streak(state, week(n))
            assert state.current_streak == n + 1
        assert state.longest_streak == 5

    def test_same_period_is_unchanged(self):
        state = advance_streak(advance_streak(StreakState(), week(0)), week(1))
        again = advance_streak(state, week(1))
        assert again == state

    def test_gap_resets_to_one(self):
        state = advance_streak(advance_streak(StreakState(), week(0)), week(1))
        state = advance_streak(state, week(3))
        assert state.current_streak == 1
        assert state.longest_streak == 2
        assert state.last_activity_marker == week(3)

    def test_longest_never_decreases(self):
        state = StreakState(current_streak=2, longest_streak=9, last_activity_marker=week(0))
        for n in (1, 5, 6, 20):
            before = state.longest_streak
            state = advance_streak(state, week(n))
            assert state.longest_streak >= before
            assert state.longest_streak >= state.current_streak

    def test_naive_marker_compares_as_utc(self):
        naive_marker = week(0).replace(tzinfo=None)
        state = StreakState(current_streak=1, longest_streak=1, last_activity_marker=naive_marker)
        assert advance_streak(state, week(1)).current_streak == 2

    def test_marker_must_be_exactly_one_period_back(self):
        state = StreakState(current_streak=4, longest_streak=4, last_activity_marker=week(0) - timedelta(days=1))
        assert advance_streak(state, week(1)).current_streak == 1


class TestBackfill:
    def test_not_backfill_without_marker(self):
        assert not is_backfill(StreakState(), week(0))

    def test_older_period_is_backfill(self):
        state = StreakState(1, 1, week(3))
        assert is_backfill(state, week(2))
        assert not is_backfill(state, week(3))
        assert not is_backfill(state, week(4))


class TestReplayStreak:
    def test_empty_history(self):
        assert replay_streak([]) == StreakState()

    def test_order_does_not_matter(self):
        history = [week(3), week(0), week(2), week(1)]
        assert replay_streak(history) == StreakState(4, 4, week(3))

    def test_replay_with_gap(self):
        state = replay_streak([week(0), week(1), week(2), week(5), week(6)])
        assert state.current_streak == 2
        assert state.longest_streak == 3
        assert state.last_activity_marker == week(6)

    def test_duplicates_collapse(self):
        assert replay_streak([week(0), week(0), week(1)]).current_streak == 2

    def test_backfill_fills_gap(self):
        """Approving the missing middle period joins both runs."""
        incremental = advance_streak(advance_streak(StreakState(), week(0)), week(2))
        assert incremental.current_streak == 1
        assert replay_streak([week(0), week(2), week(1)]).current_streak == 3
