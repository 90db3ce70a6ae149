"""Unit tests for the circle lifecycle calculator (pure functions)."""

import pytest
from datetime import datetime, timedelta, timezone

from crcle.services.circles.lifecycle import (
    CirclePhase,
    circle_phase,
    compute_lifecycle,
    format_countdown,
    format_elapsed,
    is_purge_eligible,
    utc_now_ms,
)


T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _window(days):
    close_at = T0 + timedelta(days=days)
    return T0, close_at, close_at + timedelta(hours=48)


# ─────────────────────────────────────────────────────────────────
# circle_phase
# ─────────────────────────────────────────────────────────────────


class TestCirclePhase:
    def test_open_before_close_time(self):
        assert circle_phase("open", T0 + timedelta(hours=1), T0) == CirclePhase.OPEN

    def test_closed_exactly_at_close_time(self):
        assert circle_phase("open", T0, T0) == CirclePhase.CLOSED

    def test_explicit_closed_status_wins(self):
        assert circle_phase("closed", T0 + timedelta(days=2), T0) == CirclePhase.CLOSED


# ─────────────────────────────────────────────────────────────────
# compute_lifecycle
# ─────────────────────────────────────────────────────────────────


class TestComputeLifecycle:
    def test_one_day_circle_not_expiring_at_creation_instant(self):
        created, close_at, delete_at = _window(1)

        snapshot = compute_lifecycle("open", created, close_at, delete_at, created)

        assert snapshot.phase == CirclePhase.OPEN
        assert snapshot.is_expiring_soon is False
        assert snapshot.remaining_progress == 1.0

    def test_one_day_circle_expiring_one_second_later(self):
        created, close_at, delete_at = _window(1)

        snapshot = compute_lifecycle(
            "open", created, close_at, delete_at, created + timedelta(seconds=1)
        )

        assert snapshot.is_expiring_soon is True

    def test_three_day_circle_not_expiring_midway(self):
        created, close_at, delete_at = _window(3)

        snapshot = compute_lifecycle(
            "open", created, close_at, delete_at, created + timedelta(days=1)
        )

        assert snapshot.is_expiring_soon is False
        assert snapshot.remaining_progress == pytest.approx(2 / 3)

    def test_closed_circle_reports_grace_progress(self):
        created, close_at, delete_at = _window(1)

        snapshot = compute_lifecycle(
            "open", created, close_at, delete_at, close_at + timedelta(hours=12)
        )

        assert snapshot.phase == CirclePhase.CLOSED
        assert snapshot.is_open is False
        assert snapshot.is_expiring_soon is False
        assert snapshot.remaining_progress == pytest.approx(0.75)

    def test_progress_clamped_after_delete_time(self):
        created, close_at, delete_at = _window(1)

        snapshot = compute_lifecycle(
            "open", created, close_at, delete_at, delete_at + timedelta(days=5)
        )

        assert snapshot.remaining_progress == 0.0

    def test_zero_length_grace_window_yields_zero(self):
        created, close_at, _ = _window(1)

        snapshot = compute_lifecycle("closed", created, close_at, close_at, created)

        assert snapshot.remaining_progress == 0.0

    def test_progress_never_exceeds_one_before_creation(self):
        created, close_at, delete_at = _window(2)

        snapshot = compute_lifecycle(
            "open", created, close_at, delete_at, created - timedelta(hours=3)
        )

        assert snapshot.remaining_progress == 1.0

    @pytest.mark.parametrize("days", [1, 3, 7])
    def test_progress_never_increases_while_open(self, days):
        created, close_at, delete_at = _window(days)
        step = timedelta(minutes=17)

        now, previous = created, None
        while now < close_at:
            snapshot = compute_lifecycle("open", created, close_at, delete_at, now)
            assert snapshot.phase == CirclePhase.OPEN
            if previous is not None:
                assert snapshot.remaining_progress <= previous
            previous = snapshot.remaining_progress
            now += step

    @pytest.mark.parametrize("status", ["open", "closed"])
    def test_progress_never_increases_while_closed(self, status):
        created, close_at, delete_at = _window(2)
        step = timedelta(minutes=7)

        now, previous = close_at, None
        while now <= delete_at + timedelta(hours=1):
            snapshot = compute_lifecycle(status, created, close_at, delete_at, now)
            assert snapshot.phase == CirclePhase.CLOSED
            if previous is not None:
                assert snapshot.remaining_progress <= previous
            previous = snapshot.remaining_progress
            now += step


# ─────────────────────────────────────────────────────────────────
# is_purge_eligible
# ─────────────────────────────────────────────────────────────────


class TestPurgeEligibility:
    def test_eligible_at_delete_time(self):
        assert is_purge_eligible(T0, False, T0) is True

    def test_not_eligible_before_delete_time(self):
        assert is_purge_eligible(T0, False, T0 - timedelta(seconds=1)) is False

    def test_never_eligible_once_cleaned(self):
        assert is_purge_eligible(T0, True, T0 + timedelta(days=30)) is False


# ─────────────────────────────────────────────────────────────────
# Countdown formatting
# ─────────────────────────────────────────────────────────────────


class TestFormatting:
    def test_minutes_and_seconds_under_an_hour(self):
        assert format_elapsed(59 * 60 + 5) == "59:05"

    def test_hours_from_one_hour_up(self):
        assert format_elapsed(3600 * 26 + 61) == "26:01:01"

    def test_countdown_empty_when_passed(self):
        assert format_countdown(T0, T0) == ""
        assert format_countdown(T0, T0 + timedelta(seconds=5)) == ""

    def test_countdown_to_future_deadline(self):
        assert format_countdown(T0 + timedelta(minutes=2, seconds=3), T0) == "02:03"


def test_utc_now_ms_truncates_to_milliseconds():
    now = utc_now_ms()

    assert now.tzinfo is not None
    assert now.microsecond % 1000 == 0
