"""Tests for per-series metrics, frequency detection and flags."""

from datetime import timedelta

import pytest

from calendar_health.analytics.grouping import group_events
from calendar_health.analytics.series import (
    build_series_metrics,
    calculate_average_gap_days,
    frequency_from_gaps,
    frequency_from_rule,
)
from calendar_health.models.analytics import FrequencyLabel, SeriesFlag
from calendar_health.utils.date_utils import parse_recurrence_pattern

from conftest import NOW, OWNER


def _weekly(make_event, count=4, last=NOW - timedelta(days=1), weeks=1, **kwargs):
    kwargs.setdefault("recurring_event_id", "series")
    return [make_event(last - timedelta(weeks=weeks * i), **kwargs) for i in reversed(range(count))]


def test_eight_weekly_instances_classify_as_weekly(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, count=8, attendees=one_on_one_attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.frequency_label == FrequencyLabel.WEEKLY
    assert metrics.average_gap_days == pytest.approx(7)
    assert metrics.total_instances == 8


@pytest.mark.parametrize(
    "gaps,label",
    [
        ([1, 1, 1, 1, 3, 1, 1, 1, 1], FrequencyLabel.DAILY),
        ([7, 7, 14, 7], FrequencyLabel.WEEKLY),
        ([14, 14, 14], FrequencyLabel.BI_WEEKLY),
        ([28, 35, 28, 31], FrequencyLabel.MONTHLY),
        ([1, 20, 3, 40], FrequencyLabel.IRREGULAR),
        ([90, 91], FrequencyLabel.IRREGULAR),
        ([], FrequencyLabel.IRREGULAR),
    ],
)
def test_frequency_from_gaps(gaps, label):
    assert frequency_from_gaps(gaps) == label


def test_frequency_from_rule():
    assert frequency_from_rule(parse_recurrence_pattern(["RRULE:FREQ=DAILY"])) == FrequencyLabel.DAILY
    assert (
        frequency_from_rule(parse_recurrence_pattern(["RRULE:FREQ=WEEKLY;INTERVAL=2"]))
        == FrequencyLabel.BI_WEEKLY
    )
    assert frequency_from_rule(parse_recurrence_pattern(["RRULE:FREQ=MONTHLY"])) == FrequencyLabel.MONTHLY
    assert frequency_from_rule(parse_recurrence_pattern(["RRULE:FREQ=YEARLY"])) is None
    assert frequency_from_rule(None) is None


def test_average_gap_needs_two_dated_instances(make_event):
    assert calculate_average_gap_days([make_event(NOW)]) is None
    assert calculate_average_gap_days([]) is None


def test_rrule_label_wins_over_gaps(make_event, make_options, one_on_one_attendees):
    master = make_event(
        NOW - timedelta(days=3),
        event_id="series",
        recurrence=["RRULE:FREQ=MONTHLY"],
        attendees=one_on_one_attendees,
    )

    metrics = build_series_metrics("series", [master], make_options())

    assert metrics.frequency_label == FrequencyLabel.MONTHLY
    assert metrics.average_gap_days is None
    # Nominal monthly cadence drives the load
    assert metrics.weekly_minutes == pytest.approx(30 * 7 / (365.25 / 12), abs=0.01)


def test_bi_weekly_hour_costs_thirty_minutes_a_week(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, count=4, weeks=2, minutes=60, attendees=one_on_one_attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.frequency_label == FrequencyLabel.BI_WEEKLY
    assert metrics.duration_minutes == 60
    assert metrics.weekly_minutes == 30
    assert metrics.monthly_minutes == pytest.approx(130, abs=0.01)


def test_placeholder_series(make_event, make_options):
    events = _weekly(make_event, summary="Focus time", attendees=[])

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.is_placeholder
    assert metrics.attendee_count == 0
    assert metrics.acceptance_rate == 0
    assert SeriesFlag.GHOST not in metrics.flags


def test_owner_only_series_is_placeholder(make_event, make_options):
    events = _weekly(make_event, attendees=[(OWNER, "accepted")])
    assert build_series_metrics("series", events, make_options()).is_placeholder


def test_attendee_classification(make_event, make_options):
    attendees = [
        {"email": OWNER, "responseStatus": "accepted", "organizer": True},
        ("colleague@acme.com", "accepted"),
        ("client@partner.io", "accepted"),
        ("room-1@resource.calendar.google.com", "accepted"),
        {"email": "projector@acme.com", "resource": True},
    ]
    events = _weekly(make_event, attendees=attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.internal_attendee_count == 1
    assert metrics.external_attendee_count == 1
    assert metrics.attendee_count == 2
    assert metrics.audience == "mixed"
    assert not metrics.is_placeholder


def test_missing_owner_counts_everyone_internal(make_event, make_options):
    attendees = [
        {"email": OWNER, "responseStatus": "accepted", "self": True},
        ("client@partner.io", "accepted"),
    ]
    events = _weekly(make_event, attendees=attendees)

    metrics = build_series_metrics("series", events, make_options(owner_email=None))

    assert metrics.internal_attendee_count == 1
    assert metrics.external_attendee_count == 0
    assert SeriesFlag.EXTERNAL_NO_END not in metrics.flags


def test_engagement_rates(make_event, make_options):
    attendees = [
        {"email": OWNER, "responseStatus": "accepted", "organizer": True},
        ("a@acme.com", "accepted"),
        ("b@acme.com", "declined"),
    ]
    events = _weekly(make_event, count=4, attendees=attendees)
    events.append(
        make_event(NOW - timedelta(days=1, weeks=4), recurring_event_id="series", status="cancelled", attendees=attendees)
    )

    metrics = build_series_metrics("series", sorted(events, key=lambda e: e.start_time), make_options())

    assert metrics.acceptance_rate == 0.5
    assert metrics.cancellation_rate == 0.2
    assert metrics.total_instances == 5
    assert SeriesFlag.GHOST not in metrics.flags


def test_ghost_flag(make_event, make_options):
    attendees = [("a@acme.com", "declined"), ("b@acme.com", "needsAction"), ("c@acme.com", "accepted")]
    events = _weekly(make_event, attendees=attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.acceptance_rate == pytest.approx(0.33)
    assert SeriesFlag.GHOST in metrics.flags


def test_external_series_without_end_is_flagged(make_event, make_options):
    attendees = [(OWNER, "accepted"), ("client@partner.io", "accepted")]
    events = _weekly(make_event, attendees=attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert not metrics.has_recurrence_end
    assert SeriesFlag.EXTERNAL_NO_END in metrics.flags


def test_external_series_with_until_is_not_flagged(make_event, make_options):
    attendees = [(OWNER, "accepted"), ("client@partner.io", "accepted")]
    master = make_event(
        NOW - timedelta(weeks=4, days=1),
        event_id="series",
        recurrence=["RRULE:FREQ=WEEKLY;UNTIL=20261231T000000Z"],
        attendees=attendees,
    )
    events = [master, *_weekly(make_event, attendees=attendees)]

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.has_recurrence_end
    assert SeriesFlag.EXTERNAL_NO_END not in metrics.flags


def test_stale_series(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, last=NOW - timedelta(days=30), attendees=one_on_one_attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert SeriesFlag.STALE in metrics.flags
    assert metrics.next_occurrence is None
    assert metrics.last_occurrence == events[-1].start_time


def test_series_with_future_instance_is_not_stale(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, last=NOW - timedelta(days=30), attendees=one_on_one_attendees)
    events.append(make_event(NOW + timedelta(days=60), recurring_event_id="series", attendees=one_on_one_attendees))

    metrics = build_series_metrics("series", events, make_options())

    assert SeriesFlag.STALE not in metrics.flags


def test_large_long_meeting_flags(make_event, make_options):
    attendees = [(OWNER, "accepted")] + [(f"person{i}@acme.com", "accepted") for i in range(10)]
    events = _weekly(make_event, minutes=60, attendees=attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.attendee_count == 10
    assert metrics.people_hours_per_month == pytest.approx(43.33, abs=0.01)
    assert SeriesFlag.HIGH_PEOPLE_HOURS in metrics.flags
    assert SeriesFlag.HOARDING in metrics.flags
    assert metrics.flags.index(SeriesFlag.HIGH_PEOPLE_HOURS) < metrics.flags.index(SeriesFlag.HOARDING)


def test_zombie_flag(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, attendees=one_on_one_attendees, updated=NOW - timedelta(days=200))

    metrics = build_series_metrics("series", events, make_options())

    assert metrics.agenda_missing
    assert SeriesFlag.ZOMBIE in metrics.flags


def test_agenda_prevents_zombie_flag(make_event, make_options, one_on_one_attendees):
    events = _weekly(
        make_event,
        attendees=one_on_one_attendees,
        updated=NOW - timedelta(days=200),
        description="1. Updates",
    )

    metrics = build_series_metrics("series", events, make_options())

    assert not metrics.agenda_missing
    assert SeriesFlag.ZOMBIE not in metrics.flags


def test_series_outside_audit_window_is_skipped(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, last=NOW - timedelta(days=120), attendees=one_on_one_attendees)
    assert build_series_metrics("series", events, make_options()) is None


def test_actual_monthly_minutes_follow_range_mode(make_event, make_options, one_on_one_attendees):
    past = _weekly(make_event, count=6, attendees=one_on_one_attendees)
    future = [
        make_event(NOW + timedelta(days=6 + 7 * i), recurring_event_id="series", attendees=one_on_one_attendees)
        for i in range(2)
    ]
    events = past + future
    window = {"filter_end": NOW + timedelta(days=30)}

    retro = build_series_metrics("series", events, make_options(range_mode="retro", **window))
    forward = build_series_metrics("series", events, make_options(range_mode="forward", **window))

    # Past 30 days hold the instances at -1, -8, -15, -22 and -29 days
    assert retro.actual_monthly_minutes == 150
    assert forward.actual_monthly_minutes == 60
    assert retro.weekly_minutes == forward.weekly_minutes


def test_sample_events_are_bounded(make_event, make_options, one_on_one_attendees):
    events = _weekly(make_event, count=8, attendees=one_on_one_attendees)

    metrics = build_series_metrics("series", events, make_options())

    assert len(metrics.sample_events) == 5
    assert metrics.event_ids == [e.id for e in events]


def test_recurring_master_does_not_count_as_an_instance(
    weekly_series, make_event, make_options, one_on_one_attendees
):
    master = make_event(
        NOW - timedelta(weeks=52, hours=2),
        event_id="weekly-sync",
        recurrence=["RRULE:FREQ=WEEKLY"],
        attendees=one_on_one_attendees,
    )
    members = group_events([master, *weekly_series()])["weekly-sync"]
    assert len(members) == 11

    metrics = build_series_metrics("weekly-sync", members, make_options())

    assert metrics.frequency_label == FrequencyLabel.WEEKLY
    assert metrics.average_gap_days == 7
    assert metrics.weekly_minutes == 30
    assert metrics.total_instances == 10
    assert "weekly-sync" in metrics.event_ids


def test_rrule_cadence_drives_load(make_event, make_options, one_on_one_attendees):
    master = make_event(
        NOW - timedelta(weeks=20),
        event_id="series",
        recurrence=["RRULE:FREQ=WEEKLY;INTERVAL=2"],
        attendees=one_on_one_attendees,
    )
    # One instance moved, so the observed gaps are uneven
    instances = _weekly(make_event, count=3, weeks=2, minutes=60, attendees=one_on_one_attendees)
    instances.append(
        make_event(
            NOW - timedelta(days=1, weeks=5),
            recurring_event_id="series",
            minutes=60,
            attendees=one_on_one_attendees,
        )
    )
    members = group_events([master, *instances])["series"]

    metrics = build_series_metrics("series", members, make_options())

    assert metrics.frequency_label == FrequencyLabel.BI_WEEKLY
    assert metrics.weekly_minutes == 30
