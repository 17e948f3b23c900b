"""
Tests for current/next program resolution.
"""
from datetime import datetime

import pytest

from conftest import utc
from nownext.models import Channel, Program, ScheduleData
from nownext.services.schedule_query_service import (
    GuideEntry,
    build_guide,
    current_program,
    next_program,
    now_next,
    resolve_channel_id,
)
from nownext.services.xmltv_parser_service import parse_xmltv_bytes
from nownext.utils.timezone import TimestampPolicy


@pytest.fixture
def schedule(sample_xmltv):
    return parse_xmltv_bytes(sample_xmltv)


class TestCurrentProgram:
    """Start is inclusive, stop is exclusive."""

    def test_inside_first_program(self, schedule, utc_policy):
        assert current_program(schedule, "C1", utc(10, 30), policy=utc_policy).title == "A"

    def test_boundary_belongs_to_next_program(self, schedule, utc_policy):
        assert current_program(schedule, "C1", utc(11), policy=utc_policy).title == "B"

    def test_start_is_inclusive(self, schedule, utc_policy):
        assert current_program(schedule, "C1", utc(10), policy=utc_policy).title == "A"

    def test_after_last_program(self, schedule, utc_policy):
        assert current_program(schedule, "C1", utc(12), policy=utc_policy) is None

    def test_unknown_channel(self, schedule, utc_policy):
        assert current_program(schedule, "NOPE", utc(10, 30), policy=utc_policy) is None

    def test_first_match_in_document_order(self, utc_policy):
        data = ScheduleData(programs=(
            Program("C", "20260110100000", "20260110120000", "Long"),
            Program("C", "20260110103000", "20260110110000", "Overlap"),
        ))
        assert current_program(data, "C", utc(10, 45), policy=utc_policy).title == "Long"


class TestNextProgram:
    """First program in document order starting after now."""

    def test_next_after_current(self, schedule, utc_policy):
        assert next_program(schedule, "C1", utc(10, 30), policy=utc_policy).title == "B"

    def test_start_equal_to_now_is_not_next(self, schedule, utc_policy):
        assert next_program(schedule, "C1", utc(11), policy=utc_policy) is None

    def test_before_schedule(self, schedule, utc_policy):
        assert next_program(schedule, "C1", utc(9), policy=utc_policy).title == "A"

    def test_document_order_is_trusted(self, utc_policy):
        """Out-of-order sources yield the first later program, not the soonest."""
        data = ScheduleData(programs=(
            Program("C", "20260110140000", "20260110150000", "Later"),
            Program("C", "20260110120000", "20260110130000", "Sooner"),
        ))
        assert next_program(data, "C", utc(11), policy=utc_policy).title == "Later"

        sorted_data = data.sorted_by_start(utc_policy.decode)
        assert next_program(sorted_data, "C", utc(11), policy=utc_policy).title == "Sooner"


class TestUndecodableTimestamps:
    """Undecodable programs are skipped, never raised."""

    def test_broken_program_does_not_block_others(self, utc_policy):
        data = ScheduleData(programs=(
            Program("C", "notadate", "20260110110000", "Broken"),
            Program("C", "20260110100000", "2026011011", "Short stop"),
            Program("C", "20260110100000", "20260110110000", "Good"),
            Program("C", "20260110110000", "20260110120000", "Later"),
        ))
        assert current_program(data, "C", utc(10, 30), policy=utc_policy).title == "Good"
        assert next_program(data, "C", utc(10, 30), policy=utc_policy).title == "Later"

    def test_sample_document_skips_notadate(self, schedule, utc_policy):
        # "Broken" stops at 13:00 but has no decodable start
        assert current_program(schedule, "C1", utc(12, 30), policy=utc_policy) is None


class TestNowNext:
    """Plain-data now/next summaries."""

    def test_now_next_values(self, schedule, utc_policy):
        row = now_next(schedule, "C1", utc(10, 15), policy=utc_policy)

        assert row.channel_name == "Channel One"
        assert row.current.title == "A"
        assert row.current_start == utc(10)
        assert row.current_stop == utc(11)
        assert row.next.title == "B"
        assert row.next_start == utc(11)
        assert row.progress == pytest.approx(0.25)

    def test_no_current_program(self, schedule, utc_policy):
        row = now_next(schedule, "C1", utc(9), policy=utc_policy)
        assert row.current is None
        assert row.current_start is None
        assert row.progress is None
        assert row.next.title == "A"

    def test_name_fallbacks(self, schedule, utc_policy):
        assert now_next(schedule, "GHOST", utc(10), channel_name="Ghost TV", policy=utc_policy).channel_name == "Ghost TV"
        assert now_next(schedule, "GHOST", utc(10), policy=utc_policy).channel_name == "GHOST"
        # schedule name wins over the caller's name
        assert now_next(schedule, "C2", utc(10), channel_name="Playlist Two", policy=utc_policy).channel_name == "Channel Two"

    def test_naive_now_is_read_in_policy_zone(self, schedule, utc_policy):
        row = now_next(schedule, "C1", datetime(2026, 1, 10, 10, 30), policy=utc_policy)
        assert row.current.title == "A"

    def test_default_policy_uses_local_wall_clock(self):
        """With no zone configured, naive times and timestamps share system local time."""
        data = ScheduleData(
            channels={"C": Channel("C", ("Local",))},
            programs=(Program("C", "20260110100000 +0900", "20260110110000 +0900", "Local show"),),
        )
        assert current_program(data, "C", datetime(2026, 1, 10, 10, 30)).title == "Local show"

    def test_honoring_offsets_shifts_programs(self):
        policy = TimestampPolicy(honor_utc_offset=True, timezone_name="UTC")
        data = ScheduleData(programs=(
            Program("C", "20260110100000 +0200", "20260110110000 +0200", "Shifted"),
        ))
        assert current_program(data, "C", utc(8, 30), policy=policy).title == "Shifted"
        assert current_program(data, "C", utc(10, 30), policy=policy) is None


class TestGuide:
    """Guide rows for a channel list."""

    def test_rows_follow_request_order(self, schedule, utc_policy):
        entries = [
            GuideEntry("C2", "Playlist Two"),
            GuideEntry("missing", "Missing"),
            GuideEntry("C1"),
        ]
        rows = build_guide(schedule, entries, utc(10, 30), policy=utc_policy)

        assert [row.channel_id for row in rows] == ["C2", "missing", "C1"]
        assert rows[0].current.title == "Movie"
        assert rows[1].channel_name == "Missing"
        assert rows[1].current is None and rows[1].next is None
        assert rows[2].current.title == "A"

    @pytest.mark.parametrize("tvg_id, fallback, expected", [
        ("C1", "generic", "C1"),
        (None, "generic", "generic"),
        ("   ", "generic", "generic"),
        (" C2 ", "generic", "C2"),
    ])
    def test_resolve_channel_id(self, tvg_id, fallback, expected):
        assert resolve_channel_id(tvg_id, fallback) == expected
