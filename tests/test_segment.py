"""
Tests for failure block segmentation.
"""

import itertools

import pytest

from failure_blocks import (
    BLOCK_STATUS,
    UNCLOSED_BLOCK_STATUS,
    FailureBlock,
    OpenBlock,
    RowLayout,
    segment,
    step,
)

# Rows in these tests are (time, status, date)
LAYOUT = RowLayout(time_index=0, status_index=1, date_index=2, date_default="-")


def _rows(*pairs, date="01-01-2024"):
    return [(time, status, date) for time, status in pairs]


def _failure_runs(statuses):
    return sum(1 for key, _ in itertools.groupby(statuses) if key == "Failure")


def test_run_between_ok_rows_is_one_block():
    rows = _rows(("08:00", "OK"), ("08:05", "Failure"), ("08:10", "Failure"), ("08:15", "OK"))

    assert segment(rows, LAYOUT) == [
        FailureBlock(status=BLOCK_STATUS, date="01-01-2024", start_time="08:05", end_time="08:10")
    ]


def test_single_unclosed_failure_row():
    blocks = segment(_rows(("08:00", "Failure")), LAYOUT)

    assert blocks == [
        FailureBlock(status=UNCLOSED_BLOCK_STATUS, date="01-01-2024", start_time="08:00", end_time="08:00")
    ]


def test_no_failure_rows_gives_no_blocks():
    rows = _rows(("08:00", "OK"), ("08:05", "warning"), ("08:10", ""))
    assert segment(rows, LAYOUT) == []


def test_empty_input():
    assert segment([], LAYOUT) == []


def test_only_trailing_block_is_marked_unclosed():
    rows = _rows(
        ("01", "failure"),
        ("02", "ok"),
        ("03", "failure"),
        ("04", "failure"),
        ("05", "ok"),
        ("06", "failure"),
    )

    blocks = segment(rows, LAYOUT)

    assert [b.status for b in blocks] == [BLOCK_STATUS, BLOCK_STATUS, UNCLOSED_BLOCK_STATUS]
    assert [(b.start_time, b.end_time) for b in blocks] == [("01", "01"), ("03", "04"), ("06", "06")]


@pytest.mark.parametrize(
    "statuses",
    [
        ["OK", "Failure", "OK", "Failure", "Failure", "OK"],
        ["Failure", "Failure", "Failure"],
        ["OK", "OK"],
        ["Failure", "OK", "Failure", "OK", "Failure"],
        ["Failure", "", "Failure"],
    ],
)
def test_block_count_matches_failure_runs(statuses):
    rows = [(str(i), status, "d") for i, status in enumerate(statuses)]
    assert len(segment(rows, LAYOUT)) == _failure_runs(statuses)


def test_status_is_case_and_whitespace_insensitive():
    rows = _rows(("1", "  FAILURE "), ("2", "Failure"), ("3", "ok"))

    blocks = segment(rows, LAYOUT)

    assert len(blocks) == 1
    assert blocks[0].start_time == "1"
    assert blocks[0].end_time == "2"


def test_identical_timestamps_are_still_merged():
    rows = _rows(("08:00", "Failure"), ("08:00", "Failure"), ("08:00", "Failure"), ("08:01", "OK"))

    assert segment(rows, LAYOUT) == [
        FailureBlock(status=BLOCK_STATUS, date="01-01-2024", start_time="08:00", end_time="08:00")
    ]


def test_row_without_status_terminates_a_run():
    rows = [("1", "failure", "d"), ("2",), ("3", "failure", "d")]

    blocks = segment(rows, LAYOUT)

    assert [b.status for b in blocks] == [BLOCK_STATUS, UNCLOSED_BLOCK_STATUS]


def test_block_keeps_date_of_first_row():
    rows = [("23:59", "failure", "01-01-2024"), ("00:01", "failure", "02-01-2024")]

    (block,) = segment(rows, LAYOUT)

    assert block.date == "01-01-2024"
    assert block.end_time == "00:01"


def test_missing_date_uses_layout_default():
    (block,) = segment([("08:00", "failure", "")], LAYOUT)
    assert block.date == "-"


def test_segmenting_twice_is_identical():
    rows = _rows(("1", "failure"), ("2", "ok"), ("3", "failure"))
    assert segment(rows, LAYOUT) == segment(rows, LAYOUT)


def test_accepts_generator_input():
    rows = (row for row in _rows(("1", "failure"), ("2", "ok")))
    assert len(segment(rows, LAYOUT)) == 1


def test_mapping_rows_with_named_layout():
    layout = RowLayout(time_index="time", status_index="status", date_index="date")
    rows = [
        {"time": "10:00", "status": "Failure", "date": "05-05-2024"},
        {"time": "10:01", "status": "OK", "date": "05-05-2024"},
    ]

    assert segment(rows, layout) == [
        FailureBlock(status=BLOCK_STATUS, date="05-05-2024", start_time="10:00", end_time="10:00")
    ]


class TestStep:
    def test_opens_block_on_first_failure(self):
        open_block, finished = step(None, "d", "t1", "failure")
        assert open_block == OpenBlock(start_time="t1", end_time="t1", date="d")
        assert finished is None

    def test_extends_open_block(self):
        open_block, finished = step(OpenBlock("t1", "t1", "d"), "other", "t2", "failure")
        assert open_block == OpenBlock(start_time="t1", end_time="t2", date="d")
        assert finished is None

    def test_closes_open_block(self):
        open_block, finished = step(OpenBlock("t1", "t2", "d"), "d", "t3", "ok")
        assert open_block is None
        assert finished == FailureBlock(BLOCK_STATUS, "d", "t1", "t2")

    def test_non_failure_without_open_block_is_noop(self):
        assert step(None, "d", "t", "ok") == (None, None)
