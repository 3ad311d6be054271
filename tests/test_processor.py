"""
Aggregation and ranking tests.
"""

from conftest import make_hb

from heartbeat_tracker.models import TimedHeartbeat
from heartbeat_tracker.processor import (
    MINIMUM_DISPLAY_SECONDS,
    NO_FILE,
    NO_LANGUAGE,
    NO_PROJECT,
    file_key,
    filter_by_range,
    group_duration_by,
    language_key,
    project_key,
    sum_in_range,
    to_folder_and_file,
    to_safe_label,
    top_one,
    top_ranked,
    truncate_middle,
    upper_language_key,
)


def timed(timestamp, seconds, **kwargs):
    return TimedHeartbeat.from_heartbeat(make_hb(timestamp, **kwargs), seconds)


def test_sum_in_range_is_half_open():
    beats = [timed(10, 5), timed(20, 7), timed(30, 11)]
    assert sum_in_range(beats, 10_000, 30_000) == 12
    assert sum_in_range(beats, 10_001, 30_001) == 18
    assert sum_in_range(beats, 0, 10_000) == 0


def test_sum_in_range_splits_without_double_counting():
    beats = [timed(t, t % 7 + 1) for t in range(0, 100, 5)]
    a, b, c = 0, 45_000, 100_000
    assert sum_in_range(beats, a, b) + sum_in_range(beats, b, c) == sum_in_range(
        beats, a, c
    )


def test_filter_by_range_returns_subset_in_order():
    beats = [timed(10, 5), timed(20, 7), timed(30, 11)]
    assert [b.timestamp for b in filter_by_range(beats, 15_000, 40_000)] == [20, 30]


def test_group_by_project_with_fallback():
    beats = [
        timed(1, 30, project="A"),
        timed(2, 40, project="A"),
        timed(3, 500, project="B"),
        timed(4, 20, project="  "),
    ]
    assert group_duration_by(beats, project_key) == {
        "A": 70,
        "B": 500,
        NO_PROJECT: 20,
    }


def test_top_ranked_applies_floor_and_limit():
    grouped = {"A": 70, "B": 500}
    assert [(i.label, i.seconds) for i in top_ranked(grouped, 1, minimum_seconds=100)] == [
        ("B", 500)
    ]
    assert [i.label for i in top_ranked(grouped, 5, minimum_seconds=100)] == ["B"]


def test_top_ranked_bounds():
    grouped = {f"k{i}": i * 13 for i in range(20)}
    ranked = top_ranked(grouped, 4)
    assert len(ranked) <= 4
    assert all(item.seconds >= MINIMUM_DISPLAY_SECONDS for item in ranked)
    assert [item.seconds for item in ranked] == sorted(
        (item.seconds for item in ranked), reverse=True
    )


def test_top_ranked_ties_keep_first_seen_order():
    grouped = {"z": 120, "a": 300, "m": 120}
    assert [i.label for i in top_ranked(grouped, 3)] == ["a", "z", "m"]


def test_top_one():
    assert top_one({}) is None
    assert top_one({"short": MINIMUM_DISPLAY_SECONDS - 1}) is None
    assert top_one({"x": 61, "y": 90}).label == "y"


def test_to_safe_label():
    assert to_safe_label(None, "fallback") == "fallback"
    assert to_safe_label("   ", "fallback") == "fallback"
    assert to_safe_label(" py ", "fallback") == "py"


def test_to_folder_and_file():
    assert to_folder_and_file("a/b/c/file.py") == "c/file.py"
    assert to_folder_and_file("C:\\work\\src\\main.rs") == "src/main.rs"
    assert to_folder_and_file("file.py") == "file.py"
    assert to_folder_and_file("//") == NO_FILE


def test_truncate_middle():
    assert truncate_middle("short", 10) == "short"
    shortened = truncate_middle("abcdefghijklmnopqrstuvwxyz", 11)
    assert shortened == "abcd...wxyz"
    assert len(shortened) == 11
    assert truncate_middle("abcdefghij", 8) == "ab...hij"


def test_key_functions():
    hb = timed(1, 60, language="", file_path="", project="", branch="")
    assert language_key(hb) == NO_LANGUAGE
    assert upper_language_key(timed(1, 60, language="py")) == "PY"
    assert file_key(hb) == NO_FILE
    assert file_key(timed(1, 60, file_path="x/y/z.go")) == "y/z.go"
