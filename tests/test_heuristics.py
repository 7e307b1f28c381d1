"""
Tests for matching and adoption heuristics (pan123_offline/heuristics.py)
"""

import pytest

from pan123_offline.heuristics import (
    adopt_untracked_task_id,
    extract_subgroup,
    matches_task_name,
    split_extension,
)
from pan123_offline.store import SubmittedTaskRecord, TaskRecordStore


class TestSplitExtension:
    """Tests for split_extension."""

    @pytest.mark.parametrize("name,expected", [
        ("a.mkv", ("a", ".mkv")),
        ("a.sc.ass", ("a.sc", ".ass")),
        ("noext", ("noext", "")),
        (".hidden", (".hidden", "")),
        ("", ("", "")),
    ])
    def test_split(self, name, expected):
        assert split_extension(name) == expected


class TestMatchesTaskName:
    """Tests for matches_task_name."""

    def test_exact_name(self):
        assert matches_task_name("Show - 01.mkv", "Show - 01.mkv")

    def test_same_stem_other_extension(self):
        assert matches_task_name("Show - 01.mp4", "Show - 01.mkv")

    def test_subtitle_track(self):
        assert matches_task_name("Show - 01.tc.ass", "Show - 01.mkv")

    def test_folder_style_display_name(self):
        assert matches_task_name("Show - 01.mkv", "Show - 01")

    def test_unrelated_file(self):
        assert not matches_task_name("Other - 02.mkv", "Show - 01.mkv")

    def test_empty_names_never_match(self):
        assert not matches_task_name("", "Show - 01.mkv")
        assert not matches_task_name("Show - 01.mkv", "")

    def test_short_display_name_false_positive(self):
        # documented weakness: a short name matches any file containing it
        assert matches_task_name("Showcase.mkv", "Show.mkv")


class TestAdoptUntrackedTaskId:
    """Tests for adopting the newest untracked task."""

    def test_first_untracked_id(self):
        records = TaskRecordStore()
        records.put(SubmittedTaskRecord("3", "/", "a"))
        assert adopt_untracked_task_id(["3", "2", "1"], records) == "2"

    def test_all_tracked(self):
        records = TaskRecordStore()
        records.put(SubmittedTaskRecord("1", "/", "a"))
        assert adopt_untracked_task_id(["1"], records) is None

    def test_empty_listing(self):
        assert adopt_untracked_task_id([], TaskRecordStore()) is None


class TestExtractSubgroup:
    """Tests for extract_subgroup."""

    @pytest.mark.parametrize("name,expected", [
        ("[Group] Show - 01.mkv", "Group"),
        ("【字幕组】Show - 01.mkv", "字幕组"),
        ("Show - 01.mkv", None),
        ("[ ] Show", None),
        ("", None),
        (None, None),
    ])
    def test_extract(self, name, expected):
        assert extract_subgroup(name) == expected
