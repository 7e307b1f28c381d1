"""
Tests for folder path resolution (pan123_offline/folders.py)
"""

import pytest

from pan123_offline.exceptions import ConsistencyError, TransportError
from pan123_offline.folders import FolderResolver, created_folder_id, split_path


@pytest.fixture
def resolver(logged_in_api):
    return FolderResolver(logged_in_api, page_size=100, settle_delay=0)


class TestSplitPath:
    """Tests for split_path."""

    @pytest.mark.parametrize("path", [None, "", "/", "//", "  ", " / "])
    def test_root_like_paths(self, path):
        assert split_path(path) == []

    def test_nested_path(self):
        assert split_path("/Show/S1/") == ["Show", "S1"]

    def test_duplicate_slashes_ignored(self):
        assert split_path("Show//S1") == ["Show", "S1"]


class TestCreatedFolderId:
    """Tests for reading the id out of a creation response."""

    def test_nested_info(self):
        assert created_folder_id({"Info": {"FileId": 12}}) == 12

    def test_flat_response(self):
        assert created_folder_id({"FileId": 12}) == 12

    @pytest.mark.parametrize("data", [{}, None, {"Info": {}}, {"FileId": 0}, {"FileId": "x"}])
    def test_missing_id(self, data):
        assert created_folder_id(data) is None


class TestResolveOrCreate:
    """Tests for FolderResolver.resolve_or_create."""

    @pytest.mark.asyncio
    async def test_root_needs_no_remote_call(self, resolver, logged_in_api):
        assert await resolver.resolve_or_create("/") == 0
        assert await resolver.resolve_or_create("") == 0
        assert logged_in_api.calls == []

    @pytest.mark.asyncio
    async def test_existing_path_is_found(self, resolver, logged_in_api):
        show = logged_in_api.add_folder(0, "Show")
        season = logged_in_api.add_folder(show, "S1")

        assert await resolver.resolve_or_create("/Show/S1") == season
        assert logged_in_api.calls_to("create_directory") == []

    @pytest.mark.asyncio
    async def test_missing_segments_are_created(self, resolver, logged_in_api):
        show = logged_in_api.add_folder(0, "Show")

        folder_id = await resolver.resolve_or_create("/Show/S1")

        assert logged_in_api.entries[folder_id]["FileName"] == "S1"
        assert logged_in_api.entries[folder_id]["ParentFileId"] == show
        assert logged_in_api.calls_to("create_directory") == [("create_directory", show, "S1")]

    @pytest.mark.asyncio
    async def test_idempotent(self, resolver, logged_in_api):
        first = await resolver.resolve_or_create("/Show/S1")
        second = await resolver.resolve_or_create("/Show/S1")

        assert first == second
        assert len(logged_in_api.calls_to("create_directory")) == 2

    @pytest.mark.asyncio
    async def test_file_with_same_name_is_not_a_folder(self, resolver, logged_in_api):
        logged_in_api.add_file(0, "Show")

        folder_id = await resolver.resolve_or_create("/Show")

        assert logged_in_api.entries[folder_id]["Type"] == 1

    @pytest.mark.asyncio
    async def test_created_without_id_is_looked_up(self, resolver, logged_in_api):
        logged_in_api.create_returns_id = False

        folder_id = await resolver.resolve_or_create("/Show")

        assert logged_in_api.entries[folder_id]["FileName"] == "Show"
        # listed once before creation and once after
        assert len(logged_in_api.calls_to("list_files")) == 2

    @pytest.mark.asyncio
    async def test_invisible_after_creation_raises(self, logged_in_api):
        resolver = FolderResolver(logged_in_api, settle_delay=0)
        logged_in_api.create_returns_id = False

        async def never_visible(parent_id, name):
            logged_in_api.calls.append(("create_directory", parent_id, name))
            return {}

        logged_in_api.create_directory = never_visible

        with pytest.raises(ConsistencyError) as excinfo:
            await resolver.resolve_or_create("/Show")
        assert excinfo.value.name == "Show"
        assert excinfo.value.parent_id == 0

    @pytest.mark.asyncio
    async def test_listing_failure_propagates_without_creating(self, resolver, logged_in_api):
        logged_in_api.fail["list_files"] = TransportError("HTTP 500: Server Error", status=500)

        with pytest.raises(TransportError):
            await resolver.resolve_or_create("/Show")
        assert logged_in_api.calls_to("create_directory") == []
