"""Unit tests for entries_service.py"""
from datetime import datetime, timedelta
import pytest
from promptloop.models.model_log import Environment, LogStatus
from promptloop.services.entries_service import EntriesService, entries_cache_key
from promptloop.services.exceptions import EntityNotFoundError
from promptloop.services.log_service import entries_cache_pattern
from tests.fixtures.sample_data import insert_log

@pytest.fixture
def entries_service(test_db, cache):
    return EntriesService(test_db, cache)

@pytest.fixture
def logged_entries(test_db, model):
    """3 correct, 2 incorrect and 1 errored production logs plus 1 staging log"""
    start = datetime.now() - timedelta(hours=1)
    rows = [
        {"actual": {"correct": True}, "is_correct": True},
        {"actual": {"correct": True}, "is_correct": True},
        {"actual": {"correct": True}, "is_correct": True},
        {"actual": {"correct": False}, "is_correct": False},
        {"actual": {"correct": False}, "is_correct": False},
        {"status": LogStatus.ERROR},
        {"environment": Environment.STAGING},
    ]
    return [
        insert_log(test_db, model, created_at=start + timedelta(minutes=i), **row)
        for i, row in enumerate(rows)
    ]

class TestListEntries:
    """Tests for entry filters and pagination"""

    @pytest.mark.parametrize("entry_type,total", [("all", 6), ("correct", 3), ("incorrect", 2), ("error", 1)])
    def test_filters(self, entries_service, model, logged_entries, entry_type, total):
        """Test entry type filters over production logs"""
        assert entries_service.list_entries(model.id, entry_type)["total"] == total

    def test_environment(self, entries_service, model, logged_entries):
        """Test staging logs are listed separately"""
        result = entries_service.list_entries(model.id, environment="staging")
        assert result["total"] == 1
        assert result["entries"][0]["environment"] == "staging"

    def test_pagination_newest_first(self, entries_service, model, logged_entries):
        """Test pages are ordered newest first"""
        page_one = entries_service.list_entries(model.id, page=1, page_size=4)
        page_two = entries_service.list_entries(model.id, page=2, page_size=4)

        assert page_one["entries"][0]["id"] == logged_entries[5].id
        assert len(page_one["entries"]) == 4
        assert [e["id"] for e in page_two["entries"]] == [logged_entries[1].id, logged_entries[0].id]
        assert page_two["pageSize"] == 4

    def test_invalid_type(self, entries_service, model):
        """Test unknown entry types are rejected"""
        with pytest.raises(ValueError):
            entries_service.list_entries(model.id, "pending")

    def test_unknown_model(self, entries_service):
        """Test missing models raise EntityNotFoundError"""
        with pytest.raises(EntityNotFoundError):
            entries_service.list_entries(999)

class TestEntriesCache:
    """Tests for cached entry pages"""

    def test_pages_are_cached_until_invalidated(self, entries_service, cache, test_db, model, logged_entries):
        """Test a cached page is served until the model's entries are invalidated"""
        first = entries_service.list_entries(model.id)
        assert cache.get(entries_cache_key(model.id, "all", 1, 10, "production")) == first

        insert_log(test_db, model)
        assert entries_service.list_entries(model.id)["total"] == 6

        cache.delete_pattern(entries_cache_pattern(model.id))
        assert entries_service.list_entries(model.id)["total"] == 7
