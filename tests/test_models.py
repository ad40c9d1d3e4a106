"""
Tests for log entry and search result models
"""

import dataclasses

import pytest

from k8slogs.models import LogEntry, LogSearchResult, SearchTarget


def _entry(message="Test message", level="INFO"):
    return LogEntry(
        timestamp="2024-12-26T10:23:45.123456789Z",
        level=level,
        message=message,
        raw=f"2024-12-26T10:23:45.123456789Z {message}",
        is_structured=False,
        pod_name="test-pod",
        container_name="test-container"
    )


class TestLogEntry:
    """Test log entry functionality"""

    def test_log_entry_to_dict(self):
        """Test converting log entry to dictionary"""
        data = _entry().to_dict()

        assert data == {
            'timestamp': "2024-12-26T10:23:45.123456789Z",
            'level': "INFO",
            'message': "Test message",
            'raw': "2024-12-26T10:23:45.123456789Z Test message",
            'is_json': False,
            'pod_name': "test-pod",
            'container_name': "test-container"
        }

    def test_log_entry_is_immutable(self):
        """Test that entries cannot be changed after construction"""
        entry = _entry()
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.message = "changed"


class TestLogSearchResult:
    """Test search result functionality"""

    def test_total_matches(self):
        result = LogSearchResult("test-pod", "test-container", (_entry("a"), _entry("b")))
        assert result.total_matches == 2

    def test_to_dict(self):
        result = LogSearchResult("test-pod", "test-container", (_entry("a", level=None),))
        data = result.to_dict()

        assert data['pod_name'] == "test-pod"
        assert data['container_name'] == "test-container"
        assert data['total_matches'] == 1
        assert data['entries'][0]['message'] == "a"
        assert data['entries'][0]['level'] is None


class TestSearchTarget:
    """Test search target description"""

    def test_describe(self):
        assert SearchTarget("prod", deployment="web").describe() == "deployment/web"
        assert SearchTarget("prod", selector="app=web").describe() == "selector/app=web"
        assert SearchTarget("prod", selector="").describe() == "selector/<all>"
