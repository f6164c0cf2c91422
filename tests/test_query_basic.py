"""
Tests for the paged discovery client: paging, retries and de-duplication.
"""

import math
from unittest.mock import patch

import pytest

from tagmigrate.discovery.query import PagedQueryClient, backoff_delay, dedupe_by_id
from tagmigrate.errors import DiscoveryError, TransientServiceError
from tagmigrate.models import ResourceRecord
from tagmigrate.providers import MemoryProvider, ResourceQuery, Scope


def make_resource(index, tags=None, subscription="sub-1"):
    name = f"vm-{index:04d}"
    return ResourceRecord(
        id=f"/subscriptions/{subscription}/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/{name}",
        name=name,
        type="Microsoft.Compute/virtualMachines",
        resource_group="rg",
        location="westeurope",
        subscription_id=subscription,
        tags=tags if tags is not None else {"Environment": "Production"},
    )


class FlakyProvider(MemoryProvider):
    """Memory provider whose page() fails a fixed number of times first."""

    def __init__(self, resources, page_failures=0, count_failures=0):
        super().__init__(resources)
        self.page_failures = page_failures
        self.count_failures = count_failures
        self.page_attempts = 0

    def count(self, query, scope):
        if self.count_failures > 0:
            self.count_failures -= 1
            raise TransientServiceError("throttled")
        return super().count(query, scope)

    def page(self, query, scope, limit, offset):
        self.page_attempts += 1
        if self.page_failures > 0:
            self.page_failures -= 1
            raise TransientServiceError("throttled")
        return super().page(query, scope, limit, offset)


class DuplicatingProvider(MemoryProvider):
    """Repeats the last record of the previous page at the start of the next."""

    def page(self, query, scope, limit, offset):
        batch = super().page(query, scope, limit, offset)
        if offset > 0:
            previous = super().page(query, scope, 1, offset - 1)
            return previous + batch[:-1]
        return batch


class TestBackoff:
    """Test the backoff schedule."""

    def test_schedule_doubles_and_caps(self):
        assert [backoff_delay(n) for n in range(1, 7)] == [0.5, 1.0, 2.0, 4.0, 8.0, 8.0]

    @patch("tagmigrate.discovery.query.time.sleep")
    def test_recovers_after_fewer_than_five_failures(self, mock_sleep):
        provider = FlakyProvider([make_resource(i) for i in range(3)], page_failures=4)
        client = PagedQueryClient(provider)

        result = client.fetch_all(ResourceQuery(), Scope.tenant(), page_size=10)

        assert len(result.resources) == 3
        assert provider.page_attempts == 5
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0, 2.0, 4.0]

    @patch("tagmigrate.discovery.query.time.sleep")
    def test_five_failures_are_terminal(self, mock_sleep):
        provider = FlakyProvider([make_resource(i) for i in range(3)], page_failures=5)
        client = PagedQueryClient(provider)

        with pytest.raises(DiscoveryError) as exc_info:
            client.fetch_all(ResourceQuery(), Scope.tenant(), page_size=10)

        assert exc_info.value.attempts == 5
        assert provider.page_attempts == 5
        assert mock_sleep.call_count == 4

    @patch("tagmigrate.discovery.query.time.sleep")
    def test_count_query_is_retried(self, mock_sleep):
        provider = FlakyProvider([make_resource(i) for i in range(2)], count_failures=2)
        client = PagedQueryClient(provider)

        assert client.count(ResourceQuery(), Scope.tenant()) == 2
        assert mock_sleep.call_count == 2


class TestPaging:
    """Test paging completeness and offsets."""

    @pytest.mark.parametrize("total,page_size", [(0, 10), (1, 10), (10, 10), (25, 10), (1001, 1000)])
    def test_page_calls_cover_total(self, total, page_size):
        provider = MemoryProvider([make_resource(i) for i in range(total)])
        client = PagedQueryClient(provider)

        result = client.fetch_all(ResourceQuery(), Scope.tenant(), page_size=page_size)

        assert len(provider.page_calls) == math.ceil(total / page_size)
        assert len(result.resources) == total
        assert len({r.id for r in result.resources}) == total
        assert provider.count_calls == 1

    def test_offsets_advance_by_page_size(self):
        provider = MemoryProvider([make_resource(i) for i in range(25)])
        PagedQueryClient(provider).fetch_all(ResourceQuery(), Scope.tenant(), page_size=10)

        assert [c["offset"] for c in provider.page_calls] == [0, 10, 20]
        assert all(c["limit"] == 10 for c in provider.page_calls)

    def test_filters_by_tag_key_type_and_scope(self):
        provider = MemoryProvider([
            make_resource(1),
            make_resource(2, tags={"Owner": "ops"}),
            make_resource(3, subscription="sub-2"),
        ])
        client = PagedQueryClient(provider)

        result = client.fetch_all(ResourceQuery(tag_key="Environment"), Scope.single("sub-1"), page_size=10)

        assert [r.name for r in result.resources] == ["vm-0001"]

    def test_shrinking_dataset_stops_on_empty_page(self):
        provider = MemoryProvider([make_resource(i) for i in range(20)])
        client = PagedQueryClient(provider)
        original_page = provider.page

        def shrinking_page(query, scope, limit, offset):
            batch = original_page(query, scope, limit, offset)
            # Resources deleted after the first page is served
            for resource_id in list(provider.resources)[5:]:
                provider.delete(resource_id)
            return batch

        provider.page = shrinking_page
        result = client.fetch_all(ResourceQuery(), Scope.tenant(), page_size=10)

        assert len(result.resources) == 10
        assert result.pages_fetched == 2

    def test_duplicates_across_pages_are_dropped(self):
        provider = DuplicatingProvider([make_resource(i) for i in range(20)])
        result = PagedQueryClient(provider).fetch_all(ResourceQuery(), Scope.tenant(), page_size=10)

        assert result.duplicates_dropped == 1
        assert len(result.resources) == 19

    def test_invalid_page_size(self):
        client = PagedQueryClient(MemoryProvider())
        with pytest.raises(ValueError):
            client.fetch_all(ResourceQuery(), Scope.tenant(), page_size=0)
        with pytest.raises(ValueError):
            client.fetch_all(ResourceQuery(), Scope.tenant(), page_size=1001)


def test_dedupe_keeps_first_occurrence():
    first = make_resource(1, tags={"a": "first"})
    second = make_resource(1, tags={"a": "second"})
    other = make_resource(2)

    unique, dropped = dedupe_by_id([first, other, second])

    assert unique == [first, other]
    assert dropped == 1
