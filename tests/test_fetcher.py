"""Tests for ProviderDataFetcher."""

import asyncio
from typing import List

import pytest

from seahorse.models.schemas import ProgressReport
from seahorse.rag.ingestion import DocumentChunker, ProviderDataFetcher
from seahorse.services.registry import InMemoryProviderRegistry

from conftest import FailingRegistry, PartiallyFailingRegistry, make_provider


class SlowRegistry(InMemoryProviderRegistry):
    async def get_provider_data(self, provider_id: str):
        await asyncio.sleep(1)
        return []


@pytest.fixture
def reports() -> List[ProgressReport]:
    return []


class TestFetchAll:
    """Document assembly and progress reporting."""

    async def test_builds_documents_in_provider_then_item_order(self, two_provider_registry, reports) -> None:
        fetcher = ProviderDataFetcher(two_provider_registry, timeout=5)

        documents = await fetcher.fetch_all(reports.append)

        assert [d.id for d in documents] == ["P1:i0", "P1:i1", "P1:i2", "P2:j0", "P2:j1"]
        first = documents[0]
        assert first.metadata["source"] == "provider"
        assert first.metadata["providerId"] == "P1"
        assert first.metadata["providerName"] == "Provider P1"
        assert first.metadata["itemId"] == "i0"
        assert first.metadata["type"] == "document"
        assert first.metadata["timestamp"]

    async def test_five_items_make_five_chunks(self, two_provider_registry) -> None:
        documents = await ProviderDataFetcher(two_provider_registry).fetch_all()

        chunks = DocumentChunker(chunk_size=500, chunk_overlap=50).split(documents)

        assert len(chunks) == 5

    async def test_reports_total_then_completion(self, two_provider_registry, reports) -> None:
        await ProviderDataFetcher(two_provider_registry).fetch_all(reports.append)

        sizing, final = reports
        assert sizing.rag_update.total == 5
        assert sizing.rag_update.completed == 0
        assert sizing.rag_update.in_progress == 5
        assert final.rag_update.completed == 5
        assert final.rag_update.error == 0
        assert final.to_dict()["ragUpdate"]["inProgress"] == 0

    async def test_accepts_async_callback(self, two_provider_registry) -> None:
        received = []

        async def callback(report: ProgressReport) -> None:
            received.append(report)

        await ProviderDataFetcher(two_provider_registry).fetch_all(callback)

        assert len(received) == 2

    async def test_partial_failure_skips_provider(self, reports) -> None:
        registry = PartiallyFailingRegistry(
            [make_provider("P1"), make_provider("P2")],
            {"P1": [{"id": "1", "content": "kept"}], "P2": [{"id": "2", "content": "lost"}]},
            failing=["P2"],
        )

        documents = await ProviderDataFetcher(registry).fetch_all(reports.append)

        assert [d.id for d in documents] == ["P1:1"]
        assert reports[-1].rag_update.error >= 1
        assert reports[-1].rag_update.completed == 1

    async def test_registry_down_returns_nothing(self, reports) -> None:
        documents = await ProviderDataFetcher(FailingRegistry()).fetch_all(reports.append)

        assert documents == []
        assert len(reports) == 1
        assert reports[0].message == "Error loading provider data"
        assert reports[0].rag_update.error == 1

    async def test_no_providers_reports_nothing(self, reports) -> None:
        documents = await ProviderDataFetcher(InMemoryProviderRegistry()).fetch_all(reports.append)

        assert documents == []
        assert reports == []

    async def test_providers_without_items_skip_sizing_report(self, reports) -> None:
        registry = InMemoryProviderRegistry([make_provider("P1")], {"P1": []})

        documents = await ProviderDataFetcher(registry).fetch_all(reports.append)

        assert documents == []
        assert [r.message for r in reports] == ["Provider data loaded"]

    async def test_malformed_items_are_rejected(self, reports) -> None:
        registry = InMemoryProviderRegistry(
            [make_provider("P1"), {"id": "bad", "name": "No score"}],
            {
                "P1": [
                    {"id": "1", "content": "valid"},
                    {"id": "2", "content": {"nested": True}},
                    {"content": "missing id"},
                    {"id": 3, "content": "numeric id"},
                ]
            },
        )

        documents = await ProviderDataFetcher(registry).fetch_all(reports.append)

        assert [d.id for d in documents] == ["P1:1", "P1:3"]
        assert reports[-1].rag_update.error == 3

    async def test_provider_with_invalid_score_counts_as_error(self, reports) -> None:
        registry = InMemoryProviderRegistry(
            [make_provider("P1"), make_provider("P2", score=0)],
            {
                "P1": [{"id": "1", "content": "kept"}],
                "P2": [{"id": "1", "content": "never fetched"}],
            },
        )

        documents = await ProviderDataFetcher(registry).fetch_all(reports.append)

        assert [d.id for d in documents] == ["P1:1"]
        assert reports[-1].rag_update.error == 1
        assert reports[-1].rag_update.completed == 1

    async def test_only_malformed_providers_still_reports_errors(self, reports) -> None:
        registry = InMemoryProviderRegistry([{"id": "bad", "name": "No score"}], {})

        documents = await ProviderDataFetcher(registry).fetch_all(reports.append)

        assert documents == []
        assert reports[-1].rag_update.error == 1

    async def test_slow_provider_times_out(self, reports) -> None:
        registry = SlowRegistry([make_provider("P1")], {})

        documents = await ProviderDataFetcher(registry, timeout=0.05).fetch_all(reports.append)

        assert documents == []
        assert reports[-1].rag_update.error == 1
