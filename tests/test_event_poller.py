"""Unit tests for the periodic vendor poller."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from gym_access.services.event_poller import poll_branch
from gym_access.services.event_ingestor import FetchResult


class TestEventPoller:
    @pytest.mark.asyncio
    async def test_new_events_queue_processing(self):
        db = MagicMock()
        with patch("gym_access.services.event_poller.ingest_from_fetch", new_callable=AsyncMock,
                   return_value=FetchResult(success=True, fetched=5, stored=2)), \
             patch("gym_access.services.event_poller.enqueue_processing") as mock_enqueue:
            ok = await poll_branch(db, "b-1")

        assert ok
        mock_enqueue.assert_called_once_with(db, "b-1", "poll", delay_seconds=0)

    @pytest.mark.asyncio
    async def test_nothing_new_nothing_queued(self):
        db = MagicMock()
        with patch("gym_access.services.event_poller.ingest_from_fetch", new_callable=AsyncMock,
                   return_value=FetchResult(success=True, fetched=5, stored=0)), \
             patch("gym_access.services.event_poller.enqueue_processing") as mock_enqueue:
            assert await poll_branch(db, "b-1")

        mock_enqueue.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_failure_reported(self):
        db = MagicMock()
        with patch("gym_access.services.event_poller.ingest_from_fetch", new_callable=AsyncMock,
                   return_value=FetchResult(success=False, message="offline")), \
             patch("gym_access.services.event_poller.enqueue_processing") as mock_enqueue:
            assert not await poll_branch(db, "b-1")

        mock_enqueue.assert_not_called()
