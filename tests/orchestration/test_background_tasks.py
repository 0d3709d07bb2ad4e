"""
Tests for the docchat.orchestration.background module.
"""

import asyncio
import logging

import pytest

from docchat.orchestration.background import BackgroundTasks


class TestBackgroundTasks:
    """Tests for BackgroundTasks."""

    @pytest.mark.asyncio
    async def test_drain_waits_for_keyed_tasks(self):
        tasks = BackgroundTasks()
        done = []

        async def work(name):
            await asyncio.sleep(0)
            done.append(name)

        tasks.spawn("s1", work("a"), description="a")
        tasks.spawn("s1", work("b"), description="b")
        assert tasks.pending("s1") == 2

        assert await tasks.drain("s1", timeout=1.0) is True
        assert sorted(done) == ["a", "b"]
        assert tasks.pending("s1") == 0

    @pytest.mark.asyncio
    async def test_drain_unknown_key(self):
        assert await BackgroundTasks().drain("nobody", timeout=0.1) is True

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, caplog):
        tasks = BackgroundTasks()

        async def broken():
            raise RuntimeError("agent update rejected")

        with caplog.at_level(logging.ERROR, logger="docchat.orchestration.background"):
            tasks.spawn("s1", broken(), description="attach vector store V1")
            assert await tasks.drain("s1", timeout=1.0) is True

        assert "attach vector store V1" in caplog.text
        assert "agent update rejected" in caplog.text
        assert tasks.pending("s1") == 0

    @pytest.mark.asyncio
    async def test_drain_timeout(self):
        tasks = BackgroundTasks()
        never = asyncio.Event()

        tasks.spawn("s1", never.wait(), description="stuck")

        assert await tasks.drain("s1", timeout=0.01) is False
        assert tasks.pending("s1") == 1

        await tasks.shutdown()
        assert tasks.pending("s1") == 0

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        tasks = BackgroundTasks()
        never = asyncio.Event()

        tasks.spawn("s1", never.wait(), description="stuck")

        assert await tasks.drain("s2", timeout=0.01) is True
        await tasks.shutdown()
