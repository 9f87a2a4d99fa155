"""Tests for RequestCoalescer."""

from __future__ import annotations

import asyncio

import pytest

from docrank.recommend.coalescer import RequestCoalescer


class Recorder:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple] = []
        self.fail = fail

    async def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("compute failed")
        return f"result:{args[0]}"


class TestRequestCoalescer:
    """Tests for burst coalescing."""

    @pytest.mark.asyncio
    async def test_single_call(self) -> None:
        recorder = Recorder()
        coalescer = RequestCoalescer(recorder, window=0.01)
        assert await coalescer.submit("a") == "result:a"
        assert recorder.calls == [(("a",), {})]

    @pytest.mark.asyncio
    async def test_burst_runs_once_with_latest_arguments(self) -> None:
        """Should compute once and hand every caller the latest result."""
        recorder = Recorder()
        coalescer = RequestCoalescer(recorder, window=0.05)

        results = await asyncio.gather(
            coalescer.submit("first"),
            coalescer.submit("second"),
            coalescer.submit("third", full=True),
        )

        assert results == ["result:third"] * 3
        assert recorder.calls == [(("third",), {"full": True})]
        assert coalescer.pending == 0

    @pytest.mark.asyncio
    async def test_separate_bursts_compute_separately(self) -> None:
        recorder = Recorder()
        coalescer = RequestCoalescer(recorder, window=0.01)

        assert await coalescer.submit("one") == "result:one"
        assert await coalescer.submit("two") == "result:two"
        assert len(recorder.calls) == 2

    @pytest.mark.asyncio
    async def test_errors_reach_every_caller(self) -> None:
        coalescer = RequestCoalescer(Recorder(fail=True), window=0.01)
        results = await asyncio.gather(
            coalescer.submit("a"), coalescer.submit("b"), return_exceptions=True
        )
        assert all(isinstance(result, RuntimeError) for result in results)

    @pytest.mark.asyncio
    async def test_recovers_after_error(self) -> None:
        recorder = Recorder(fail=True)
        coalescer = RequestCoalescer(recorder, window=0.0)
        with pytest.raises(RuntimeError):
            await coalescer.submit("a")
        recorder.fail = False
        assert await coalescer.submit("b") == "result:b"

    def test_negative_window_clamped(self) -> None:
        assert RequestCoalescer(Recorder(), window=-1).window == 0.0
