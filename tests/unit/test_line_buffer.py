"""Tests for the ring-buffer of terminal lines."""

from __future__ import annotations

import threading

import pytest

from termsight.context.buffer import LineBuffer


class TestLineBuffer:
    def test_empty_buffer_returns_empty_list(self) -> None:
        buf = LineBuffer(5)
        assert buf.last_n(3) == []
        assert buf.is_empty
        assert len(buf) == 0

    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            LineBuffer(0)

    def test_overflow_evicts_oldest(self) -> None:
        buf = LineBuffer(3)
        for line in ["a", "b", "c", "d"]:
            buf.append(line)
        assert buf.last_n(10) == ["b", "c", "d"]
        assert len(buf) == 3

    def test_last_n_returns_newest_oldest_first(self) -> None:
        buf = LineBuffer(10)
        buf.extend(["one", "two", "three", "four"])
        assert buf.last_n(2) == ["three", "four"]

    @pytest.mark.parametrize("k", [0, -1, 50])
    def test_out_of_range_k_means_everything(self, k: int) -> None:
        buf = LineBuffer(10)
        buf.extend(["a", "b", "c"])
        assert buf.last_n(k) == ["a", "b", "c"]

    def test_last_capacity_equals_last_appended_after_many_wraps(self) -> None:
        capacity = 7
        buf = LineBuffer(capacity)
        lines = [f"line {i}" for i in range(53)]
        buf.extend(lines)
        assert buf.last_n(capacity) == lines[-capacity:]

    def test_clear_keeps_capacity(self) -> None:
        buf = LineBuffer(4)
        buf.extend(["a", "b", "c", "d", "e"])
        buf.clear()
        assert buf.to_list() == []
        assert buf.capacity == 4
        buf.append("z")
        assert buf.to_list() == ["z"]

    def test_total_characters(self) -> None:
        buf = LineBuffer(3)
        buf.extend(["ab", "cde", "f"])
        assert buf.total_characters() == 6


class TestLineBufferConcurrency:
    def test_concurrent_writers_lose_no_lines(self) -> None:
        buf = LineBuffer(10_000)
        per_thread = 1000

        def writer(tag: int) -> None:
            for i in range(per_thread):
                buf.append(f"{tag}:{i}")

        threads = [threading.Thread(target=writer, args=(t,)) for t in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        lines = buf.to_list()
        assert len(lines) == 4 * per_thread
        for tag in range(4):
            own = [int(line.split(":")[1]) for line in lines if line.startswith(f"{tag}:")]
            assert own == list(range(per_thread))

    def test_reader_sees_consistent_suffix_while_writing(self) -> None:
        buf = LineBuffer(50)
        stop = threading.Event()
        errors: list[str] = []

        def writer() -> None:
            i = 0
            while not stop.is_set():
                buf.append(str(i))
                i += 1

        def reader() -> None:
            for _ in range(2000):
                snapshot = [int(x) for x in buf.last_n(20)]
                if snapshot and snapshot != list(range(snapshot[0], snapshot[0] + len(snapshot))):
                    errors.append(repr(snapshot))

        w = threading.Thread(target=writer)
        w.start()
        try:
            reader()
        finally:
            stop.set()
            w.join()
        assert errors == []
