"""Tests for the context engine: feed, caching, settings and statistics."""

from __future__ import annotations

import threading

import pytest

from termsight.config import ContextConfig
from termsight.context.cache import MemoryContextCache, NullContextCache
from termsight.context.engine import ContextEngine
from termsight.context.policy import SizingMode, SizingPolicy
from termsight.context.protocols import IContextProvider
from termsight.exceptions import ConfigurationError
from tests.fakes.fake_clock import FakeClock


class TestFeed:
    def test_get_context_joins_lines(self, engine: ContextEngine) -> None:
        engine.add_lines(["$ ls", "a.txt  b.txt"])
        assert engine.get_context() == "$ ls\na.txt  b.txt"

    def test_blank_lines_are_skipped(self, engine: ContextEngine) -> None:
        engine.add_line("")
        engine.add_line("   ")
        engine.add_line("real")
        assert engine.line_count == 1

    def test_get_context_limits_lines(self, engine: ContextEngine) -> None:
        engine.add_lines([f"l{i}" for i in range(20)])
        assert engine.get_context(3) == "l17\nl18\nl19"

    def test_empty_engine(self, engine: ContextEngine) -> None:
        assert engine.get_context() == ""
        assert engine.get_estimated_token_count() == 0

    def test_clear(self, engine: ContextEngine) -> None:
        engine.add_lines(["a", "b"])
        engine.get_context()
        engine.clear()
        assert engine.get_context() == ""
        assert engine.line_count == 0

    def test_estimated_tokens(self, engine: ContextEngine) -> None:
        engine.add_line("x" * 40)
        assert engine.get_estimated_token_count() == 10


class TestCaching:
    def test_second_read_is_cache_hit(self, engine: ContextEngine) -> None:
        engine.add_lines(["a", "b"])
        first = engine.get_context(10)
        second = engine.get_context(10)
        assert first == second
        assert engine.cache.hit_count == 1
        assert engine.cache.miss_count == 1

    def test_add_line_invalidates(self, engine: ContextEngine) -> None:
        engine.add_line("a")
        assert engine.get_context() == "a"
        engine.add_line("b")
        assert engine.get_context() == "a\nb"
        assert engine.cache.hit_count == 0

    def test_distinct_line_counts_use_distinct_keys(self, engine: ContextEngine) -> None:
        engine.add_lines(["a", "b", "c"])
        assert engine.get_context(1) == "c"
        assert engine.get_context(2) == "b\nc"
        assert len(engine.cache) == 2

    def test_disable_cache_swaps_to_null(self, engine: ContextEngine) -> None:
        engine.set_cache_enabled(False)
        assert isinstance(engine.cache, NullContextCache)
        assert engine.is_cache_enabled() is False
        engine.add_line("a")
        assert engine.get_context() == "a"
        assert engine.get_context() == "a"

    def test_reenable_cache(self, engine: ContextEngine) -> None:
        engine.set_cache_enabled(False)
        engine.set_cache_enabled(True)
        assert isinstance(engine.cache, MemoryContextCache)

    def test_concurrent_feed_never_leaves_stale_context(self, engine: ContextEngine) -> None:
        done = threading.Event()

        def feed() -> None:
            for i in range(500):
                engine.add_line(f"line {i}")
            done.set()

        writer = threading.Thread(target=feed)
        writer.start()
        while not done.is_set():
            engine.get_context(5)
        writer.join()
        assert engine.get_context(5).splitlines()[-1] == "line 499"


class TestSettings:
    def test_set_max_lines(self, engine: ContextEngine) -> None:
        engine.add_lines([f"l{i}" for i in range(30)])
        engine.set_max_lines(12)
        assert engine.max_lines == 12
        assert len(engine.get_context().splitlines()) == 12

    def test_set_max_lines_below_minimum_raises(self, engine: ContextEngine) -> None:
        with pytest.raises(ConfigurationError, match="at least 10"):
            engine.set_max_lines(5)
        assert engine.max_lines == 100

    def test_constructor_rejects_max_below_min(self) -> None:
        with pytest.raises(ConfigurationError):
            ContextEngine(ContextConfig(max_lines=5, min_lines=10))

    def test_update_policy_rejects_invalid_and_keeps_old(self, engine: ContextEngine) -> None:
        before = engine.policy
        with pytest.raises(ConfigurationError, match="MaxTokens must be >= MinTokens"):
            engine.update_policy(SizingPolicy(max_tokens=50, min_tokens=100))
        assert engine.policy is before

    def test_update_policy_keeps_model(self, engine: ContextEngine) -> None:
        engine.set_model("gpt-4", 128_000)
        engine.update_policy(SizingPolicy(mode=SizingMode.AUTO))
        assert engine.model == "gpt-4"
        assert engine.target_size() == 8192

    def test_set_percentage(self, engine: ContextEngine) -> None:
        engine.set_percentage(0.25)
        assert engine.policy.mode is SizingMode.PERCENTAGE
        assert engine.target_size() == 1024

    def test_set_model_rejects_non_positive_context(self, engine: ContextEngine) -> None:
        with pytest.raises(ConfigurationError):
            engine.set_model("gpt-4", 0)

    def test_effective_max_capped_by_policy_max_tokens(self, engine: ContextEngine) -> None:
        engine.update_policy(SizingPolicy(mode=SizingMode.FIXED, fixed_size=3000, max_tokens=0, min_tokens=0))
        assert engine.effective_max() == 3000
        engine.update_policy(SizingPolicy(mode=SizingMode.FIXED, fixed_size=3000, max_tokens=1500))
        assert engine.effective_max() == 1500

    def test_satisfies_context_provider_protocol(self, engine: ContextEngine) -> None:
        assert isinstance(engine, IContextProvider)


class TestStatistics:
    def test_statistics(self, context_config: ContextConfig) -> None:
        clock = FakeClock()
        eng = ContextEngine(context_config, clock=clock)
        clock.advance(5)
        eng.add_line("x" * 8)
        clock.advance(3)
        eng.get_context()
        eng.get_context()

        stats = eng.statistics()
        assert stats.line_count == 1
        assert stats.token_count == 2
        assert stats.cache_hit_count == 2
        assert stats.cache_miss_count == 1
        assert stats.session_duration == 8
        assert stats.idle_time == 3

    def test_snapshot_has_header(self, engine: ContextEngine) -> None:
        engine.add_line("$ whoami")
        snap = engine.snapshot()
        assert "] Context Snapshot:\n$ whoami" in snap
        assert snap.startswith("[")


class TestWorkingDirectory:
    def test_feed_updates_directory(self, engine: ContextEngine) -> None:
        engine.add_line("alice@devbox:/srv/app$ cd build")
        engine.add_lines(["make: Nothing to be done", "alice@devbox:/srv/app/build$ pushd /tmp"])
        assert engine.working_directory == "/tmp"
        assert engine.tracker.dirs() == ["/tmp", "/srv/app/build"]

    def test_statistics_report_directory(self, engine: ContextEngine) -> None:
        assert engine.statistics().working_directory is None
        engine.add_line("alice@devbox:/var/log$ tail syslog")
        assert engine.statistics().working_directory == "/var/log"

    def test_truncation_result_carries_directory(self, engine: ContextEngine) -> None:
        engine.add_lines(["alice@devbox:/srv$ ls", "app  data"])
        assert engine.get_truncated_context(1000).working_directory == "/srv"
        assert engine.get_truncated_context_with_size(1).working_directory == "/srv"

    def test_directory_can_be_left_out_of_context(self, context_config: ContextConfig) -> None:
        eng = ContextEngine(context_config.model_copy(update={"include_working_directory": False}))
        eng.add_line("alice@devbox:/srv$ ls")
        assert eng.working_directory == "/srv"
        assert eng.get_truncated_context(1000).working_directory is None

    def test_tracking_disabled(self, context_config: ContextConfig) -> None:
        eng = ContextEngine(context_config.model_copy(update={"track_working_directory": False}))
        eng.add_line("alice@devbox:/srv$ ls")
        assert eng.tracker is None
        assert eng.working_directory is None

    def test_home_directory_from_config(self, context_config: ContextConfig) -> None:
        eng = ContextEngine(context_config.model_copy(update={"home_directory": "/home/alice"}))
        eng.add_line("alice@devbox:~/src$")
        assert eng.working_directory == "/home/alice/src"

    def test_clear_keeps_directory(self, engine: ContextEngine) -> None:
        engine.add_line("alice@devbox:/srv$")
        engine.clear()
        assert engine.working_directory == "/srv"
