"""Tests for the Harvester run lifecycle."""

import asyncio
import logging

import pytest

from suggest_harvest.errors import HarvestError, SeedValidationError
from suggest_harvest.harvest import Harvester
from suggest_harvest.models import OptionsStore, RunStatus, Tag


def make_harvester(fast_config, registry, store=None, **options) -> Harvester:
    harvester = Harvester(fast_config, store, registry=registry)
    harvester.update_options(
        **{"script_alphabet": False, "providers": list(registry.provider_ids), **options}
    )
    return harvester


class TestOptions:
    """Test option changes and persistence."""

    def test_defaults_without_store(self, fast_config, stub_registry):
        harvester = Harvester(fast_config, registry=stub_registry())
        assert harvester.options.seed == ""
        assert harvester.options.strategies.script_alphabet is True

    def test_update_persists(self, fast_config, stub_registry, tmp_path):
        store = OptionsStore(tmp_path / "options.db")
        harvester = Harvester(fast_config, store, registry=stub_registry())

        harvester.update_options(seed="gift", locale="US", generic_suffix=True)

        reloaded = Harvester(fast_config, store, registry=stub_registry())
        assert reloaded.options.seed == "gift"
        assert reloaded.options.locale == "US"
        assert reloaded.options.strategies.generic_suffix is True
        assert reloaded.options.strategies.script_alphabet is True

    def test_update_with_strategies_mapping(self, fast_config, stub_registry):
        harvester = Harvester(fast_config, registry=stub_registry())

        harvester.update_options(strategies={"questions": True})

        assert harvester.options.strategies.questions is True
        assert harvester.options.strategies.script_alphabet is True

    def test_unknown_option(self, fast_config, stub_registry):
        harvester = Harvester(fast_config, registry=stub_registry())
        with pytest.raises(TypeError):
            harvester.update_options(colour="blue")

    def test_build_queue(self, fast_config, stub_registry):
        harvester = make_harvester(fast_config, stub_registry(), seed="gift", generic_suffix=True)

        queue = harvester.build_queue()

        assert len(queue) == 27
        assert queue[0].tag == Tag.SEED.value


class TestRun:
    """Test start/stop and the state machine."""

    @pytest.mark.asyncio
    async def test_run_completes(self, fast_config, stub_registry):
        registry = stub_registry(google=lambda q: [q, q + " card"])
        harvester = make_harvester(fast_config, registry, seed="gift")

        status = await harvester.start()

        assert status == RunStatus.COMPLETED
        assert harvester.state.status == RunStatus.COMPLETED
        assert harvester.progress == 100.0
        assert [r.keyword for r in harvester.records] == ["gift", "gift card"]

    @pytest.mark.asyncio
    async def test_returns_to_idle_after_settle(self, fast_config, stub_registry):
        harvester = make_harvester(fast_config, stub_registry(google=["gift card"]), seed="gift")

        await harvester.start()
        await asyncio.sleep(fast_config.scheduler.settle_seconds * 3)

        assert harvester.state.status == RunStatus.IDLE
        assert harvester.progress == 0.0
        assert len(harvester.records) == 1

    @pytest.mark.asyncio
    async def test_empty_seed_rejected(self, fast_config, stub_registry):
        harvester = make_harvester(fast_config, stub_registry(google=["x"]), seed="   ")

        with pytest.raises(SeedValidationError):
            await harvester.start()

        assert harvester.state.status == RunStatus.IDLE

    @pytest.mark.asyncio
    async def test_second_start_while_running(self, fast_config, stub_registry):
        release = asyncio.Event()
        registry = stub_registry()

        async def slow(query, locale, cursor_position):
            await release.wait()
            return [query]

        registry.register("google", slow)
        harvester = make_harvester(fast_config, registry, seed="gift")

        task = asyncio.create_task(harvester.start())
        await asyncio.sleep(0)
        assert harvester.state.is_running

        with pytest.raises(HarvestError):
            await harvester.start()

        release.set()
        assert await task == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_stop_cancels(self, fast_config, stub_registry):
        registry = stub_registry()
        started = asyncio.Event()

        async def slow(query, locale, cursor_position):
            started.set()
            await asyncio.sleep(0.05)
            return [query + " card"]

        registry.register("google", slow)
        harvester = make_harvester(fast_config, registry, seed="gift", generic_suffix=True)

        task = asyncio.create_task(harvester.start())
        await started.wait()
        harvester.stop()
        status = await task

        assert status == RunStatus.CANCELLED
        assert harvester.state.is_cancelled
        assert harvester.records == []

    @pytest.mark.asyncio
    async def test_new_run_clears_results(self, fast_config, stub_registry):
        registry = stub_registry(google=lambda q: [q + " card"])
        harvester = make_harvester(fast_config, registry, seed="gift")
        await harvester.start()

        harvester.update_options(seed="toy")
        await harvester.start()

        assert [r.keyword for r in harvester.records] == ["toy card"]

    @pytest.mark.asyncio
    async def test_deep_flag_has_no_effect(self, fast_config, stub_registry, caplog):
        registry = stub_registry(google=lambda q: [q])
        harvester = make_harvester(fast_config, registry, seed="gift", deep=True)

        with caplog.at_level(logging.INFO):
            await harvester.start()

        assert "no effect" in caplog.text
        assert harvester.progress == 100.0
        assert len(harvester.records) == 1

    @pytest.mark.asyncio
    async def test_batch_callback(self, fast_config, stub_registry):
        registry = stub_registry(google=lambda q: [q])
        harvester = make_harvester(fast_config, registry, seed="gift", generic_suffix=True)
        batches = []

        await harvester.start(on_batch_accepted=batches.append)

        assert sum(len(b) for b in batches) == len(harvester.records) == 27

    def test_stop_when_idle_is_noop(self, fast_config, stub_registry):
        harvester = Harvester(fast_config, registry=stub_registry())
        harvester.stop()
        assert harvester.state.status == RunStatus.IDLE


class TestCorruptOptionsStore:
    """Test a harvester whose options file is not a database."""

    def test_update_options_keeps_working(self, fast_config, stub_registry, tmp_path):
        db_path = tmp_path / "options.db"
        db_path.write_bytes(b"this is not sqlite" * 100)
        harvester = Harvester(fast_config, OptionsStore(db_path), registry=stub_registry())

        options = harvester.update_options(seed="gift", generic_suffix=True)

        assert options.seed == "gift"
        assert harvester.options.strategies.generic_suffix is True
