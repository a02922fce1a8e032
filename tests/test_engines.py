import asyncio

import pytest

from frameread.engines import EngineManager, EngineRegistry
from frameread.errors import EngineInitError, EngineInitTimeout
from tests.fakes import FakeDecoder, FakeFactory, FakeRecognizer


def test_concurrent_acquire_initializes_once():
    engine = FakeRecognizer()
    factory = FakeFactory(engine, delay=0.01)
    manager = EngineManager("recognition", factory)

    async def scenario():
        return await asyncio.gather(*[manager.acquire() for _ in range(10)])

    handles = asyncio.run(scenario())
    assert all(handle is engine for handle in handles)
    assert factory.calls == 1
    assert manager.init_count == 1
    assert manager.is_ready


def test_acquire_on_ready_engine_returns_same_handle():
    factory = FakeFactory(FakeRecognizer())
    manager = EngineManager("recognition", factory)

    async def scenario():
        first = await manager.acquire()
        second = await manager.acquire()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert factory.calls == 1


def test_failed_initialization_clears_state_and_retries():
    engine = FakeRecognizer()
    factory = FakeFactory(engine, errors=[RuntimeError("model download failed")])
    manager = EngineManager("recognition", factory)

    async def scenario():
        with pytest.raises(EngineInitError) as excinfo:
            await manager.acquire()
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert "model download failed" in str(excinfo.value)
        assert not manager.is_ready
        assert not manager.is_initializing
        return await manager.acquire()

    assert asyncio.run(scenario()) is engine
    assert factory.calls == 2


def test_timeout_does_not_start_a_second_initialization():
    engine = FakeRecognizer()
    factory = FakeFactory(engine, delay=0.2)
    manager = EngineManager("recognition", factory)

    async def scenario():
        with pytest.raises(EngineInitTimeout):
            await manager.acquire(timeout=0.01)
        assert manager.is_initializing
        with pytest.raises(EngineInitTimeout):
            await manager.acquire(timeout=0.01)
        return await manager.acquire()

    assert asyncio.run(scenario()) is engine
    assert factory.calls == 1


def test_timeout_is_an_init_error():
    assert issubclass(EngineInitTimeout, EngineInitError)


def test_release_without_engine_is_noop():
    factory = FakeFactory()
    manager = EngineManager("decoding", factory)
    asyncio.run(manager.release())
    assert not manager.is_ready
    assert factory.calls == 0


def test_release_terminates_and_allows_recreation():
    first, second = FakeRecognizer(), FakeRecognizer()
    factory = FakeFactory(first, second)
    manager = EngineManager("recognition", factory)

    async def scenario():
        await manager.acquire()
        await manager.release()
        assert not manager.is_ready
        return await manager.acquire()

    assert asyncio.run(scenario()) is second
    assert first.terminated
    assert factory.calls == 2


def test_registry_wait_ready_and_shutdown():
    decoder, recognizer = FakeDecoder(), FakeRecognizer()
    registry = EngineRegistry(FakeFactory(decoder), FakeFactory(recognizer))

    async def scenario():
        assert not registry.is_ready
        handles = await registry.wait_ready(timeout=1.0)
        assert registry.is_ready
        await registry.shutdown()
        return handles

    assert asyncio.run(scenario()) == (decoder, recognizer)
    assert decoder.terminated
    assert recognizer.terminated
    assert not registry.is_ready


def test_registry_wait_ready_surfaces_engine_failure():
    decoder = FakeDecoder()
    registry = EngineRegistry(FakeFactory(decoder), FakeFactory(errors=[RuntimeError("no model")]))

    with pytest.raises(EngineInitError) as excinfo:
        asyncio.run(registry.wait_ready())
    assert excinfo.value.kind == "recognition"
    assert registry.decoder.is_ready
    assert not registry.recognizer.is_ready
