import asyncio

import pytest

from helpers import settle
from image_decode_pool.errors import (
    AbortedError,
    AcquireTimeoutError,
    PoolClearedError,
    PoolConfigError,
    PoolDisposedError,
    ReleaseOfUnacquiredResourceError,
)
from image_decode_pool.pool import ResourcePool


class Factory:
    """Builds numbered dict resources and remembers what it built and disposed."""

    def __init__(self):
        self.created = []
        self.disposed = []

    def __call__(self):
        resource = {"n": len(self.created) + 1, "ok": True}
        self.created.append(resource)
        return resource

    def dispose(self, resource):
        self.disposed.append(resource["n"])


@pytest.fixture
def factory():
    return Factory()


def make_pool(factory, max_size=1, **kwargs):
    return ResourcePool(factory, max_size=max_size, disposer=factory.dispose, name="test", **kwargs)


class TestConfiguration:
    @pytest.mark.parametrize("max_size", [0, -1, 1.5, True])
    def test_rejects_invalid_max_size(self, factory, max_size):
        with pytest.raises(PoolConfigError):
            ResourcePool(factory, max_size=max_size)

    def test_rejects_non_positive_timeout(self, factory):
        with pytest.raises(PoolConfigError):
            ResourcePool(factory, max_size=1, timeout=0)

    def test_config_errors_are_value_errors(self, factory):
        with pytest.raises(ValueError):
            ResourcePool(factory, max_size=0)


class TestAcquireRelease:
    @pytest.mark.asyncio
    async def test_resources_are_created_lazily_and_reused(self, factory):
        pool = make_pool(factory, max_size=2)
        assert factory.created == []

        first = await pool.acquire()
        await pool.release(first)
        again = await pool.acquire()

        assert again is first
        assert len(factory.created) == 1
        assert pool.allocated_count == 1 and pool.available_count == 0

    @pytest.mark.asyncio
    async def test_waiters_are_served_in_arrival_order(self, factory):
        pool = make_pool(factory, max_size=1)
        held = await pool.acquire()
        order = []

        async def grab(label):
            resource = await pool.acquire()
            order.append(label)
            await pool.release(resource)

        tasks = [asyncio.create_task(grab(label)) for label in "abc"]
        await settle()
        assert pool.waiting_count == 3

        await pool.release(held)
        await asyncio.gather(*tasks)

        assert order == ["a", "b", "c"]
        assert len(factory.created) == 1

    @pytest.mark.asyncio
    async def test_released_resource_goes_to_waiter_not_a_late_caller(self, factory):
        pool = make_pool(factory, max_size=1)
        held = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await settle()

        await pool.release(held)
        # the hand-off already happened; nothing is left on the shelf
        assert pool.available_count == 0
        assert await waiter is held

    @pytest.mark.asyncio
    async def test_never_exceeds_max_size_under_load(self, factory):
        pool = make_pool(factory, max_size=3)
        in_use = 0
        peak = 0

        async def work():
            nonlocal in_use, peak
            async with pool.lease():
                in_use += 1
                peak = max(peak, in_use)
                await asyncio.sleep(0.01)
                in_use -= 1

        await asyncio.gather(*(work() for _ in range(10)))

        assert peak == 3
        assert len(factory.created) == 3
        assert pool.size == 3 and pool.allocated_count == 0

    @pytest.mark.asyncio
    async def test_release_of_unacquired_resource_raises(self, factory):
        pool = make_pool(factory)
        with pytest.raises(ReleaseOfUnacquiredResourceError):
            await pool.release({"n": 99})

    @pytest.mark.asyncio
    async def test_double_release_raises(self, factory):
        pool = make_pool(factory)
        resource = await pool.acquire()
        await pool.release(resource)
        with pytest.raises(ReleaseOfUnacquiredResourceError):
            await pool.release(resource)

    @pytest.mark.asyncio
    async def test_lease_releases_on_error(self, factory):
        pool = make_pool(factory)
        with pytest.raises(RuntimeError):
            async with pool.lease():
                raise RuntimeError("body failed")
        assert pool.allocated_count == 0
        assert pool.available_count == 1


class TestTimeoutAndAbort:
    @pytest.mark.asyncio
    async def test_queued_acquire_times_out(self, factory):
        pool = make_pool(factory, timeout=0.05)
        await pool.acquire()

        with pytest.raises(AcquireTimeoutError) as excinfo:
            await pool.acquire()

        assert isinstance(excinfo.value, TimeoutError)
        assert pool.waiting_count == 0

    @pytest.mark.asyncio
    async def test_timed_out_waiter_does_not_receive_later_release(self, factory):
        pool = make_pool(factory, timeout=0.05)
        held = await pool.acquire()
        with pytest.raises(AcquireTimeoutError):
            await pool.acquire()

        await pool.release(held)
        assert pool.available_count == 1

    @pytest.mark.asyncio
    async def test_preset_signal_aborts_immediately(self, factory):
        pool = make_pool(factory)
        signal = asyncio.Event()
        signal.set()
        with pytest.raises(AbortedError):
            await pool.acquire(signal)
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_signal_aborts_only_its_own_waiter(self, factory):
        pool = make_pool(factory)
        held = await pool.acquire()
        signal = asyncio.Event()
        aborted = asyncio.create_task(pool.acquire(signal))
        patient = asyncio.create_task(pool.acquire())
        await settle()

        signal.set()
        with pytest.raises(AbortedError):
            await asyncio.wait_for(aborted, 1)
        assert not patient.done()
        assert pool.waiting_count == 1

        await pool.release(held)
        assert await patient is held

    @pytest.mark.asyncio
    async def test_signal_set_after_hand_off_is_ignored(self, factory):
        pool = make_pool(factory)
        held = await pool.acquire()
        signal = asyncio.Event()
        waiter = asyncio.create_task(pool.acquire(signal))
        await settle()

        await pool.release(held)
        signal.set()
        assert await waiter is held

    @pytest.mark.asyncio
    async def test_cancelling_acquire_withdraws_waiter(self, factory):
        pool = make_pool(factory)
        held = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await settle()
        assert pool.waiting_count == 1

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert pool.waiting_count == 0

        await pool.release(held)
        assert pool.available_count == 1


class TestDispose:
    @pytest.mark.asyncio
    async def test_acquire_after_dispose_raises_without_creating(self, factory):
        pool = make_pool(factory)
        await pool.dispose()
        with pytest.raises(PoolDisposedError):
            await pool.acquire()
        assert factory.created == []

    @pytest.mark.asyncio
    async def test_dispose_rejects_waiters_and_disposes_everything(self, factory):
        pool = make_pool(factory, max_size=2)
        a = await pool.acquire()
        b = await pool.acquire()
        await pool.release(b)
        await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await settle()

        await pool.dispose()

        with pytest.raises(PoolClearedError):
            await waiter
        assert sorted(factory.disposed) == [1, 2]
        assert pool.size == 0 and pool.waiting_count == 0
        assert pool.disposed
        assert a["n"] == 1

    @pytest.mark.asyncio
    async def test_dispose_is_idempotent(self, factory):
        pool = make_pool(factory)
        await pool.release(await pool.acquire())
        await pool.dispose()
        await pool.clear()
        assert factory.disposed == [1]

    @pytest.mark.asyncio
    async def test_release_after_dispose_disposes_instead_of_raising(self, factory):
        pool = make_pool(factory)
        resource = await pool.acquire()
        await pool.dispose()

        await pool.release(resource)
        await pool.release({"n": 42})

        assert factory.disposed == [1, 1, 42]

    @pytest.mark.asyncio
    async def test_failing_disposer_does_not_stop_teardown(self):
        disposed = []

        def disposer(resource):
            if resource == 1:
                raise RuntimeError("close failed")
            disposed.append(resource)

        counter = iter(range(1, 10))
        pool = ResourcePool(lambda: next(counter), max_size=3, disposer=disposer)
        held = [await pool.acquire() for _ in range(3)]
        for resource in held:
            await pool.release(resource)

        await pool.dispose()
        assert sorted(disposed) == [2, 3]

    @pytest.mark.asyncio
    async def test_async_disposer_is_awaited(self):
        closed = []

        async def disposer(resource):
            await asyncio.sleep(0)
            closed.append(resource)

        pool = ResourcePool(object, max_size=1, disposer=disposer)
        resource = await pool.acquire()
        await pool.dispose()
        assert closed == [resource]


class TestValidation:
    @pytest.mark.asyncio
    async def test_invalid_resource_on_shelf_is_replaced(self, factory):
        pool = make_pool(factory, validate=lambda r: r["ok"])
        first = await pool.acquire()
        await pool.release(first)
        first["ok"] = False

        second = await pool.acquire()
        await settle()

        assert second is not first
        assert factory.disposed == [1]

    @pytest.mark.asyncio
    async def test_invalid_release_spawns_fresh_resource_for_waiter(self, factory):
        pool = make_pool(factory, validate=lambda r: r["ok"])
        first = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await settle()

        first["ok"] = False
        await pool.release(first)

        replacement = await waiter
        assert replacement["n"] == 2
        assert factory.disposed == [1]
        assert pool.size == 1

    @pytest.mark.asyncio
    async def test_raising_validator_counts_as_invalid(self, factory):
        def validate(resource):
            raise RuntimeError("health check exploded")

        pool = make_pool(factory, validate=validate)
        first = await pool.acquire()
        await pool.release(first)
        assert pool.available_count == 0
        assert factory.disposed == [1]
