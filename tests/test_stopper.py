import asyncio

from livestream_dl.core.stopper import Stopper


def test_stop_wakes_every_waiter():
    async def scenario():
        stopper = Stopper()
        woken = []

        async def waiter(n):
            await stopper.wait()
            woken.append(n)

        tasks = [asyncio.create_task(waiter(n)) for n in range(3)]
        await asyncio.sleep(0)
        assert not stopper.stopped()
        stopper.stop()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)
        return stopper, sorted(woken)

    stopper, woken = asyncio.run(scenario())
    assert stopper.stopped()
    assert woken == [0, 1, 2]


def test_wait_after_stop_returns_immediately():
    async def scenario():
        stopper = Stopper()
        stopper.stop()
        stopper.stop()
        await asyncio.wait_for(stopper.wait(), timeout=0.1)
        return stopper.stopped()

    assert asyncio.run(scenario())
