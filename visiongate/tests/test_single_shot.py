import asyncio
import threading

import pytest

from visiongate.vision.single_shot import SingleShot


@pytest.mark.asyncio
async def test_resolve_from_worker_thread():
    shot: SingleShot[str] = SingleShot()
    threading.Thread(target=shot.resolve, args=("recognized",), daemon=True).start()
    assert await shot.wait() == "recognized"
    assert shot.settled


@pytest.mark.asyncio
async def test_reject_propagates_exception():
    shot: SingleShot[str] = SingleShot()
    shot.reject(ValueError("engine failure"))
    with pytest.raises(ValueError, match="engine failure"):
        await shot.wait()


@pytest.mark.asyncio
async def test_second_settlement_is_a_programming_error():
    shot: SingleShot[str] = SingleShot()
    shot.resolve("first")
    with pytest.raises(RuntimeError, match="already settled"):
        shot.resolve("second")
    with pytest.raises(RuntimeError, match="already settled"):
        shot.reject(ValueError("late"))
    assert await shot.wait() == "first"


@pytest.mark.asyncio
async def test_late_result_after_cancellation_is_dropped():
    shot: SingleShot[str] = SingleShot()
    waiter = asyncio.ensure_future(shot.wait())
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    shot.resolve("too late")
    await asyncio.sleep(0)
    assert shot.settled
