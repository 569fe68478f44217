"""
Bridge from the synchronous RunPod handler into the async job services.
"""
import asyncio
import concurrent.futures
from typing import TypeVar, Coroutine, Any


T = TypeVar('T')


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a coroutine to completion from sync code and return its result.

    Without a running loop this is asyncio.run(). Inside a running loop
    (a worker started from async code) the coroutine runs on a fresh loop
    in a helper thread. Exceptions raised by the coroutine propagate.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()
