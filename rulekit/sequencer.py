import asyncio
import inspect
from collections import deque
from typing import AsyncIterator, Awaitable, Callable, Deque, Optional

TaskFactory = Callable[[], Awaitable[None]]


async def iterate_source(source) -> AsyncIterator[str]:
    """統一遍歷同步/異步可迭代對象，或先 await 出可迭代對象再遍歷"""
    if inspect.isawaitable(source):
        source = await source
    if hasattr(source, '__aiter__'):
        async for line in source:
            yield line
    else:
        for line in source:
            yield line


class IngestionQueue:
    """
    嚴格串行的攝入隊列。
    submit() 只登記任務；join() 按提交順序逐個執行直到隊列清空，
    執行期間新提交的任務同樣排在隊尾。
    """
    __slots__ = ('_tasks', '_lock')

    def __init__(self):
        self._tasks: Deque[TaskFactory] = deque()
        self._lock: Optional[asyncio.Lock] = None

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def pending(self) -> bool:
        return bool(self._tasks) or (self._lock is not None and self._lock.locked())

    def submit(self, factory: TaskFactory):
        self._tasks.append(factory)

    async def join(self):
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            try:
                while self._tasks:
                    factory = self._tasks.popleft()
                    await factory()
            except BaseException:
                # 任一任務失敗則放棄剩餘任務
                self._tasks.clear()
                raise
