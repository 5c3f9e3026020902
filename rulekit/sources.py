import re
from pathlib import Path
from typing import AsyncIterator, Optional, Union

import anyio

RE_TRAILING_COMMENT = re.compile(r'\s+(#|//).*$')

PathLike = Union[str, Path]


async def read_file_by_line(path: PathLike) -> AsyncIterator[str]:
    """逐行讀取，去掉換行符，不做其他處理"""
    async with await anyio.open_file(path, 'r', encoding='utf-8-sig', errors='ignore') as f:
        async for line in f:
            yield line.rstrip('\r\n')


def process_line(line: str) -> Optional[str]:
    """去除空白與註釋，無效行返回 None"""
    line = line.strip()
    if not line:
        return None
    if line[0] in '#!' or line.startswith('//'):
        return None
    line = RE_TRAILING_COMMENT.sub('', line)
    return line or None


async def read_rules(path: PathLike) -> AsyncIterator[str]:
    async for raw in read_file_by_line(path):
        line = process_line(raw)
        if line is not None:
            yield line
