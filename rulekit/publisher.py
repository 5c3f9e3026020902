import logging
from pathlib import Path
from typing import AsyncIterable, Iterable, List, Sequence, Union

import anyio

from .config import STREAM_WRITE_THRESHOLD
from .sequencer import iterate_source
from .sources import read_file_by_line

logger = logging.getLogger(__name__)


def _line_equal(line_a: str, line_b: str) -> bool:
    if not line_a and not line_b:
        return True
    if not line_a or not line_b:
        return False

    first = line_a[0]
    if first != line_b[0]:
        return False

    # 註釋行（含 AdGuard 的 !）內容不比較
    if first == '#' or first == '!':
        return True

    if (
        line_a.startswith('//') and line_b.startswith('//')
        and line_a[3:4] == '#' and line_b[3:4] == '#'
    ):
        return True

    return line_a == line_b


async def file_equal(lines_a: Sequence[str],
                     source: Union[AsyncIterable[str], Iterable[str]]) -> bool:
    """
    比較新生成的行與現有文件內容。
    橫幅/註釋行視為通配，現有文件多出的空行忽略；候選為空時永不相等。
    """
    if not lines_a:
        return False

    bound = len(lines_a) - 1
    index = -1
    async for line_b in iterate_source(source):
        index += 1
        if index > bound:
            if line_b:
                return False
            continue
        if not _line_equal(lines_a[index], line_b):
            return False

    # 文件變長了
    return index >= bound


async def write_file(path: Union[str, Path], content: str):
    """先寫臨時文件再替換，避免留下寫了一半的目標文件"""
    path = anyio.Path(path)
    temp = path.with_name(path.name + '.tmp')
    try:
        await temp.write_text(content, encoding='utf-8')
        await temp.replace(path)
    except BaseException:
        await temp.unlink(missing_ok=True)
        raise


async def compare_and_write_file(lines: List[str], file_path: Union[str, Path]) -> bool:
    """內容有實質變化才寫入，返回是否寫了文件"""
    path = anyio.Path(file_path)

    if await path.exists():
        reader = read_file_by_line(path)
        try:
            is_equal = await file_equal(lines, reader)
        finally:
            await reader.aclose()
        if is_equal:
            logger.info(f"same content, bail out writing: {file_path}")
            return False
        logger.info(f"writing {file_path}")
    else:
        logger.info(f"{file_path} does not exist, writing...")

    await path.parent.mkdir(parents=True, exist_ok=True)

    if len(lines) < STREAM_WRITE_THRESHOLD:
        await write_file(path, '\n'.join(lines) + '\n')
        return True

    # 大文件逐行串流，每次寫入完成後再寫下一行
    async with await anyio.open_file(path, 'w', encoding='utf-8') as f:
        for line in lines:
            await f.write(line + '\n')
    return True
