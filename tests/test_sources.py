import pytest

from rulekit.sources import process_line, read_file_by_line, read_rules


@pytest.mark.parametrize('raw, expected', [
    ('  example.com  ', 'example.com'),
    ('', None),
    ('   ', None),
    ('# comment', None),
    ('! adguard comment', None),
    ('// comment', None),
    ('DOMAIN,a.com # trailing', 'DOMAIN,a.com'),
    ('URL-REGEX,^https?://a\\.com/#x', 'URL-REGEX,^https?://a\\.com/#x'),
])
def test_process_line(raw, expected):
    assert process_line(raw) == expected


@pytest.mark.anyio
async def test_readers(tmp_path):
    path = tmp_path / 'list.txt'
    path.write_bytes('\ufeff# header\r\nDOMAIN,a.com\r\n\r\n.b.com\n'.encode('utf-8'))
    assert [line async for line in read_file_by_line(path)] == ['# header', 'DOMAIN,a.com', '', '.b.com']
    assert [line async for line in read_rules(path)] == ['DOMAIN,a.com', '.b.com']
