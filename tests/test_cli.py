import orjson

from rulekit import cli


def _write_config(tmp_path, tasks):
    cfg = tmp_path / 'rules.json'
    cfg.write_bytes(orjson.dumps({'tasks': tasks}))
    return cfg


def test_main_publishes_all_tasks(tmp_path, monkeypatch):
    summary = tmp_path / 'summary.md'
    monkeypatch.setenv('GITHUB_STEP_SUMMARY', str(summary))

    (tmp_path / 'reject.txt').write_text(
        '# upstream list\n\n.ads.example.com\ntracker.net  # inline\n.localhost\n',
        encoding='utf-8',
    )
    (tmp_path / 'stream.conf').write_text(
        'DOMAIN-SUFFIX,netflix.com\nPROCESS-NAME,Netflix\nDEST-PORT,443\n',
        encoding='utf-8',
    )
    cfg = _write_config(tmp_path, [
        {
            'id': 'reject',
            'type': 'domainset',
            'title': 'Reject',
            'description': ['Ads'],
            'domainset_sources': ['reject.txt'],
            'whitelist': ['.localhost'],
        },
        {
            'id': 'stream',
            'title': 'Stream',
            'sources': ['stream.conf'],
            'formats': ['surge', 'singbox'],
        },
    ])
    out = tmp_path / 'public'

    assert cli.main(['--config', str(cfg), '--output-dir', str(out)]) == 0

    reject = (out / 'List' / 'domainset' / 'reject.conf').read_text(encoding='utf-8').splitlines()
    assert '.ads.example.com' in reject
    assert 'tracker.net' in reject
    assert '.localhost' not in reject
    assert (out / 'Clash' / 'domainset' / 'reject.txt').exists()
    assert (out / 'sing-box' / 'non_ip' / 'stream.json').exists()
    assert not (out / 'Clash' / 'non_ip' / 'stream.txt').exists()

    report = summary.read_text(encoding='utf-8')
    assert '| reject | ✅ |' in report
    assert '| stream | ✅ |' in report

    # 第二次運行內容不變
    assert cli.main(['--config', str(cfg), '--output-dir', str(out), '--only', 'stream']) == 0
    assert 'Unchanged' in summary.read_text(encoding='utf-8')


def test_main_fails_when_a_task_fails(tmp_path, monkeypatch):
    monkeypatch.delenv('GITHUB_STEP_SUMMARY', raising=False)
    cfg = _write_config(tmp_path, [
        {'id': 'broken', 'title': 'Broken', 'sources': ['missing.conf']},
    ])
    assert cli.main(['--config', str(cfg), '--output-dir', str(tmp_path / 'out')]) == 1


def test_main_rejects_invalid_config(tmp_path):
    cfg = _write_config(tmp_path, [{'id': 'x', 'type': 'weird', 'title': 'X'}])
    assert cli.main(['--config', str(cfg)]) == 1


def test_main_missing_config(tmp_path):
    assert cli.main(['--config', str(tmp_path / 'nope.json')]) == 1
