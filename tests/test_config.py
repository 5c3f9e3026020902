import orjson
import pytest

from rulekit import config


def test_validate_task_fills_defaults():
    task = config.validate_task({'id': 'a', 'title': 'A'})
    assert task['type'] == 'non_ip'
    assert task['formats'] == ['surge', 'clash', 'singbox']
    assert task['description'] == []
    assert task['sources'] == []
    assert task['whitelist'] == []


def test_validate_task_accepts_single_string():
    task = config.validate_task({'id': 'a', 'title': 'A', 'description': 'one line'})
    assert task['description'] == ['one line']


@pytest.mark.parametrize('task, message', [
    ({'title': 'A'}, "missing a string 'id'"),
    ({'id': 'a'}, "missing 'title'"),
    ({'id': 'a', 'title': 'A', 'type': 'weird'}, 'unknown type'),
    ({'id': 'a', 'title': 'A', 'formats': ['quantumult']}, 'unknown formats'),
    ({'id': 'a', 'title': 'A', 'sources': [1, 2]}, "'sources' must be"),
    ('not-a-task', 'must be an object'),
])
def test_validate_task_errors(task, message):
    with pytest.raises(ValueError, match=message):
        config.validate_task(task)


def test_load_tasks_resolves_paths_against_config(tmp_path):
    cfg = tmp_path / 'conf' / 'rules.json'
    cfg.parent.mkdir()
    cfg.write_bytes(orjson.dumps({'tasks': [
        {'id': 'a', 'title': 'A', 'sources': ['lists/a.conf'], 'domainset_sources': [str(tmp_path / 'abs.txt')]},
    ]}))
    [task] = config.load_tasks(cfg)
    assert task['sources'] == [str(tmp_path / 'conf' / 'lists' / 'a.conf')]
    assert task['domainset_sources'] == [str(tmp_path / 'abs.txt')]


def test_output_dirs(tmp_path):
    dirs = config.output_dirs(tmp_path)
    assert dirs == {
        'surge': tmp_path / 'List',
        'clash': tmp_path / 'Clash',
        'singbox': tmp_path / 'sing-box',
        'sgmodule': tmp_path / 'Modules',
    }


def test_default_output_dirs_use_module_constants():
    assert config.output_dirs() == {
        'surge': config.OUTPUT_SURGE_DIR,
        'clash': config.OUTPUT_CLASH_DIR,
        'singbox': config.OUTPUT_SINGBOX_DIR,
        'sgmodule': config.OUTPUT_MODULES_DIR,
    }
    assert config.OUTPUT_SURGE_DIR == config.OUTPUT_DIR / 'List'
