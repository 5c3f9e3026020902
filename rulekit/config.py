import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson

# ==========================================
# 1. 配置與常數
# ==========================================

CONFIG_FILE = os.getenv('RULEKIT_CONFIG', 'rules.json')
OUTPUT_DIR = Path(os.getenv('RULEKIT_OUTPUT_DIR', 'public'))
MAX_WORKERS = int(os.getenv('RULEKIT_MAX_WORKERS', '0')) or (os.cpu_count() or 4) * 2
LOG_LEVEL = os.getenv('RULEKIT_LOG_LEVEL', 'INFO').upper()

# 低於此行數直接整檔寫入，否則逐行串流
STREAM_WRITE_THRESHOLD = 500

RULESET_TYPES = ('domainset', 'non_ip', 'ip')
DEFAULT_FORMATS = ('surge', 'clash', 'singbox')

OUTPUT_SURGE_DIR = OUTPUT_DIR / 'List'
OUTPUT_CLASH_DIR = OUTPUT_DIR / 'Clash'
OUTPUT_SINGBOX_DIR = OUTPUT_DIR / 'sing-box'
OUTPUT_MODULES_DIR = OUTPUT_DIR / 'Modules'

logger = logging.getLogger(__name__)


def output_dirs(base: Optional[Path] = None) -> Dict[str, Path]:
    """各格式輸出根目錄，key 與 emitters.FORMATS 對應；未指定 base 時使用模組常數"""
    if base is None:
        return {
            'surge': OUTPUT_SURGE_DIR,
            'clash': OUTPUT_CLASH_DIR,
            'singbox': OUTPUT_SINGBOX_DIR,
            'sgmodule': OUTPUT_MODULES_DIR,
        }
    base = Path(base)
    return {
        'surge': base / 'List',
        'clash': base / 'Clash',
        'singbox': base / 'sing-box',
        'sgmodule': base / 'Modules',
    }


def _as_str_list(task_id: str, key: str, value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"Task {task_id}: '{key}' must be a string or a list of strings")
    return value


def validate_task(task: Dict[str, Any]) -> Dict[str, Any]:
    """檢查單個任務並補上預設值"""
    if not isinstance(task, dict):
        raise ValueError(f"Task entry must be an object, got {type(task).__name__}")

    task_id = task.get('id')
    if not task_id or not isinstance(task_id, str):
        raise ValueError("Task is missing a string 'id'")

    rtype = task.get('type', 'non_ip')
    if rtype not in RULESET_TYPES:
        raise ValueError(f"Task {task_id}: unknown type '{rtype}', expected one of {RULESET_TYPES}")

    if not task.get('title'):
        raise ValueError(f"Task {task_id}: missing 'title'")

    formats = _as_str_list(task_id, 'formats', task.get('formats', list(DEFAULT_FORMATS)))
    unknown = [f for f in formats if f not in DEFAULT_FORMATS]
    if unknown:
        raise ValueError(f"Task {task_id}: unknown formats {unknown}")

    normalized = dict(task)
    normalized['type'] = rtype
    normalized['formats'] = formats
    normalized['description'] = _as_str_list(task_id, 'description', task.get('description'))
    for key in ('sources', 'domainset_sources', 'domains', 'domain_suffixes',
                'cidr4', 'cidr6', 'whitelist'):
        normalized[key] = _as_str_list(task_id, key, task.get(key))
    return normalized


def load_tasks(path: Path) -> List[Dict[str, Any]]:
    """讀取任務配置（JSON），相對路徑以配置檔所在目錄為基準"""
    with open(path, 'rb') as f:
        cfg = orjson.loads(f.read())

    if isinstance(cfg, list):
        raw_tasks = cfg
    elif isinstance(cfg, dict):
        raw_tasks = cfg.get('tasks', [])
    else:
        raise ValueError(f"Config {path}: expected an object or a list at top level")

    base = Path(path).parent
    tasks = []
    for raw in raw_tasks:
        task = validate_task(raw)
        for key in ('sources', 'domainset_sources'):
            task[key] = [str(base / p) for p in task[key]]
        tasks.append(task)

    logger.debug(f"Loaded {len(tasks)} tasks from {path}")
    return tasks
