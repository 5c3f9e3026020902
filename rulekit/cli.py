import argparse
import concurrent.futures
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import anyio

from . import config
from .ruleset import RuleSet
from .sources import read_rules

logger = logging.getLogger(__name__)


class TaskResult(NamedTuple):
    name: str
    status: str
    msg: str
    size: str


def get_file_size(filepath: Path) -> str:
    if not filepath.exists():
        return "0KB"
    size = filepath.stat().st_size
    for unit in ['B', 'KB', 'MB']:
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}GB"


def build_ruleset(task: Dict[str, Any]) -> RuleSet:
    """按任務配置組裝 RuleSet，攝入只排隊不執行"""
    rs = (
        RuleSet(task['id'], task['type'])
        .with_title(task['title'])
        .with_description(task['description'])
        .with_mitm_sgmodule_path(task.get('sgmodule_path'))
    )

    rs.bulk_add_domain(task['domains'])
    rs.bulk_add_domain_suffix(task['domain_suffixes'])
    rs.bulk_add_cidr4(task['cidr4'])
    rs.bulk_add_cidr6(task['cidr6'])

    for path in task['domainset_sources']:
        rs.add_from_domainset(read_rules(path))
    for path in task['sources']:
        rs.add_from_ruleset(read_rules(path))

    # 豁免記錄在 trie 中，對之後攝入的規則同樣生效
    for domain in task['whitelist']:
        rs.whitelist_domain(domain)

    return rs


async def run_task(task: Dict[str, Any], output_dir: Path) -> Dict[str, bool]:
    rs = build_ruleset(task)
    dirs = config.output_dirs(output_dir)
    return await rs.write(formats=task['formats'], output_dirs=dirs)


def worker(task: Dict[str, Any], output_dir: Path) -> TaskResult:
    name = task['id']
    try:
        written = anyio.run(run_task, task, output_dir)
    except Exception as e:
        logger.exception(f"Worker Error {name}")
        return TaskResult(name, "❌", str(e)[:100], "0KB")

    changed = [fmt for fmt, did_write in written.items() if did_write]
    msg = f"Updated {', '.join(changed)}" if changed else "Unchanged"

    dirs = config.output_dirs(output_dir)
    surge_path = dirs['surge'] / task['type'] / f"{name}.conf"
    return TaskResult(name, "✅", msg, get_file_size(surge_path))


def write_summary(results: List[TaskResult]):
    summary = os.getenv('GITHUB_STEP_SUMMARY')
    if not summary:
        return
    try:
        with open(summary, 'a', encoding='utf-8') as f:
            f.write("## Rule Publishing Report\n")
            f.write("| Task | Status | Details | Size |\n|---|---|---|---|\n")
            for r in sorted(results, key=lambda x: x.name):
                f.write(f"| {r.name} | {r.status} | {r.msg} | {r.size} |\n")
    except OSError as e:
        logger.warning(f"寫入 step summary 失敗: {e}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog='rulekit', description='Aggregate and publish proxy rule-sets')
    parser.add_argument('--config', default=config.CONFIG_FILE, help='task file (JSON)')
    parser.add_argument('--output-dir', default=str(config.OUTPUT_DIR), help='output root directory')
    parser.add_argument('--only', action='append', default=[], metavar='ID', help='only run the given task id')
    parser.add_argument('--workers', type=int, default=config.MAX_WORKERS)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s [%(levelname)s] %(message)s', datefmt='%H:%M:%S')
    args = parse_args(argv)

    cfg_path = Path(args.config)
    if not cfg_path.exists():
        logger.error(f"Config not found: {cfg_path}")
        return 1

    try:
        tasks = config.load_tasks(cfg_path)
    except (ValueError, OSError) as e:
        logger.error(f"Config Error: {e}")
        return 1

    if args.only:
        tasks = [t for t in tasks if t['id'] in args.only]
    if not tasks:
        logger.info("No tasks")
        return 0

    output_dir = Path(args.output_dir)
    results = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, args.workers)) as exe:
        futures = {exe.submit(worker, t, output_dir): t for t in tasks}
        for f in concurrent.futures.as_completed(futures):
            results.append(f.result())

    write_summary(results)
    for r in sorted(results, key=lambda x: x.name):
        logger.info(f"[{r.name}] {r.status} {r.msg} ({r.size})")

    if any(r.status == "❌" for r in results):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
