import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

import anyio

from .cidr import ip_to_cidr, ip_version, merge_cidrs
from .classifier import OTHER, classify_domainset_line, classify_rule_line
from .config import RULESET_TYPES, output_dirs as default_output_dirs
from .emitters import FORMATS, domain_wildcard_to_regex, with_banner
from .publisher import compare_and_write_file
from .sequencer import IngestionQueue, iterate_source
from .trie import HostnameTrie

logger = logging.getLogger(__name__)


class Preprocessed(NamedTuple):
    domains: List[str]
    domain_suffixes: List[str]
    domain_wildcard_regexes: List[str]
    ipcidr: List[str]
    ipcidr_no_resolve: List[str]
    ipcidr6: List[str]
    ipcidr6_no_resolve: List[str]


class RuleSet:
    """
    單個規則組（對應每種格式的一個輸出文件）的累加器。
    攝入調用只排隊，await done() 後才可讀取派生數據或寫文件。
    """

    def __init__(self, id: str, type: str = 'non_ip'):
        if type not in RULESET_TYPES:
            raise ValueError(f"RuleSet {id}: unknown type '{type}'")
        self.id = id
        self.type = type

        self.domain_trie = HostnameTrie()
        self.domain_keywords = set()
        self.domain_wildcard = set()
        self.user_agent = set()
        self.process_name = set()
        self.process_path = set()
        self.url_regex = set()
        self.ipcidr = set()
        self.ipcidr_no_resolve = set()
        self.ipcidr6 = set()
        self.ipcidr6_no_resolve = set()
        self.ipasn = set()
        self.ipasn_no_resolve = set()
        self.geoip = set()
        self.geoip_no_resolve = set()
        self.source_ip_or_cidr = set()
        self.source_port = set()
        self.dest_port = set()
        self.other_rules: List[str] = []

        self.title: Optional[str] = None
        self.description: Optional[Sequence[str]] = None
        self.date = datetime.now(timezone.utc)
        self.mitm_sgmodule_path: Optional[str] = None

        self._queue = IngestionQueue()
        self._preprocessed: Optional[Preprocessed] = None

    def __repr__(self) -> str:
        return f'<RuleSet {self.type}/{self.id}>'

    # ---------- 元數據 ----------

    def with_title(self, title: str) -> 'RuleSet':
        self.title = title
        return self

    def with_description(self, description: Sequence[str]) -> 'RuleSet':
        self.description = description
        return self

    def with_date(self, date: datetime) -> 'RuleSet':
        self.date = date
        return self

    def with_mitm_sgmodule_path(self, path: Optional[str]) -> 'RuleSet':
        if path:
            self.mitm_sgmodule_path = path
        return self

    # ---------- 域名 ----------

    def add_domain(self, domain: str) -> 'RuleSet':
        if domain:
            self.domain_trie.add(domain)
        return self

    def bulk_add_domain(self, domains: Iterable[Optional[str]]) -> 'RuleSet':
        for d in domains:
            if d:
                self.domain_trie.add(d, False, 0)
        return self

    def add_domain_suffix(self, domain: str, line_from_dot: Optional[bool] = None) -> 'RuleSet':
        if line_from_dot is None:
            line_from_dot = domain[:1] == '.'
        self.domain_trie.add(domain, True, 1 if line_from_dot else 0)
        return self

    def bulk_add_domain_suffix(self, domains: Iterable[str]) -> 'RuleSet':
        for d in domains:
            self.add_domain_suffix(d)
        return self

    def add_domain_keyword(self, keyword: str) -> 'RuleSet':
        if keyword:
            self.domain_keywords.add(keyword)
        return self

    def bulk_add_domain_keyword(self, keywords: Iterable[str]) -> 'RuleSet':
        for k in keywords:
            self.add_domain_keyword(k)
        return self

    def add_domain_wildcard(self, wildcard: str) -> 'RuleSet':
        if wildcard:
            self.domain_wildcard.add(wildcard)
        return self

    def whitelist_domain(self, domain: str) -> 'RuleSet':
        self.domain_trie.whitelist(domain)
        return self

    # ---------- IP ----------

    def _bulk_add_cidr(self, bucket: set, cidrs: Iterable[str]) -> 'RuleSet':
        for cidr in cidrs:
            if cidr:
                bucket.add(ip_to_cidr(cidr, ip_version(cidr)))
        return self

    def bulk_add_cidr4(self, cidrs: Iterable[str]) -> 'RuleSet':
        return self._bulk_add_cidr(self.ipcidr, cidrs)

    def bulk_add_cidr4_no_resolve(self, cidrs: Iterable[str]) -> 'RuleSet':
        return self._bulk_add_cidr(self.ipcidr_no_resolve, cidrs)

    def bulk_add_cidr6(self, cidrs: Iterable[str]) -> 'RuleSet':
        return self._bulk_add_cidr(self.ipcidr6, cidrs)

    def bulk_add_cidr6_no_resolve(self, cidrs: Iterable[str]) -> 'RuleSet':
        return self._bulk_add_cidr(self.ipcidr6_no_resolve, cidrs)

    # ---------- 攝入 ----------

    def add_rule_line(self, line: str) -> 'RuleSet':
        """同步分類並寫入單條規則"""
        classified = classify_rule_line(line)
        if classified is None:
            return self

        bucket, value = classified
        if bucket == OTHER:
            self.other_rules.append(value)
        elif bucket == 'domain':
            self.domain_trie.add(value, False, 0)
        elif bucket == 'domain_suffix':
            self.add_domain_suffix(value, False)
        elif bucket == 'domain_keyword':
            self.domain_keywords.add(value)
        elif bucket in ('ipcidr', 'ipcidr_no_resolve', 'ipcidr6', 'ipcidr6_no_resolve'):
            getattr(self, bucket).add(ip_to_cidr(value, ip_version(value)))
        else:
            getattr(self, bucket).add(value)
        return self

    def add_domainset_line(self, line: str) -> 'RuleSet':
        classified = classify_domainset_line(line)
        if classified is None:
            return self
        if classified.bucket == 'domain_suffix':
            self.add_domain_suffix(classified.value, False)
        else:
            self.domain_trie.add(classified.value, False, 0)
        return self

    async def _ingest_domainset(self, source):
        async for line in iterate_source(source):
            self.add_domainset_line(line)

    async def _ingest_ruleset(self, source):
        async for line in iterate_source(source):
            self.add_rule_line(line)

    def add_from_domainset(self, source) -> 'RuleSet':
        """source: 異步/同步可迭代對象，或返回可迭代對象的 awaitable"""
        self._queue.submit(lambda: self._ingest_domainset(source))
        return self

    def add_from_ruleset(self, source) -> 'RuleSet':
        self._queue.submit(lambda: self._ingest_ruleset(source))
        return self

    async def done(self) -> 'RuleSet':
        if self._queue.pending:
            logger.debug(f"{self!r}: waiting for {len(self._queue)} ingestion task(s)")
        await self._queue.join()
        return self

    @property
    def pending(self) -> bool:
        return self._queue.pending

    def _guard_pending(self):
        if self._queue.pending:
            raise RuntimeError(
                f'{self!r} has {len(self._queue)} pending ingestion task(s), '
                'await done() before reading accumulated rules'
            )

    # ---------- 預處理 ----------

    def _preprocess(self) -> Preprocessed:
        domains, suffixes = self.domain_trie.dump()
        return Preprocessed(
            domains=domains,
            domain_suffixes=suffixes,
            domain_wildcard_regexes=[domain_wildcard_to_regex(w) for w in sorted(self.domain_wildcard)],
            ipcidr=merge_cidrs(self.ipcidr),
            ipcidr_no_resolve=merge_cidrs(self.ipcidr_no_resolve),
            ipcidr6=merge_cidrs(self.ipcidr6),
            ipcidr6_no_resolve=merge_cidrs(self.ipcidr6_no_resolve),
        )

    @property
    def preprocessed(self) -> Preprocessed:
        if self._preprocessed is None:
            self._guard_pending()
            self._preprocessed = self._preprocess()
        return self._preprocessed

    # ---------- 輸出 ----------

    def _check_metadata(self):
        if not self.title:
            raise ValueError(f'Missing title for {self!r}')
        if self.description is None:
            raise ValueError(f'Missing description for {self!r}')

    def render(self, name: str) -> Optional[List[str]]:
        """生成指定格式的完整行（含橫幅），不適用時返回 None"""
        if name not in FORMATS:
            raise ValueError(f'Unknown output format: {name}')
        self._guard_pending()
        self._check_metadata()

        fmt = FORMATS[name]
        content = fmt.emit(self)
        if content is None:
            return None
        if fmt.banner:
            return with_banner(self.title, self.description, self.date, content)
        return content

    def output_path(self, name: str, output_dir: Union[str, Path, None] = None) -> Path:
        base = Path(output_dir) if output_dir is not None else default_output_dirs()[name]
        if name == 'sgmodule' and self.mitm_sgmodule_path:
            return base / self.mitm_sgmodule_path
        return base / self.type / (self.id + FORMATS[name].extension)

    async def write_format(self, name: str, output_dir: Union[str, Path, None] = None) -> bool:
        """只寫單一格式，返回是否真正寫入"""
        await self.done()
        lines = self.render(name)
        if lines is None:
            return False
        return await compare_and_write_file(lines, self.output_path(name, output_dir))

    async def write(self, formats: Optional[Iterable[str]] = None,
                    output_dirs: Optional[Dict[str, Union[str, Path]]] = None) -> Dict[str, bool]:
        """
        並發寫出各格式，任一失敗即向上拋出。
        formats 預設為 surge/clash/singbox；存在 URL-REGEX 時額外生成 sgmodule。
        返回 {格式: 是否寫入}。
        """
        await self.done()
        self._check_metadata()

        names = list(formats) if formats is not None else ['surge', 'clash', 'singbox']
        if 'sgmodule' not in names:
            names.append('sgmodule')
        dirs = output_dirs or {}

        rendered = {}
        for name in names:
            lines = self.render(name)
            if lines is not None:
                rendered[name] = lines

        results: Dict[str, bool] = {}

        async def _write_one(name: str, lines: List[str]):
            results[name] = await compare_and_write_file(lines, self.output_path(name, dirs.get(name)))

        # 任一格式失敗即取消其餘寫入，並拋出第一個錯誤
        try:
            async with anyio.create_task_group() as tg:
                for name, lines in rendered.items():
                    tg.start_soon(_write_one, name, lines)
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from eg

        return {name: results[name] for name in rendered}
