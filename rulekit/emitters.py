import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, NamedTuple, Optional, Sequence

import orjson

from .trie import domain_sort_key

if TYPE_CHECKING:
    from .ruleset import RuleSet

SINGBOX_RULESET_VERSION = 2
BANNER_BORDER = '#########################################'
BANNER_EOF = '################## EOF ##################'

RE_URL_SCHEME = re.compile(r'^\^?(?:https?\??|http\(s\)\?)?:(?:\\?/){2}')
RE_HOST_END = re.compile(r'\\?/|:|\$')
RE_MITM_HOSTNAME = re.compile(r'^[\w*.-]+$')
RE_PORT_RANGE = re.compile(r'^(\d+)[-:](\d+)$')


# ==========================================
# 1. 通用工具
# ==========================================

def json_to_lines(data: Any) -> List[str]:
    return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode('utf-8').split('\n')


def domain_wildcard_to_regex(domain: str) -> str:
    """glob 風格通配符轉正則：'*' 任意長度，'?' 單個字元"""
    result = ['^']
    for ch in domain:
        if ch == '.':
            result.append(r'\.')
        elif ch == '*':
            result.append(r'[\w.-]*?')
        elif ch == '?':
            result.append(r'[\w.-]')
        else:
            result.append(ch)
    result.append('$')
    return ''.join(result)


def with_banner(title: str, description: Sequence[str], date: datetime,
                content: List[str]) -> List[str]:
    return [
        BANNER_BORDER,
        f'# {title}',
        f'# Last Updated: {date.isoformat()}',
        f'# Size: {len(content)}',
        *(f'# {line}' if line else '#' for line in description),
        BANNER_BORDER,
        *content,
        BANNER_EOF,
    ]


def _sorted_domainset(rs: 'RuleSet') -> List[tuple]:
    pre = rs.preprocessed
    items = [(d, False) for d in pre.domains] + [(d, True) for d in pre.domain_suffixes]
    items.sort(key=lambda item: domain_sort_key(item[0]))
    return items


def _split_ports(ports) -> Dict[str, list]:
    single = []
    ranges = []
    for port in sorted(ports):
        if port.isdigit():
            single.append(int(port))
            continue
        match = RE_PORT_RANGE.match(port)
        if match:
            ranges.append(f'{match.group(1)}:{match.group(2)}')
    return {'single': sorted(set(single)), 'range': ranges}


# ==========================================
# 2. Surge
# ==========================================

def surge(rs: 'RuleSet') -> List[str]:
    if rs.type == 'domainset':
        return [('.' + d) if is_suffix else d for d, is_suffix in _sorted_domainset(rs)]

    pre = rs.preprocessed
    lines = []
    lines.extend(f'DOMAIN,{d}' for d in pre.domains)
    lines.extend(f'DOMAIN-SUFFIX,{d}' for d in pre.domain_suffixes)
    lines.extend(f'DOMAIN-KEYWORD,{k}' for k in sorted(rs.domain_keywords))
    lines.extend(f'DOMAIN-WILDCARD,{w}' for w in sorted(rs.domain_wildcard))
    lines.extend(f'USER-AGENT,{ua}' for ua in sorted(rs.user_agent))
    lines.extend(f'PROCESS-NAME,{p}' for p in sorted(rs.process_name))
    lines.extend(f'PROCESS-NAME,{p}' for p in sorted(rs.process_path))
    lines.extend(f'URL-REGEX,{r}' for r in sorted(rs.url_regex))
    lines.extend(f'IP-CIDR,{c}' for c in pre.ipcidr)
    lines.extend(f'IP-CIDR,{c},no-resolve' for c in pre.ipcidr_no_resolve)
    lines.extend(f'IP-CIDR6,{c}' for c in pre.ipcidr6)
    lines.extend(f'IP-CIDR6,{c},no-resolve' for c in pre.ipcidr6_no_resolve)
    lines.extend(f'IP-ASN,{a}' for a in sorted(rs.ipasn))
    lines.extend(f'IP-ASN,{a},no-resolve' for a in sorted(rs.ipasn_no_resolve))
    lines.extend(f'GEOIP,{g}' for g in sorted(rs.geoip))
    lines.extend(f'GEOIP,{g},no-resolve' for g in sorted(rs.geoip_no_resolve))
    lines.extend(f'SRC-IP,{s}' for s in sorted(rs.source_ip_or_cidr))
    lines.extend(f'SRC-PORT,{p}' for p in sorted(rs.source_port))
    lines.extend(f'DEST-PORT,{p}' for p in sorted(rs.dest_port))
    lines.extend(rs.other_rules)
    return lines


# ==========================================
# 3. Clash
# ==========================================

def clash(rs: 'RuleSet') -> List[str]:
    if rs.type == 'domainset':
        return [('+.' + d) if is_suffix else d for d, is_suffix in _sorted_domainset(rs)]

    pre = rs.preprocessed
    lines = []
    lines.extend(f'DOMAIN,{d}' for d in pre.domains)
    lines.extend(f'DOMAIN-SUFFIX,{d}' for d in pre.domain_suffixes)
    lines.extend(f'DOMAIN-KEYWORD,{k}' for k in sorted(rs.domain_keywords))
    lines.extend(f'DOMAIN-REGEX,{r}' for r in pre.domain_wildcard_regexes)
    lines.extend(f'PROCESS-NAME,{p}' for p in sorted(rs.process_name))
    lines.extend(f'PROCESS-PATH,{p}' for p in sorted(rs.process_path))
    lines.extend(f'IP-CIDR,{c}' for c in pre.ipcidr)
    lines.extend(f'IP-CIDR,{c},no-resolve' for c in pre.ipcidr_no_resolve)
    lines.extend(f'IP-CIDR6,{c}' for c in pre.ipcidr6)
    lines.extend(f'IP-CIDR6,{c},no-resolve' for c in pre.ipcidr6_no_resolve)
    lines.extend(f'IP-ASN,{a}' for a in sorted(rs.ipasn))
    lines.extend(f'IP-ASN,{a},no-resolve' for a in sorted(rs.ipasn_no_resolve))
    lines.extend(f'GEOIP,{g}' for g in sorted(rs.geoip))
    lines.extend(f'GEOIP,{g},no-resolve' for g in sorted(rs.geoip_no_resolve))
    lines.extend(f'SRC-IP-CIDR,{s}' for s in sorted(rs.source_ip_or_cidr))
    lines.extend(f'SRC-PORT,{p}' for p in sorted(rs.source_port))
    lines.extend(f'DST-PORT,{p}' for p in sorted(rs.dest_port))
    return lines


# ==========================================
# 4. sing-box
# ==========================================

def singbox(rs: 'RuleSet') -> List[str]:
    pre = rs.preprocessed
    rule: Dict[str, Any] = {
        'domain': pre.domains,
        'domain_suffix': pre.domain_suffixes,
    }

    if rs.type != 'domainset':
        source_ports = _split_ports(rs.source_port)
        dest_ports = _split_ports(rs.dest_port)
        rule.update({
            'domain_keyword': sorted(rs.domain_keywords),
            'domain_regex': pre.domain_wildcard_regexes,
            'process_name': sorted(rs.process_name),
            'process_path': sorted(rs.process_path),
            'ip_cidr': pre.ipcidr + pre.ipcidr_no_resolve + pre.ipcidr6 + pre.ipcidr6_no_resolve,
            'source_ip_cidr': sorted(rs.source_ip_or_cidr),
            'source_port': source_ports['single'],
            'source_port_range': source_ports['range'],
            'port': dest_ports['single'],
            'port_range': dest_ports['range'],
        })

    return json_to_lines({
        'version': SINGBOX_RULESET_VERSION,
        'rules': [{k: v for k, v in rule.items() if v}],
    })


# ==========================================
# 5. Surge 模塊（可選）
# ==========================================

def mitm_hostname(pattern: str) -> Optional[str]:
    """從 URL 正則中提取 MITM 主機名，提取不到返回 None"""
    match = RE_URL_SCHEME.match(pattern)
    if not match:
        return None
    host = RE_HOST_END.split(pattern[match.end():], maxsplit=1)[0]
    host = host.replace('\\.', '.')
    if not host or not RE_MITM_HOSTNAME.match(host):
        return None
    return host


def sgmodule(rs: 'RuleSet') -> Optional[List[str]]:
    if not rs.url_regex:
        return None

    regexes = sorted(rs.url_regex)
    hostnames = sorted({h for h in map(mitm_hostname, regexes) if h})

    lines = [
        f'#!name=[rulekit] {rs.title}',
        f'#!desc=Last Updated: {rs.date.isoformat()} Size: {len(regexes)}',
        '',
    ]
    if hostnames:
        lines.extend(['[MITM]', f'hostname = %APPEND% {", ".join(hostnames)}', ''])
    lines.append('[URL Rewrite]')
    lines.extend(f'{r} _ reject' for r in regexes)
    return lines


# ==========================================
# 6. 格式註冊表
# ==========================================

class OutputFormat(NamedTuple):
    emit: Callable[['RuleSet'], Optional[List[str]]]
    extension: str
    banner: bool


FORMATS: Dict[str, OutputFormat] = {
    'surge': OutputFormat(surge, '.conf', True),
    'clash': OutputFormat(clash, '.txt', True),
    'singbox': OutputFormat(singbox, '.json', False),
    'sgmodule': OutputFormat(sgmodule, '.sgmodule', False),
}
