from typing import NamedTuple, Optional

# 規則類型 -> 目標桶
RULE_MAP = {
    'DOMAIN': 'domain',
    'DOMAIN-SUFFIX': 'domain_suffix',
    'DOMAIN-KEYWORD': 'domain_keyword',
    'DOMAIN-WILDCARD': 'domain_wildcard',
    'USER-AGENT': 'user_agent',
    'PROCESS-NAME': 'process_name',
    'URL-REGEX': 'url_regex',
    'SRC-IP': 'source_ip_or_cidr',
    'SRC-PORT': 'source_port',
    'DEST-PORT': 'dest_port',
}

# IP 類規則按第三欄是否為 no-resolve 分流
IP_RULE_MAP = {
    'IP-CIDR': ('ipcidr', 'ipcidr_no_resolve'),
    'IP-CIDR6': ('ipcidr6', 'ipcidr6_no_resolve'),
    'IP-ASN': ('ipasn', 'ipasn_no_resolve'),
    'GEOIP': ('geoip', 'geoip_no_resolve'),
}

OTHER = 'other'


class Classified(NamedTuple):
    bucket: str
    value: str


def is_process_path(value: str) -> bool:
    return '/' in value or '\\' in value


def classify_rule_line(line: str) -> Optional[Classified]:
    """
    解析 "TYPE,VALUE[,ARG]" 形式的規則行。
    空行返回 None；無法識別的類型、缺少值的行原樣歸入 OTHER。
    """
    if not line:
        return None

    splitted = line.split(',')
    rtype = splitted[0]
    value = splitted[1] if len(splitted) > 1 else ''
    arg = splitted[2] if len(splitted) > 2 else None

    if not value:
        return Classified(OTHER, line)

    if rtype in IP_RULE_MAP:
        resolve, no_resolve = IP_RULE_MAP[rtype]
        return Classified(no_resolve if arg == 'no-resolve' else resolve, value)

    bucket = RULE_MAP.get(rtype)
    if bucket is None:
        return Classified(OTHER, line)

    if bucket == 'url_regex':
        # 正則中可能含逗號
        return Classified(bucket, ','.join(splitted[1:]))
    if bucket == 'process_name' and is_process_path(value):
        return Classified('process_path', value)
    return Classified(bucket, value)


def classify_domainset_line(line: str) -> Optional[Classified]:
    """域名集合：'.' 開頭為後綴規則（已去掉前導點），其餘為精確域名"""
    if not line:
        return None
    if line[0] == '.':
        if len(line) == 1:
            return None
        return Classified('domain_suffix', line[1:])
    return Classified('domain', line)
