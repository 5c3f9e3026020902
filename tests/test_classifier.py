import pytest

from rulekit.classifier import OTHER, classify_domainset_line, classify_rule_line


@pytest.mark.parametrize('line, bucket, value', [
    ('DOMAIN,example.com', 'domain', 'example.com'),
    ('DOMAIN-SUFFIX,example.com', 'domain_suffix', 'example.com'),
    ('DOMAIN-KEYWORD,adservice', 'domain_keyword', 'adservice'),
    ('DOMAIN-WILDCARD,*.ads.*.com', 'domain_wildcard', '*.ads.*.com'),
    ('USER-AGENT,Instagram*', 'user_agent', 'Instagram*'),
    ('PROCESS-NAME,Telegram', 'process_name', 'Telegram'),
    ('PROCESS-NAME,/usr/bin/curl', 'process_path', '/usr/bin/curl'),
    ('PROCESS-NAME,C:\\Program Files\\app.exe', 'process_path', 'C:\\Program Files\\app.exe'),
    ('URL-REGEX,^https?://a\\.com/x', 'url_regex', '^https?://a\\.com/x'),
    ('IP-CIDR,1.1.1.0/24', 'ipcidr', '1.1.1.0/24'),
    ('IP-CIDR,1.1.1.0/24,no-resolve', 'ipcidr_no_resolve', '1.1.1.0/24'),
    ('IP-CIDR6,2001:db8::/32', 'ipcidr6', '2001:db8::/32'),
    ('IP-CIDR6,2001:db8::/32,no-resolve', 'ipcidr6_no_resolve', '2001:db8::/32'),
    ('IP-ASN,13335', 'ipasn', '13335'),
    ('IP-ASN,13335,no-resolve', 'ipasn_no_resolve', '13335'),
    ('GEOIP,CN', 'geoip', 'CN'),
    ('GEOIP,CN,no-resolve', 'geoip_no_resolve', 'CN'),
    ('SRC-IP,192.168.1.2', 'source_ip_or_cidr', '192.168.1.2'),
    ('SRC-PORT,5353', 'source_port', '5353'),
    ('DEST-PORT,443', 'dest_port', '443'),
])
def test_every_rule_type_routes_to_one_bucket(line, bucket, value):
    assert tuple(classify_rule_line(line)) == (bucket, value)


def test_url_regex_keeps_commas():
    result = classify_rule_line('URL-REGEX,^https?://x\\.com/a{1,3}$')
    assert result.bucket == 'url_regex'
    assert result.value == '^https?://x\\.com/a{1,3}$'


def test_resolve_argument_other_than_no_resolve_is_ignored():
    assert classify_rule_line('IP-CIDR,10.0.0.0/8,extended').bucket == 'ipcidr'


def test_unknown_type_is_passed_through_verbatim():
    line = 'AND,((DOMAIN,a.com),(DEST-PORT,443))'
    assert tuple(classify_rule_line(line)) == (OTHER, line)


def test_type_tokens_are_case_sensitive():
    assert classify_rule_line('domain,example.com').bucket == OTHER


def test_line_without_comma_is_passed_through():
    assert tuple(classify_rule_line('MATCH')) == (OTHER, 'MATCH')


def test_known_type_without_value_is_passed_through():
    assert tuple(classify_rule_line('DOMAIN,')) == (OTHER, 'DOMAIN,')


def test_blank_line_is_dropped():
    assert classify_rule_line('') is None


def test_domainset_lines():
    assert tuple(classify_domainset_line('.example.com')) == ('domain_suffix', 'example.com')
    assert tuple(classify_domainset_line('example.com')) == ('domain', 'example.com')
    assert classify_domainset_line('') is None
    assert classify_domainset_line('.') is None
