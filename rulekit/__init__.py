from .cidr import ip_to_cidr, merge_cidrs
from .classifier import Classified, classify_domainset_line, classify_rule_line
from .emitters import FORMATS, domain_wildcard_to_regex, json_to_lines, with_banner
from .publisher import compare_and_write_file, file_equal
from .ruleset import Preprocessed, RuleSet
from .sequencer import IngestionQueue
from .trie import HostnameTrie

__version__ = '0.1.0'

__all__ = [
    'Classified',
    'FORMATS',
    'HostnameTrie',
    'IngestionQueue',
    'Preprocessed',
    'RuleSet',
    'classify_domainset_line',
    'classify_rule_line',
    'compare_and_write_file',
    'domain_wildcard_to_regex',
    'file_equal',
    'ip_to_cidr',
    'json_to_lines',
    'merge_cidrs',
    'with_banner',
]
