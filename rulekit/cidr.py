import ipaddress
import logging
from typing import Iterable, List, Tuple

logger = logging.getLogger(__name__)


def ip_version(ip: str) -> int:
    """按字面判斷地址族，Clash 規則常把 IPv6 寫在 IP-CIDR 下"""
    return 6 if ':' in ip else 4


def ip_to_cidr(ip: str, version: int) -> str:
    """補全裸 IP 的前綴長度，已含 '/' 的原樣返回"""
    if '/' in ip:
        return ip
    if version == 4:
        return ip + '/32'
    return ip + '/128'


def _merge_intervals(intervals: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """合併重疊或相鄰區間"""
    if not intervals:
        return []

    intervals.sort(key=lambda x: x[0])
    merged = []
    curr_start, curr_end = intervals[0]

    for next_start, next_end in intervals[1:]:
        if next_start <= curr_end + 1:
            curr_end = max(curr_end, next_end)
        else:
            merged.append((curr_start, curr_end))
            curr_start, curr_end = next_start, next_end

    merged.append((curr_start, curr_end))
    return merged


def merge_cidrs(cidrs: Iterable[str]) -> List[str]:
    """
    區間合併後重新切分為最少的 CIDR。
    v4 在前 v6 在後，無法解析的條目記錄警告後丟棄。
    """
    v4_ranges = []
    v6_ranges = []

    for cidr in cidrs:
        try:
            net = ipaddress.ip_network(cidr, strict=False)
        except ValueError:
            logger.warning(f"無效 CIDR，已丟棄: {cidr}")
            continue
        target = v4_ranges if net.version == 4 else v6_ranges
        target.append((int(net.network_address), int(net.broadcast_address)))

    result = []
    for ranges, addr_cls in ((v4_ranges, ipaddress.IPv4Address), (v6_ranges, ipaddress.IPv6Address)):
        for start, end in _merge_intervals(ranges):
            nets = ipaddress.summarize_address_range(addr_cls(start), addr_cls(end))
            result.extend(str(n) for n in nets)
    return result
