from typing import Dict, List, Optional, Tuple

_SUFFIX = '_suffix'
_EXACT = '_exact'

# 新增規則與白名單的關係
_REJECT = 'reject'
_DOWNGRADE = 'downgrade'


def domain_sort_key(domain: str) -> Tuple[str, ...]:
    """按標籤倒序排序，使同一主域名下的規則相鄰"""
    return tuple(reversed(domain.split('.')))


class HostnameTrie:
    """
    以反轉標籤存儲的域名樹，區分精確域名與後綴域名。
    - 後綴規則覆蓋自身及全部子域名，插入時會剪掉已被覆蓋的子樹
    - 白名單同樣以反轉標籤建樹，先豁免後插入與先插入後豁免結果一致
    """
    __slots__ = ('root', '_whitelist_root', '_size')

    def __init__(self):
        self.root: Dict[str, dict] = {}
        self._whitelist_root: Dict[str, dict] = {}
        self._size = 0

    def __len__(self) -> int:
        return self._size

    @staticmethod
    def _labels(domain: str) -> List[str]:
        return list(reversed(domain.split('.')))

    def _whitelist_state(self, labels: List[str], include_all_subdomain: bool) -> Optional[str]:
        node = self._whitelist_root
        for part in labels:
            if node.get(_SUFFIX):
                return _REJECT
            node = node.get(part)
            if node is None:
                return None
        if node.get(_SUFFIX) or node.get(_EXACT):
            return _REJECT
        if include_all_subdomain and any(k != _SUFFIX and k != _EXACT for k in node):
            # 後綴規則會覆蓋被豁免的子域名
            return _DOWNGRADE
        return None

    def add(self, domain: str, include_all_subdomain: bool = False, suffix_offset: int = 0) -> bool:
        """
        插入域名，返回是否真正寫入。
        suffix_offset: 從第幾個字元開始才是域名本體（".example.com" 傳 1）
        後綴規則總是優先於其覆蓋範圍內的精確域名。
        覆蓋了白名單域名的後綴規則降級為精確域名寫入。
        """
        if suffix_offset:
            domain = domain[suffix_offset:]
        if not domain:
            return False

        labels = self._labels(domain)
        state = self._whitelist_state(labels, include_all_subdomain)
        if state == _REJECT:
            return False
        if state == _DOWNGRADE:
            include_all_subdomain = False

        node = self.root
        for part in labels:
            if node.get(_SUFFIX):
                return False
            node = node.setdefault(part, {})

        if node.get(_SUFFIX):
            return False

        if include_all_subdomain:
            removed = self._count(node)
            node.clear()
            node[_SUFFIX] = True
            self._size += 1 - removed
            return True

        if node.get(_EXACT):
            return False
        node[_EXACT] = True
        self._size += 1
        return True

    def whitelist(self, domain: str):
        """
        豁免域名："example.com" 移除其精確與後綴規則；
        ".example.com" 連同全部子域名一併移除。
        覆蓋該域名的上層後綴規則降級為精確域名。
        """
        subtree = domain[:1] == '.'
        if subtree:
            domain = domain[1:]
        if not domain:
            return

        labels = self._labels(domain)
        marker = self._whitelist_root
        for part in labels:
            marker = marker.setdefault(part, {})
        marker[_SUFFIX if subtree else _EXACT] = True

        parents = []
        node = self.root
        for part in labels:
            if node.pop(_SUFFIX, None):
                # 上層後綴規則覆蓋了被豁免的域名，降級為精確匹配
                node[_EXACT] = True
            if part not in node:
                return
            parents.append((node, part))
            node = node[part]

        if subtree:
            self._size -= self._count(node)
            node.clear()
        else:
            if node.pop(_EXACT, None):
                self._size -= 1
            if node.pop(_SUFFIX, None):
                self._size -= 1

        # 清理空節點
        for parent, part in reversed(parents):
            if parent[part]:
                break
            del parent[part]

    @staticmethod
    def _count(node: dict) -> int:
        total = 0
        stack = [node]
        while stack:
            current = stack.pop()
            for key, child in current.items():
                if key == _SUFFIX or key == _EXACT:
                    total += 1
                else:
                    stack.append(child)
        return total

    def contains(self, domain: str) -> bool:
        """域名是否被現有規則（精確或後綴）命中"""
        node = self.root
        for part in self._labels(domain):
            if node.get(_SUFFIX):
                return True
            if part not in node:
                return False
            node = node[part]
        return bool(node.get(_SUFFIX) or node.get(_EXACT))

    def dump(self) -> Tuple[List[str], List[str]]:
        """返回 (精確域名, 後綴域名)，均已排序"""
        exact = []
        suffix = []
        stack = [('', self.root)]
        while stack:
            current_domain, node = stack.pop()
            for part, child in node.items():
                if part == _SUFFIX:
                    suffix.append(current_domain)
                    continue
                if part == _EXACT:
                    exact.append(current_domain)
                    continue
                new_domain = f"{part}.{current_domain}" if current_domain else part
                stack.append((new_domain, child))
        return sorted(exact, key=domain_sort_key), sorted(suffix, key=domain_sort_key)
