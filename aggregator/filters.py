"""
NodeFilter:
- отбрасывает служебные outbound'ы (selector / urltest / direct / block / dns)
- отбрасывает ноды с повышенным множителем трафика в имени (2.5x, 1.5x ...)
- отбрасывает "ноды"-объявления: срок действия, остаток трафика, сайт и т.п.

Смотрим только на tag и type, остальные поля не участвуют.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Pattern, Tuple

from .parser import Node

DEFAULT_EXCLUDED_TYPES = ("selector", "urltest", "direct", "block", "dns")

# 1.1x и выше; 1.0x и 1.05x проходят
DEFAULT_HIGH_RATE_PATTERN = r"(?:[1-9]\.[1-9]|[2-9]\.\d+)x"

DEFAULT_BANNED_KEYWORDS = (
    "过期", "剩余", "网址", "官网", "流量", "到期", "重置",
    "有效", "套餐", "群组", "通知", "地址", "购买", "维护",
)


@dataclass
class FilterStats:
    before: int = 0
    dropped_type: int = 0
    dropped_rate: int = 0
    dropped_banned: int = 0
    after: int = 0

    def to_dict(self) -> Dict:
        return {
            "before": self.before,
            "dropped_type": self.dropped_type,
            "dropped_rate": self.dropped_rate,
            "dropped_banned": self.dropped_banned,
            "after": self.after,
        }

    def merge(self, other: "FilterStats") -> "FilterStats":
        return FilterStats(
            before=self.before + other.before,
            dropped_type=self.dropped_type + other.dropped_type,
            dropped_rate=self.dropped_rate + other.dropped_rate,
            dropped_banned=self.dropped_banned + other.dropped_banned,
            after=self.after + other.after,
        )


def compile_banned(keywords: Iterable[str]) -> Pattern:
    words = [re.escape(k) for k in keywords if k]
    if not words:
        # ничего не матчит
        return re.compile(r"(?!x)x")
    return re.compile("|".join(words), re.IGNORECASE)


class NodeFilter:
    def __init__(self, config: Dict):
        self.config = config or {}

        filters_cfg = self.config.get("filters", {}) or {}
        self.excluded_types = set(
            filters_cfg.get("excluded_types") or DEFAULT_EXCLUDED_TYPES
        )
        self.high_rate = re.compile(
            filters_cfg.get("high_rate_pattern") or DEFAULT_HIGH_RATE_PATTERN,
            re.IGNORECASE,
        )
        banned = filters_cfg.get("banned_keywords")
        if banned is None:
            banned = DEFAULT_BANNED_KEYWORDS
        self.banned = compile_banned(banned)

    def apply(self, nodes: List[Node]) -> Tuple[List[Node], FilterStats]:
        """Применить type / high-rate / banned фильтры к нодам одного источника."""
        stats = FilterStats()
        stats.before = len(nodes)

        result: List[Node] = []
        for n in nodes:
            if not self.is_endpoint(n):
                stats.dropped_type += 1
                continue
            if self.is_high_rate(n):
                stats.dropped_rate += 1
                continue
            if self.is_banned(n):
                stats.dropped_banned += 1
                continue
            result.append(n)

        stats.after = len(result)
        return result, stats

    def is_endpoint(self, node: Node) -> bool:
        return bool(node.type) and node.type not in self.excluded_types

    def is_high_rate(self, node: Node) -> bool:
        return self.high_rate.search(node.tag or "") is not None

    def is_banned(self, node: Node) -> bool:
        return self.banned.search(node.tag or "") is not None
