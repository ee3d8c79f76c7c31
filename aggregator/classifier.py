"""
RegionClassifier:
- регион определяется только по имени ноды (tag), структурных метаданных нет
- таблица регионов: код -> флаг + ключевые слова, сравнение без учёта регистра
- одна нода может попасть в несколько регионов ("US" + "SIN" и т.п.)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .parser import Node
from .settings import ConfigError

DEFAULT_REGIONS: Dict[str, Dict] = {
    "HK": {"flag": "🇭🇰", "keywords": ["HK", "香港", "HONGKONG", "HKG", "KONG"]},
    "TW": {"flag": "🇹🇼", "keywords": ["TW", "台湾", "TAIWAN", "ROC", "台北"]},
    "SG": {"flag": "🇸🇬", "keywords": ["SG", "新加坡", "SINGAPORE", "SIN", "狮城"]},
    "JP": {"flag": "🇯🇵", "keywords": ["JP", "日本", "JAPAN", "TOKYO", "OSAKA", "东京", "大阪"]},
    "US": {"flag": "🇺🇸", "keywords": ["US", "美国", "AMERICA", "LAX", "SFO", "SEA"]},
}


@dataclass(frozen=True)
class Region:
    code: str
    flag: str
    keywords: Tuple[str, ...]

    def matches(self, label: str) -> bool:
        label_upper = (label or "").upper()
        return any(kw in label_upper for kw in self.keywords)


class RegionTable:
    """Ordered, read-only mapping region code -> Region."""

    def __init__(self, regions: Iterable[Region]):
        self._regions: Dict[str, Region] = {}
        for region in regions:
            if region.code in self._regions:
                raise ConfigError(f"duplicate region code: {region.code}")
            self._regions[region.code] = region

    @classmethod
    def from_config(cls, regions_cfg: Optional[Dict]) -> "RegionTable":
        regions_cfg = regions_cfg or DEFAULT_REGIONS
        regions: List[Region] = []
        for code, spec in regions_cfg.items():
            spec = spec or {}
            keywords = tuple(str(k).upper() for k in (spec.get("keywords") or []) if k)
            if not keywords:
                raise ConfigError(f"region {code} has no keywords")
            regions.append(Region(code=str(code), flag=str(spec.get("flag") or ""), keywords=keywords))
        return cls(regions)

    def __iter__(self):
        return iter(self._regions.values())

    @property
    def codes(self) -> List[str]:
        return list(self._regions)


class RegionClassifier:
    def __init__(self, table: Optional[RegionTable] = None):
        self.table = table or RegionTable.from_config(None)

    def classify(self, node: Node) -> Set[str]:
        """Все регионы, ключевые слова которых встречаются в tag."""
        return {region.code for region in self.table if region.matches(node.tag)}

    def is_unclassified(self, node: Node) -> bool:
        return not any(region.matches(node.tag) for region in self.table)
