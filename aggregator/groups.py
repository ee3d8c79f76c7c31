"""
GroupSynthesizer:
- для каждой пары (источник, регион) с совпадениями строит urltest-группу
- состав группы: уникальные tag'и нод, порядок первого появления
- параметры health-check фиксированные (policy constants), берутся из config.yaml
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .classifier import RegionClassifier
from .parser import Node

DEFAULT_PROBE_URL = "https://www.gstatic.com/generate_204"
DEFAULT_INTERVAL = "3m"
DEFAULT_TOLERANCE = 150


def unique(items: Iterable[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


@dataclass(frozen=True)
class HealthCheck:
    url: str = DEFAULT_PROBE_URL
    interval: str = DEFAULT_INTERVAL
    tolerance: int = DEFAULT_TOLERANCE

    @classmethod
    def from_config(cls, cfg: Optional[Dict]) -> "HealthCheck":
        cfg = cfg or {}
        return cls(
            url=cfg.get("url") or DEFAULT_PROBE_URL,
            interval=str(cfg.get("interval") or DEFAULT_INTERVAL),
            tolerance=int(cfg.get("tolerance", DEFAULT_TOLERANCE)),
        )


@dataclass(frozen=True)
class RegionalGroup:
    source: str
    region: str
    tag: str
    members: Tuple[str, ...]
    health: HealthCheck = field(default_factory=HealthCheck)

    def to_outbound(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "type": "urltest",
            "outbounds": list(self.members),
            "url": self.health.url,
            "interval": self.health.interval,
            "tolerance": self.health.tolerance,
        }


@dataclass(frozen=True)
class GroupIndex:
    """Snapshot of every synthesized group, source-major order."""
    groups: Tuple[RegionalGroup, ...] = ()
    region_order: Tuple[str, ...] = ()

    def by_region(self, code: str) -> List[str]:
        return [g.tag for g in self.groups if g.region == code]

    def by_regions(self, codes: Iterable[str]) -> List[str]:
        tags: List[str] = []
        for code in codes:
            tags.extend(self.by_region(code))
        return tags

    def to_outbounds(self) -> List[Dict[str, Any]]:
        return [g.to_outbound() for g in self.groups]

    def __len__(self) -> int:
        return len(self.groups)


def group_tag(flag: str, region: str, source: str) -> str:
    label = f"{region}-{source}"
    return f"{flag} {label}" if flag else label


class GroupSynthesizer:
    def __init__(self, classifier: RegionClassifier, health: Optional[HealthCheck] = None):
        self.classifier = classifier
        self.health = health or HealthCheck()

    def synthesize(self, source: str, nodes: List[Node]) -> List[RegionalGroup]:
        """Группы одного источника; пустые регионы пропускаются."""
        classified = [(n, self.classifier.classify(n)) for n in nodes]

        groups: List[RegionalGroup] = []
        for region in self.classifier.table:
            matched = [n.tag for n, codes in classified if region.code in codes]
            if not matched:
                continue
            groups.append(
                RegionalGroup(
                    source=source,
                    region=region.code,
                    tag=group_tag(region.flag, region.code, source),
                    members=tuple(unique(matched)),
                    health=self.health,
                )
            )
        return groups

    def synthesize_all(self, sources: Mapping[str, List[Node]]) -> GroupIndex:
        groups: List[RegionalGroup] = []
        for source, nodes in sources.items():
            groups.extend(self.synthesize(source, nodes))
        return GroupIndex(groups=tuple(groups), region_order=tuple(self.classifier.table.codes))
