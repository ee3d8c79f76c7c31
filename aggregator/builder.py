"""
ProfileBuilder — ядро: filter -> classify -> synthesize -> compose -> assemble.

На вход: шаблон (dict) и упорядоченный {имя источника: [Node]}.
Каждый этап возвращает новый снимок, ничего не мутирует.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .assembler import Assembler
from .classifier import RegionClassifier, RegionTable
from .filters import FilterStats, NodeFilter
from .groups import GroupIndex, GroupSynthesizer, HealthCheck
from .parser import Node
from .policy import PolicyComposer, PolicyTable


class TemplateError(RuntimeError):
    """Template is unavailable or malformed; the whole build fails."""


@dataclass
class BuildResult:
    document: Dict
    index: GroupIndex
    nodes: List[Node]
    filter_stats: Dict[str, FilterStats] = field(default_factory=dict)

    @property
    def total_stats(self) -> FilterStats:
        total = FilterStats()
        for stats in self.filter_stats.values():
            total = total.merge(stats)
        return total


def validate_template(template) -> Dict:
    if not isinstance(template, dict):
        raise TemplateError("template must be a JSON object")
    if not isinstance(template.get("outbounds"), list):
        raise TemplateError("template has no 'outbounds' list")
    return template


class ProfileBuilder:
    def __init__(self, config: Optional[Dict] = None):
        self.config = config or {}

        self.regions = RegionTable.from_config(self.config.get("regions"))
        self.filterer = NodeFilter(self.config)
        self.classifier = RegionClassifier(self.regions)
        self.synthesizer = GroupSynthesizer(
            self.classifier, HealthCheck.from_config(self.config.get("healthcheck"))
        )
        self.policy = PolicyTable.from_config(self.config.get("policy"), self.regions.codes)
        self.composer = PolicyComposer(self.policy, self.classifier)
        self.assembler = Assembler()

    def filter_sources(
        self, sources: Mapping[str, List[Node]]
    ) -> Tuple[Dict[str, List[Node]], Dict[str, FilterStats]]:
        """Отфильтровать каждый источник отдельно; пустые источники выпадают."""
        accepted: Dict[str, List[Node]] = {}
        stats: Dict[str, FilterStats] = {}
        for name, nodes in sources.items():
            kept, stats[name] = self.filterer.apply(nodes)
            if kept:
                accepted[name] = kept
        return accepted, stats

    def synthesize(self, sources: Mapping[str, List[Node]]) -> GroupIndex:
        return self.synthesizer.synthesize_all(sources)

    def compose(self, template: Dict, index: GroupIndex, nodes: List[Node]) -> Dict:
        return self.composer.compose(template, index, nodes)

    def assemble(self, template: Dict, index: GroupIndex, nodes: List[Node]) -> Dict:
        return self.assembler.assemble(template, index, nodes)

    def build(self, template: Dict, sources: Mapping[str, List[Node]]) -> BuildResult:
        template = validate_template(template)

        accepted, stats = self.filter_sources(sources)
        nodes = [n for source_nodes in accepted.values() for n in source_nodes]

        index = self.synthesize(accepted)
        composed = self.compose(template, index, nodes)
        document = self.assemble(composed, index, nodes)

        return BuildResult(document=document, index=index, nodes=nodes, filter_stats=stats)
