"""
Assembler:
- порядок outbounds: шаблон (селекторы уже переписаны) -> региональные группы -> ноды
- ноды дедуплицируются по tag, побеждает первое появление (порядок источников)
- содержимое нод не трогаем
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List

from .groups import GroupIndex
from .parser import Node


def dedup_nodes(nodes: List[Node]) -> List[Node]:
    """Убираем дубли по tag."""
    seen = set()
    result: List[Node] = []

    for n in nodes:
        if n.tag in seen:
            continue
        seen.add(n.tag)
        result.append(n)

    return result


class Assembler:
    def assemble(self, template: Dict, index: GroupIndex, nodes: List[Node]) -> Dict:
        document = copy.copy(template)

        # записи шаблона без type выкидываем, остальные оставляем как есть
        template_entries: List[Any] = [
            o for o in template.get("outbounds", []) if isinstance(o, dict) and o.get("type")
        ]
        node_entries = [n.to_outbound() for n in dedup_nodes(nodes)]

        document["outbounds"] = template_entries + index.to_outbounds() + node_entries
        return document
