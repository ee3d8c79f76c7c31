"""
PolicyComposer:
- таблица политик: tag селектора -> рецепт (какие региональные группы он видит)
- всё, чего нет в таблице, получает полный fan-out по всем регионам
- переписываются только outbound'ы с type == "selector", ровно один раз
- первым элементом у каждого селектора идёт мастер-селектор (anchor)
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .classifier import RegionClassifier
from .groups import GroupIndex, unique
from .parser import Node
from .settings import ConfigError

DEFAULT_MASTER_TAG = "🗽 节点选择"
DEFAULT_DIRECT_TAG = "🎯 全球直连"


class RecipeKind(str, Enum):
    MASTER = "master"
    FAN_OUT = "fan_out"
    REGIONS = "regions"
    DIRECT_PLUS_REGIONS = "direct_plus_regions"
    DIRECT_ONLY = "direct_only"
    ANCHOR_ONLY = "anchor_only"


@dataclass(frozen=True)
class Recipe:
    kind: RecipeKind
    regions: Tuple[str, ...] = ()


FAN_OUT = Recipe(RecipeKind.FAN_OUT)

# порядок регионов в fan-out и у мастера; TW последним
DEFAULT_FANOUT_ORDER = ("HK", "SG", "JP", "US", "TW")

DEFAULT_RULES: Dict[str, Dict] = {
    "🦚 PeacockTV": {"kind": "regions", "regions": ["US"]},
    "🅾️ OpenAI": {"kind": "regions", "regions": ["US"]},
    "🌀 Hamivideo": {"kind": "regions", "regions": ["TW"]},
    "📹️ Viu": {"kind": "regions", "regions": ["HK"]},
    "🎞 Emby": {"kind": "direct_plus_regions", "regions": ["HK", "SG", "US"]},
    "🍎 Apple": {"kind": "direct_only"},
    "🐧 Tencent": {"kind": "direct_only"},
    "🐟 漏网之鱼": {"kind": "anchor_only"},
    "🌐 GLOBAL": {"kind": "anchor_only"},
}


def parse_recipe(tag: str, spec: Any, known_regions: Iterable[str]) -> Recipe:
    if isinstance(spec, str):
        spec = {"kind": spec}
    if not isinstance(spec, dict):
        raise ConfigError(f"policy rule for '{tag}' must be a mapping")

    try:
        kind = RecipeKind(spec.get("kind", RecipeKind.FAN_OUT.value))
    except ValueError:
        raise ConfigError(f"policy rule for '{tag}': unknown kind {spec.get('kind')!r}") from None

    regions = tuple(str(r) for r in (spec.get("regions") or []))
    if kind in (RecipeKind.REGIONS, RecipeKind.DIRECT_PLUS_REGIONS) and not regions:
        raise ConfigError(f"policy rule for '{tag}': '{kind.value}' needs regions")

    known = set(known_regions)
    orphans = [r for r in regions if r not in known]
    if orphans:
        raise ConfigError(f"policy rule for '{tag}': unknown regions {orphans}")

    return Recipe(kind=kind, regions=regions)


def resolve_fanout_order(order: Any, known_regions: Iterable[str]) -> Tuple[str, ...]:
    """Заданный порядок + регионы таблицы, которых в нём нет (в порядке таблицы)."""
    known = list(known_regions)
    if order is None:
        listed = [code for code in DEFAULT_FANOUT_ORDER if code in known]
    else:
        if not isinstance(order, list):
            raise ConfigError("policy.fanout_order must be a list of region codes")
        listed = [str(code) for code in order]
        orphans = [code for code in listed if code not in known]
        if orphans:
            raise ConfigError(f"policy.fanout_order: unknown regions {orphans}")
    return tuple(unique(listed + known))


class PolicyTable:
    """Lookup selector tag -> Recipe with an explicit fan-out default."""

    def __init__(
        self,
        rules: Dict[str, Recipe],
        master_tag: str = DEFAULT_MASTER_TAG,
        direct_tag: str = DEFAULT_DIRECT_TAG,
        default: Recipe = FAN_OUT,
        fanout_order: Tuple[str, ...] = DEFAULT_FANOUT_ORDER,
    ):
        self.master_tag = master_tag
        self.fanout_order = tuple(fanout_order)
        self.direct_tag = direct_tag
        self.default = default
        self._rules = dict(rules)
        self._rules[master_tag] = Recipe(RecipeKind.MASTER)

    @classmethod
    def from_config(cls, policy_cfg: Optional[Dict], known_regions: Iterable[str]) -> "PolicyTable":
        policy_cfg = policy_cfg or {}
        known = list(known_regions)

        rules_cfg = policy_cfg.get("rules")
        if rules_cfg is None:
            rules_cfg = DEFAULT_RULES

        rules = {tag: parse_recipe(tag, spec, known) for tag, spec in rules_cfg.items()}
        return cls(
            rules,
            master_tag=policy_cfg.get("master") or DEFAULT_MASTER_TAG,
            direct_tag=policy_cfg.get("direct") or DEFAULT_DIRECT_TAG,
            fanout_order=resolve_fanout_order(policy_cfg.get("fanout_order"), known),
        )

    def lookup(self, tag: str) -> Recipe:
        return self._rules.get(tag, self.default)


class PolicyComposer:
    def __init__(self, table: PolicyTable, classifier: RegionClassifier):
        self.table = table
        self.classifier = classifier

    def compose(self, template: Dict, index: GroupIndex, nodes: List[Node]) -> Dict:
        """Вернуть копию шаблона с переписанными outbounds у всех селекторов."""
        result = copy.deepcopy(template)
        result["outbounds"] = [
            self._rewrite(group, index, nodes) for group in result.get("outbounds", [])
        ]
        return result

    def _rewrite(self, group: Any, index: GroupIndex, nodes: List[Node]) -> Any:
        if not isinstance(group, dict) or group.get("type") != "selector":
            return group
        group["outbounds"] = self.members_for(group.get("tag"), index, nodes)
        return group

    def members_for(self, tag: str, index: GroupIndex, nodes: List[Node]) -> List[str]:
        recipe = self.table.lookup(tag)

        if recipe.kind is RecipeKind.MASTER:
            # мастер: все группы + ноды без региона; себя самого не содержит
            others = [n.tag for n in nodes if self.classifier.is_unclassified(n)]
            return unique(index.by_regions(self.table.fanout_order) + others)

        keys = [self.table.master_tag]
        if recipe.kind is RecipeKind.FAN_OUT:
            keys.extend(index.by_regions(self.table.fanout_order))
        elif recipe.kind is RecipeKind.REGIONS:
            keys.extend(index.by_regions(recipe.regions))
        elif recipe.kind is RecipeKind.DIRECT_PLUS_REGIONS:
            keys.append(self.table.direct_tag)
            keys.extend(index.by_regions(recipe.regions))
        elif recipe.kind is RecipeKind.DIRECT_ONLY:
            keys.append(self.table.direct_tag)
        # ANCHOR_ONLY: только мастер

        return unique(keys)
