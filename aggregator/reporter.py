"""
Reporter:
- собирает markdown-отчёт по сборке профиля
- сохраняет в sources_meta/build_report.md
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .builder import BuildResult
from .fetcher import SourceBatch


class Reporter:
    def __init__(self, out_path: Optional[str] = "sources_meta/build_report.md"):
        self.out_path = Path(out_path) if out_path else None

    def generate(self, batch: SourceBatch, result: BuildResult) -> str:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        total = result.total_stats
        lines: List[str] = []

        lines.append("# Profile Build Report")
        lines.append("")
        lines.append(f"- Generated at: **{ts}**")
        lines.append(f"- Sources fetched: **{len(batch.nodes)}**  failed: **{len(batch.failures)}**")
        lines.append(f"- Nodes after filters: **{len(result.nodes)}**")
        lines.append(f"- Regional groups: **{len(result.index)}**")
        lines.append("")

        # Filter stats
        lines.append("## Filter stats")
        lines.append("")
        lines.append(f"- Before: `{total.before}`")
        lines.append(f"- Dropped by type: `{total.dropped_type}`")
        lines.append(f"- Dropped as high-rate: `{total.dropped_rate}`")
        lines.append(f"- Dropped by banned keywords: `{total.dropped_banned}`")
        lines.append(f"- After: `{total.after}`")
        lines.append("")

        # Sources table
        lines.append("## Sources")
        lines.append("")
        if not batch.nodes and not batch.failures:
            lines.append("_No sources configured_")
        else:
            lines.append("| Source | Status | Records | Kept | Groups |")
            lines.append("|--------|--------|---------|------|--------|")
            groups_by_source = self._groups_by_source(result)
            for name, nodes in batch.nodes.items():
                stats = result.filter_stats.get(name)
                kept = stats.after if stats else 0
                lines.append(
                    f"| `{name}` | ok | {len(nodes)} | {kept} | "
                    f"{', '.join(groups_by_source.get(name, [])) or '-'} |"
                )
            for name, error in batch.failures.items():
                lines.append(f"| `{name}` | failed: {error} | - | - | - |")
        lines.append("")

        # Regions
        lines.append("## Regions")
        lines.append("")
        for code in result.index.region_order:
            tags = result.index.by_region(code)
            lines.append(f"- {code}: {len(tags)} group(s)")

        report = "\n".join(lines) + "\n"
        if self.out_path is not None:
            self.out_path.parent.mkdir(parents=True, exist_ok=True)
            self.out_path.write_text(report, encoding="utf-8")
        return report

    @staticmethod
    def _groups_by_source(result: BuildResult) -> Dict[str, List[str]]:
        by_source: Dict[str, List[str]] = {}
        for group in result.index.groups:
            by_source.setdefault(group.source, []).append(group.region)
        return by_source
