#!/usr/bin/env python3
"""
pipeline.py
Главный оркестратор сборки sing-box профиля.

Шаги:
  1. Template    — скачать базовый шаблон (GitHub raw или локальный файл)
  2. Ingest      — параллельно скачать все источники (config.yaml + SUB_LINK_*)
  3. Build       — фильтр, urltest-группы по (источник, регион), селекторы по таблице политик
  4. Write       — профиль JSON → out/
  5. Report      — markdown summary → sources_meta/build_report.md
"""

from __future__ import annotations

import json
import os
import sys
import time
from pathlib import Path
from typing import Dict, Optional

from aggregator.builder import BuildResult, ProfileBuilder, TemplateError, validate_template
from aggregator.fetcher import SourceBatch, SourceFetcher
from aggregator.reporter import Reporter
from aggregator.settings import ConfigError, Settings, load_config


class ProfilePipeline:

    def __init__(
        self,
        config_path: Optional[str] = "config.yaml",
        template: Optional[str] = None,
        output: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
        fetcher: Optional[SourceFetcher] = None,
    ):
        self.config_path = config_path
        self.config = self._load_config()
        self.settings = Settings.from_config(self.config, environ)
        self.debug = self.settings.debug

        out_cfg = self.config.get("output", {}) or {}
        self.output = Path(output or out_cfg.get("path", "out/main-profile.json"))
        self.template_location = template or self.settings.template_url

        self.builder = ProfileBuilder(self.config)
        self.fetcher = fetcher or SourceFetcher(
            timeout=self.settings.timeout,
            max_workers=self.settings.max_workers,
            github_token=self.settings.github_token,
            debug=self.debug,
        )
        self.reporter = Reporter(out_cfg.get("report", "sources_meta/build_report.md"))

    def run(self) -> int:
        t_start = time.monotonic()
        self._banner("sing-box Profile Builder")

        try:
            template = self._step1_template()
        except TemplateError as exc:
            print(f"    ✗ template: {exc}")
            return 1

        batch = self._step2_ingest()
        result = self._step3_build(template, batch)
        self._step4_write(result)
        self._step5_report(batch, result)

        elapsed = time.monotonic() - t_start
        self._banner(f"Done in {elapsed:.1f}s  |  {len(result.document['outbounds'])} outbounds in {self.output}")
        return 0

    # ── шаг 1: Template ──────────────────────────────────────

    def _step1_template(self) -> Dict:
        print("\n[1/5] Loading template...")
        template = self.fetcher.fetch_template(self.template_location)
        template = validate_template(template)
        print(f"    → template outbounds: {len(template['outbounds'])}")
        return template

    # ── шаг 2: Ingest ────────────────────────────────────────

    def _step2_ingest(self) -> SourceBatch:
        print("\n[2/5] Ingesting sources...")
        if not self.settings.sources:
            print("    ! No sources defined (config.yaml sources / SUB_LINK_*)")
            return SourceBatch()

        batch = self.fetcher.fetch_sources(self.settings.sources)
        print(f"    → fetched: {len(batch.nodes)}  failed: {len(batch.failures)}")
        return batch

    # ── шаг 3: Build ─────────────────────────────────────────

    def _step3_build(self, template: Dict, batch: SourceBatch) -> BuildResult:
        print("\n[3/5] Filtering, grouping & composing selectors...")
        result = self.builder.build(template, batch.nodes)

        for name, s in result.filter_stats.items():
            print(
                f"    {name}: before: {s.before}  "
                f"type: {s.dropped_type}  "
                f"high-rate: {s.dropped_rate}  "
                f"banned: {s.dropped_banned}  "
                f"after: {s.after}"
            )
        if self.debug:
            for group in result.index.groups:
                print(f"      {group.tag}: {len(group.members)} nodes")
        print(f"    → regional groups: {len(result.index)}  outbounds total: {len(result.document['outbounds'])}")
        return result

    # ── шаг 4: Write ─────────────────────────────────────────

    def _step4_write(self, result: BuildResult) -> None:
        print("\n[4/5] Writing profile...")
        self.output.parent.mkdir(parents=True, exist_ok=True)
        self.output.write_text(
            json.dumps(result.document, ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
        print(f"    → profile saved to {self.output}")

    # ── шаг 5: Report ────────────────────────────────────────

    def _step5_report(self, batch: SourceBatch, result: BuildResult) -> None:
        print("\n[5/5] Generating report...")
        report = self.reporter.generate(batch, result)
        if self.reporter.out_path:
            print(f"    → report saved to {self.reporter.out_path}")

        ghs = os.environ.get("GITHUB_STEP_SUMMARY")
        if ghs:
            try:
                with Path(ghs).open("a", encoding="utf-8") as f:
                    f.write(report)
            except OSError as exc:
                print(f"    ! cannot write step summary: {exc}")

    # ── утилиты ──────────────────────────────────────────────

    def _load_config(self) -> dict:
        if self.config_path and not Path(self.config_path).exists():
            print(f"Warning: config file '{self.config_path}' not found, using defaults")
            return {}
        try:
            return load_config(self.config_path)
        except ConfigError as exc:
            print(f"Error: {exc}")
            sys.exit(1)

    @staticmethod
    def _banner(text: str) -> None:
        print("\n" + "=" * 60)
        print(f"  {text}")
        print("=" * 60)


def main() -> int:
    import argparse

    ap = argparse.ArgumentParser(description="sing-box Profile Builder")
    ap.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    ap.add_argument("--template", default=None, help="Template URL or local JSON file")
    ap.add_argument("--output", default=None, help="Where to write the profile JSON")
    args = ap.parse_args()

    pipeline = ProfilePipeline(config_path=args.config, template=args.template, output=args.output)
    return pipeline.run()


if __name__ == "__main__":
    sys.exit(main())
