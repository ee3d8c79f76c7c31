"""
SourceFetcher:
- шаблон: GitHub raw (с токеном) или локальный файл; ошибка = фатальна
- источники: параллельно, ждём всех; упавший источник просто выпадает
- ретраев нет, каждый вызов добавляет t=<ms> против кеша
"""

from __future__ import annotations

import json
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import requests

from .builder import TemplateError
from .parser import Node, OutboundParser
from .settings import SourceConfig

TEMPLATE_USER_AGENT = "singbox-aggregator"
SOURCE_USER_AGENT = "Mozilla/5.0 (Clash)"


def with_cache_buster(url: str, now_ms: Optional[int] = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}t={ts}"


@dataclass
class SourceBatch:
    """Результат ingest: ноды по источникам (в порядке конфига) + ошибки."""
    nodes: Dict[str, List[Node]] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)


class SourceFetcher:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 25.0,
        max_workers: int = 8,
        github_token: Optional[str] = None,
        debug: bool = False,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.github_token = github_token
        self.debug = debug
        self.parser = OutboundParser()

    # ── шаблон ───────────────────────────────────────────────

    def fetch_template(self, location: Optional[str]) -> Dict:
        if not location:
            raise TemplateError("template location is not configured")

        if location.startswith(("http://", "https://")):
            text = self._download_template(location)
        else:
            try:
                text = Path(location).read_text(encoding="utf-8")
            except OSError as exc:
                raise TemplateError(f"cannot read template {location}: {exc}") from exc

        try:
            return json.loads(text)
        except (ValueError, RecursionError) as exc:
            raise TemplateError(f"template is not valid JSON: {exc}") from exc

    def _download_template(self, url: str) -> str:
        headers = {
            "Accept": "application/vnd.github.v3.raw",
            "User-Agent": TEMPLATE_USER_AGENT,
        }
        if self.github_token:
            headers["Authorization"] = f"token {self.github_token}"

        try:
            resp = self.session.get(with_cache_buster(url), headers=headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise TemplateError(f"template download failed: {exc}") from exc
        return resp.text

    # ── источники ────────────────────────────────────────────

    def fetch_sources(self, sources: List[SourceConfig]) -> SourceBatch:
        batch = SourceBatch()
        if not sources:
            return batch

        workers = min(self.max_workers, len(sources))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [(src, pool.submit(self.fetch_source, src)) for src in sources]

            # собираем в порядке конфига, а не завершения
            for src, future in futures:
                try:
                    nodes = future.result()
                except Exception as exc:
                    batch.failures[src.name] = str(exc)
                    print(f"      ✗ {src.name}: {exc}")
                    continue

                batch.nodes[src.name] = nodes
                if self.debug:
                    print(f"      ✓ {src.name}: {len(nodes)} records")

        return batch

    def fetch_source(self, src: SourceConfig) -> List[Node]:
        resp = self.session.get(
            with_cache_buster(src.url),
            timeout=self.timeout,
            headers={"User-Agent": SOURCE_USER_AGENT, "Cache-Control": "no-store"},
            allow_redirects=True,
        )
        resp.raise_for_status()
        return self.parser.parse_text(resp.text, source=src.name)
