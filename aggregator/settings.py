"""
Settings:
- config.yaml (регионы, фильтры, политика, источники, health-check)
- переменные окружения поверх файла: AUTH_TOKEN, TEMPLATE_URL,
  GITHUB_USER / REPO_NAME / BRANCH / GITHUB_TOKEN, SUB_LINK_<NAME>
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

SOURCE_ENV_PREFIX = "SUB_LINK_"
TEMPLATE_PATH = "profiles/main-profile.json"


class ConfigError(ValueError):
    """Invalid config.yaml or environment."""


@dataclass(frozen=True)
class SourceConfig:
    name: str
    url: str


@dataclass
class Settings:
    auth_token: Optional[str] = None
    template_url: Optional[str] = None
    github_token: Optional[str] = None
    sources: List[SourceConfig] = field(default_factory=list)
    timeout: float = 25.0
    max_workers: int = 8
    debug: bool = False

    @classmethod
    def from_config(cls, config: Dict, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        config = config or {}
        env = os.environ if environ is None else environ

        app = config.get("app", {}) or {}
        fetch_cfg = config.get("fetch", {}) or {}
        template_cfg = config.get("template", {}) or {}

        return cls(
            auth_token=env.get("AUTH_TOKEN") or app.get("auth_token") or None,
            template_url=resolve_template_url(template_cfg, env),
            github_token=env.get("GITHUB_TOKEN") or template_cfg.get("token") or None,
            sources=discover_sources(config.get("sources"), env),
            timeout=float(fetch_cfg.get("timeout", 25)),
            max_workers=int(fetch_cfg.get("max_workers", 8)),
            debug=bool(app.get("debug", False)),
        )


def load_config(path: Optional[str]) -> Dict:
    """Прочитать config.yaml; пустой путь -> пустой конфиг (все значения по умолчанию)."""
    if not path:
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read config '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse config '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config '{path}' must be a mapping")
    return data


def resolve_template_url(template_cfg: Dict, env: Mapping[str, str]) -> Optional[str]:
    explicit = env.get("TEMPLATE_URL") or template_cfg.get("url")
    if explicit:
        return explicit

    user = env.get("GITHUB_USER") or template_cfg.get("github_user")
    repo = env.get("REPO_NAME") or template_cfg.get("repo_name")
    if not user or not repo:
        return None
    branch = env.get("BRANCH") or template_cfg.get("branch") or "main"
    path = template_cfg.get("path") or TEMPLATE_PATH
    return f"https://raw.githubusercontent.com/{user}/{repo}/{branch}/{path}"


def discover_sources(sources_cfg, env: Mapping[str, str]) -> List[SourceConfig]:
    """Источники из config.yaml (по порядку), затем SUB_LINK_* из окружения (по имени)."""
    result: List[SourceConfig] = []
    seen = set()

    for src in sources_cfg or []:
        if not isinstance(src, dict) or not src.get("enabled", True):
            continue
        name = str(src.get("name") or "").strip()
        url = str(src.get("url") or "").strip()
        if not name or not url or name in seen:
            continue
        seen.add(name)
        result.append(SourceConfig(name=name, url=url))

    for key in sorted(env):
        if not key.startswith(SOURCE_ENV_PREFIX):
            continue
        name = key[len(SOURCE_ENV_PREFIX):]
        url = (env.get(key) or "").strip()
        if not name or not url or name in seen:
            continue
        seen.add(name)
        result.append(SourceConfig(name=name, url=url))

    return result


def default_config_path() -> Optional[str]:
    path = os.environ.get("AGGREGATOR_CONFIG", "config.yaml")
    return path if Path(path).exists() else None
