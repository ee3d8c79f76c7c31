"""HTTP entry point: GET /?token=... builds the profile on every request."""

from __future__ import annotations

import hmac
import json
import os
from typing import Callable, Dict, Mapping, Optional

from fastapi import FastAPI, Query, Response, status
from fastapi.responses import PlainTextResponse

from aggregator.builder import ProfileBuilder, TemplateError
from aggregator.fetcher import SourceFetcher
from aggregator.settings import Settings, default_config_path, load_config

NO_CACHE = "no-store, no-cache, must-revalidate"


def _default_fetcher(settings: Settings) -> SourceFetcher:
    return SourceFetcher(
        timeout=settings.timeout,
        max_workers=settings.max_workers,
        github_token=settings.github_token,
        debug=settings.debug,
    )


def _token_ok(expected: Optional[str], given: Optional[str]) -> bool:
    if not expected or given is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))


def create_app(
    config: Optional[Dict] = None,
    environ: Optional[Mapping[str, str]] = None,
    fetcher_factory: Callable[[Settings], SourceFetcher] = _default_fetcher,
) -> FastAPI:
    if config is None:
        config = load_config(default_config_path())

    # таблицы регионов и политик проверяются один раз при старте
    builder = ProfileBuilder(config)
    app = FastAPI(title="sing-box profile aggregator")

    @app.get("/")
    def build_profile(token: Optional[str] = Query(default=None)) -> Response:
        settings = Settings.from_config(config, os.environ if environ is None else environ)

        if not _token_ok(settings.auth_token, token):
            return PlainTextResponse(
                "Unauthorized Project Access", status_code=status.HTTP_401_UNAUTHORIZED
            )

        fetcher = fetcher_factory(settings)
        try:
            template = fetcher.fetch_template(settings.template_url)
            batch = fetcher.fetch_sources(settings.sources)
            result = builder.build(template, batch.nodes)
        except TemplateError as exc:
            return PlainTextResponse(
                f"Generator Error: {exc}",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        body = json.dumps(result.document, ensure_ascii=False, indent=2)
        return Response(
            content=body.encode("utf-8"),
            media_type="application/json; charset=utf-8",
            headers={"Cache-Control": NO_CACHE},
        )

    return app


app = create_app()
