import json

import pytest
from fastapi.testclient import TestClient

from aggregator.builder import TemplateError
from aggregator.fetcher import SourceBatch
from aggregator.parser import OutboundParser
from server import create_app

CONFIG = {"policy": {"master": "Proxy", "direct": "DIRECT", "rules": {"US only": {"kind": "regions", "regions": ["US"]}}}}
TEMPLATE = {
    "outbounds": [
        {"tag": "Proxy", "type": "selector", "outbounds": []},
        {"tag": "Netflix", "type": "selector", "outbounds": []},
        {"tag": "US only", "type": "selector", "outbounds": []},
        {"tag": "DIRECT", "type": "direct"},
    ]
}


class FakeFetcher:
    def __init__(self, template=TEMPLATE, payloads=None, failures=None, template_error=None):
        self.template = template
        self.payloads = payloads or {}
        self.failures = failures or {}
        self.template_error = template_error
        self.sources_requested = False

    def fetch_template(self, location):
        if self.template_error:
            raise TemplateError(self.template_error)
        return json.loads(json.dumps(self.template))

    def fetch_sources(self, sources):
        self.sources_requested = True
        parser = OutboundParser()
        nodes = {name: parser.parse_payload(data, source=name) for name, data in self.payloads.items()}
        return SourceBatch(nodes=nodes, failures=dict(self.failures))


def _client(fetcher, environ=None):
    env = {"AUTH_TOKEN": "s3cret"} if environ is None else environ
    return TestClient(create_app(config=CONFIG, environ=env, fetcher_factory=lambda settings: fetcher))


@pytest.mark.parametrize("query", ["", "?token=", "?token=wrong"])
def test_bad_token_is_rejected_before_any_work(query):
    fetcher = FakeFetcher()
    resp = _client(fetcher).get("/" + query)
    assert resp.status_code == 401
    assert resp.headers["content-type"].startswith("text/plain")
    assert not fetcher.sources_requested


def test_unset_auth_token_rejects_everyone():
    resp = _client(FakeFetcher(), environ={}).get("/?token=anything")
    assert resp.status_code == 401


def test_profile_is_returned_as_json():
    fetcher = FakeFetcher(
        payloads={
            "A": [{"tag": "HK-01", "type": "vless"}, {"tag": "US-01", "type": "vless"}],
            "B": {"outbounds": [{"tag": "US-02", "type": "trojan"}]},
        }
    )
    resp = _client(fetcher).get("/?token=s3cret")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json; charset=utf-8"
    assert resp.headers["cache-control"] == "no-store, no-cache, must-revalidate"

    outbounds = {o["tag"]: o for o in resp.json()["outbounds"]}
    assert outbounds["Proxy"]["outbounds"] == ["🇭🇰 HK-A", "🇺🇸 US-A", "🇺🇸 US-B"]
    assert outbounds["US only"]["outbounds"] == ["Proxy", "🇺🇸 US-A", "🇺🇸 US-B"]
    assert outbounds["🇺🇸 US-B"]["type"] == "urltest"
    # non-ASCII kept as is
    assert "🇭🇰 HK-A" in resp.text


def test_failed_source_still_returns_200():
    fetcher = FakeFetcher(
        payloads={"B": [{"tag": "HK-09", "type": "vless"}]},
        failures={"A": "connection refused"},
    )
    resp = _client(fetcher).get("/?token=s3cret")
    assert resp.status_code == 200
    tags = [o["tag"] for o in resp.json()["outbounds"]]
    assert "🇭🇰 HK-B" in tags
    assert not any(tag.endswith("-A") for tag in tags)


def test_template_failure_is_500_without_document():
    resp = _client(FakeFetcher(template_error="template download failed")).get("/?token=s3cret")
    assert resp.status_code == 500
    assert resp.text == "Generator Error: template download failed"
    assert resp.headers["content-type"].startswith("text/plain")


def test_malformed_template_is_500():
    resp = _client(FakeFetcher(template={"outbounds": None})).get("/?token=s3cret")
    assert resp.status_code == 500
    assert resp.text.startswith("Generator Error:")
