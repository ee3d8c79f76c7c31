import pytest

from aggregator.builder import ProfileBuilder, TemplateError

POLICY = {"master": "Proxy", "direct": "DIRECT", "rules": {"US only": {"kind": "regions", "regions": ["US"]}}}


def _sources(node_factory):
    return {
        "A": [
            node_factory("HK-01", source="A"),
            node_factory("US-01", source="A"),
            node_factory("HK selector", type="selector", source="A"),
            node_factory("剩余流量：1GB", source="A"),
        ],
        "B": [
            node_factory("HK-01", source="B", server="b.example"),
            node_factory("US-02", source="B"),
            node_factory("US-03 2.5x", source="B"),
        ],
    }


def test_build_end_to_end(node_factory, template_factory):
    builder = ProfileBuilder({"policy": POLICY})
    template = template_factory("Proxy", "Netflix", "YouTube", "US only", extra=[{"tag": "DIRECT", "type": "direct"}])
    result = builder.build(template, _sources(node_factory))

    by_tag = {}
    for o in result.document["outbounds"]:
        by_tag.setdefault(o["tag"], []).append(o)

    assert by_tag["Proxy"][0]["outbounds"] == ["🇭🇰 HK-A", "🇭🇰 HK-B", "🇺🇸 US-A", "🇺🇸 US-B"]
    assert by_tag["Netflix"][0]["outbounds"] == ["Proxy", "🇭🇰 HK-A", "🇭🇰 HK-B", "🇺🇸 US-A", "🇺🇸 US-B"]
    assert by_tag["US only"][0]["outbounds"] == ["Proxy", "🇺🇸 US-A", "🇺🇸 US-B"]

    # дубликат HK-01 из B выпадает, остаётся запись из A
    assert len(by_tag["HK-01"]) == 1
    assert by_tag["HK-01"][0]["server"] == "1.2.3.4"
    assert "HK selector" not in by_tag
    assert "US-03 2.5x" not in by_tag
    assert "剩余流量：1GB" not in by_tag

    assert result.total_stats.after == 4
    assert result.filter_stats["A"].dropped_type == 1


def test_surviving_source_still_builds(node_factory, template_factory):
    builder = ProfileBuilder({"policy": POLICY})
    sources = _sources(node_factory)
    del sources["A"]
    result = builder.build(template_factory("Proxy"), sources)
    tags = [o["tag"] for o in result.document["outbounds"]]
    assert tags == ["Proxy", "🇭🇰 HK-B", "🇺🇸 US-B", "HK-01", "US-02"]


def test_source_with_nothing_left_contributes_no_groups(node_factory, template_factory):
    builder = ProfileBuilder({"policy": POLICY})
    result = builder.build(template_factory("Proxy"), {"A": [node_factory("HK 9.9x")]})
    assert len(result.index) == 0
    assert result.document["outbounds"] == [{"tag": "Proxy", "type": "selector", "outbounds": []}]


@pytest.mark.parametrize("template", [None, [], {"outbounds": "nope"}, {"log": {}}])
def test_bad_template_is_fatal(template):
    with pytest.raises(TemplateError):
        ProfileBuilder({}).build(template, {})
