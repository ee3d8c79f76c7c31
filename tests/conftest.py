from typing import Dict, List, Optional

import pytest

from aggregator.parser import Node


def make_node(tag: str, type: Optional[str] = "vless", source: str = "A", **extra) -> Node:
    outbound = {"tag": tag, "type": type, "server": "1.2.3.4", "server_port": 443}
    outbound.update(extra)
    return Node(tag=tag, type=type, source=source, outbound=outbound)


def make_template(*selectors: str, extra: Optional[List[Dict]] = None) -> Dict:
    outbounds = [{"tag": tag, "type": "selector", "outbounds": ["stale"]} for tag in selectors]
    outbounds.extend(extra or [])
    return {"log": {"level": "warn"}, "outbounds": outbounds}


@pytest.fixture
def node_factory():
    return make_node


@pytest.fixture
def template_factory():
    return make_template
