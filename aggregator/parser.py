"""
Subscription payload parser for sing-box outbounds.

Источник отдаёт либо голый список outbound-объектов, либо объект
с полем "outbounds". Каждая запись становится Node; транспортные поля
не трогаем, они уходят в итоговый профиль как есть.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class PayloadError(ValueError):
    """Payload of a source is not a node list."""


@dataclass(frozen=True)
class Node:
    """Parsed proxy node"""
    tag: str
    type: Optional[str]
    source: str = "unknown"
    outbound: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_outbound(self) -> Dict[str, Any]:
        return self.outbound


class OutboundParser:
    """Parser for sing-box subscription payloads"""

    @staticmethod
    def extract_records(data: Any) -> List[Any]:
        """
        Get the raw record list
        Format: [ {...}, ... ] or {"outbounds": [ {...}, ... ]}
        """
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            records = data.get("outbounds")
            if records is None:
                return []
            if isinstance(records, list):
                return records
            raise PayloadError("'outbounds' is not a list")
        raise PayloadError(f"unexpected payload type: {type(data).__name__}")

    @staticmethod
    def parse_record(record: Any, source: str) -> Optional[Node]:
        if not isinstance(record, dict):
            return None
        tag = record.get("tag")
        if not isinstance(tag, str) or not tag:
            return None
        node_type = record.get("type")
        if not isinstance(node_type, str):
            node_type = None
        return Node(tag=tag, type=node_type, source=source, outbound=record)

    def parse_payload(self, data: Any, source: str = "unknown") -> List[Node]:
        """Parse decoded JSON payload into list of Node (records without tag are skipped)."""
        nodes: List[Node] = []
        for record in self.extract_records(data):
            node = self.parse_record(record, source)
            if node is None:
                continue
            nodes.append(node)
        return nodes

    def parse_text(self, text: str, source: str = "unknown") -> List[Node]:
        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as exc:
            raise PayloadError(f"invalid JSON: {exc}") from exc
        return self.parse_payload(data, source=source)
