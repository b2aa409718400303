#!/usr/bin/env python3
"""
KUBEFORGE EXPORTER - Deterministic YAML
---------------------------------------
Serializes generated manifest objects to YAML text. Key order is fixed by a
preferred top-level order and the insertion order chosen by the generators,
so the same model always renders to the same bytes.

Author: KubeForge Team
Date: 2026-10-18
"""

import io
from typing import Any, Dict, List, Union

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap


class KubeExporter:
    """
    The Renderer: converts generated documents into YAML strings.
    """

    def __init__(self):
        self.yaml = YAML(typ='rt')
        # Standard K8s: 2 spaces, sequences indented 4 (offset 2)
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.width = 4096
        self.preferred_order = ["apiVersion", "kind", "metadata", "spec", "type", "data"]

    def _get_sorted_map(self, data: Any) -> Any:
        """
        Recursively rebuilds mappings as CommentedMaps in preferred key order.
        """
        if isinstance(data, list):
            return [self._get_sorted_map(item) for item in data]
        if not isinstance(data, dict):
            return data

        keys = list(data.keys())

        def sort_logic(key):
            if key in self.preferred_order:
                return self.preferred_order.index(key)
            # Other keys keep the order the generator wrote them in
            return len(self.preferred_order) + keys.index(key)

        sorted_map = CommentedMap()
        for key in sorted(keys, key=sort_logic):
            sorted_map[key] = self._get_sorted_map(data[key])
        return sorted_map

    def export(self, docs: Union[Dict[str, Any], List[Dict[str, Any]]]) -> str:
        """
        Exports one document or a stream. Multi-document output gets explicit separators.
        """
        stream = io.StringIO()
        docs = docs if isinstance(docs, list) else [docs]

        written = 0
        for doc in docs:
            if not doc:
                continue
            if written > 0:
                stream.write("---\n")
            self.yaml.dump(self._get_sorted_map(doc), stream)
            written += 1

        return stream.getvalue()
