#!/usr/bin/env python3
"""
KUBEFORGE RENDER DEFAULTS - Policy Enforcement
----------------------------------------------
The DefaultsEngine runs over every generated document right before export.
It applies module-wide defaults (namespace) and prunes fields the model left
empty, so partially specified models still render a clean manifest with
absent fields instead of empty or zero values.

Author: KubeForge Team
Date: 2026-10-18
"""

from typing import Any, Dict, List, Optional, Tuple

# Resources that should NOT have a namespace (Cluster-scoped)
CLUSTER_SCOPED = [
    "Namespace", "Node", "ClusterRole", "ClusterRoleBinding",
    "StorageClass", "PersistentVolume", "CustomResourceDefinition"
]


class DefaultsEngine:
    """
    Responsible for render-time defaulting of generated documents.
    """

    def __init__(self, namespace: Optional[str] = None):
        self.namespace = namespace

        # Registry of active rules to be executed against every document
        self.active_rules = [
            self._rule_ensure_namespace,
            self._rule_prune_empty,
        ]

    def apply(self, doc: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        """
        Runs the document through every rule.
        Returns the document and a list of human-readable changes.
        """
        changes = []
        if not isinstance(doc, dict):
            return doc, []

        for rule in self.active_rules:
            doc, msg = rule(doc)
            if msg:
                changes.append(msg)
        return doc, changes

    def _rule_ensure_namespace(self, doc: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        """
        Policy: namespaced resources inherit the module namespace when one is set.
        """
        kind = doc.get("kind", "")
        if not self.namespace or not kind or kind in CLUSTER_SCOPED:
            return doc, ""

        metadata = doc.setdefault("metadata", {})
        if not metadata.get("namespace"):
            metadata["namespace"] = self.namespace
            return doc, f"Added 'namespace: {self.namespace}' to {kind} '{metadata.get('name')}'."
        return doc, ""

    def _rule_prune_empty(self, doc: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        """
        Policy: unset values (None, empty maps, empty lists) are omitted.
        """
        return _prune(doc), ""


def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        pruned = {}
        for key, item in value.items():
            item = _prune(item)
            if item is None or (isinstance(item, (dict, list)) and not item):
                continue
            pruned[key] = item
        return pruned
    if isinstance(value, list):
        return [_prune(item) for item in value]
    return value
