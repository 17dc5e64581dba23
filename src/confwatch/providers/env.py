"""Configuration provider backed by process environment variables."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional


class EnvProvider:
    """Load environment variables that start with ``prefix``.

    The prefix is stripped and the rest of each name is split on
    ``delimiter`` into nested keys, so with prefix ``APP_`` the variable
    ``APP_DB_HOST`` becomes ``{"DB": {"HOST": ...}}``. Where a variable is
    both a value and a parent (``APP_DB`` and ``APP_DB_HOST``), the nested
    keys win.
    """

    def __init__(
        self,
        prefix: str = "",
        delimiter: str = "_",
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.prefix = prefix
        self.delimiter = delimiter
        self._environ = environ

    @property
    def name(self) -> str:
        return f"env:{self.prefix}" if self.prefix else "env"

    def load(self) -> Dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        entries = []
        for key, value in environ.items():
            if not key.startswith(self.prefix):
                continue
            parts = self._split(key[len(self.prefix):])
            if parts:
                entries.append((parts, value))

        tree: Dict[str, Any] = {}
        # shallow names first so that deeper ones replace them
        for parts, value in sorted(entries, key=lambda entry: len(entry[0])):
            _insert(tree, parts, value)
        return tree

    def _split(self, name: str) -> List[str]:
        if not self.delimiter:
            return [name] if name else []
        return [part for part in name.split(self.delimiter) if part]


def _insert(tree: Dict[str, Any], parts: List[str], value: str) -> None:
    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    if not isinstance(node.get(parts[-1]), dict):
        node[parts[-1]] = value
