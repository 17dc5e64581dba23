"""Decode .env files for use with FileProvider."""

import os
import re
from typing import Dict, Mapping, Optional, Tuple

_LINE = re.compile(r"^(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*)$")
_BRACED = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_SIMPLE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")


def unmarshal_dotenv(data: bytes) -> Dict[str, str]:
    """Decode ``KEY=VALUE`` lines into a flat mapping.

    Blank lines and ``#`` comments are skipped. Double-quoted values
    support ``\\n``, ``\\r``, ``\\t`` and ``\\"`` escapes; single-quoted
    values are taken literally. ``${VAR}`` and ``$VAR`` in unquoted and
    double-quoted values expand from the process environment, then from
    keys defined earlier in the same file.

    Usage::

        FileProvider(".env", unmarshal=unmarshal_dotenv)
    """
    values: Dict[str, str] = {}
    for line in data.decode("utf-8").splitlines():
        parsed = _parse_line(line, values)
        if parsed:
            key, value = parsed
            values[key] = value
    return values


def _parse_line(line: str, values: Mapping[str, str]) -> Optional[Tuple[str, str]]:
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    match = _LINE.match(line)
    if not match:
        return None
    key, value = match.groups()

    if len(value) >= 2 and value.startswith("'") and value.endswith("'"):
        return key, value[1:-1]
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = (
            value[1:-1]
            .replace('\\"', '"')
            .replace("\\n", "\n")
            .replace("\\r", "\r")
            .replace("\\t", "\t")
        )
    else:
        # inline comment on an unquoted value
        value = value.split(" #", 1)[0].rstrip()

    return key, _expand_variables(value, values)


def _expand_variables(value: str, values: Mapping[str, str]) -> str:
    def replace(match: "re.Match[str]") -> str:
        name = match.group(1)
        return os.environ.get(name, values.get(name, ""))

    value = _BRACED.sub(replace, value)
    return _SIMPLE.sub(replace, value)
