"""Target list loader.

Reads a small YAML-like file with the following structure:

targets:
  - server: time.example.org
    fallback: 192.0.2.10
  - server: 192.0.2.20
    port: 1123
  - 192.0.2.30

``fallback`` (a pre-resolved address tried when the name cannot be used)
and ``port`` are optional; a bare ``- host`` entry names only the server.
Only this shape is understood: other top-level keys are skipped and
unknown entry fields are rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

TARGET_FIELDS = ("server", "fallback", "port")


@dataclass(frozen=True)
class Target:
    server: str
    fallback: Optional[str] = None
    port: Optional[int] = None  # None: use the configured default


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _read_entries(text: str) -> List[Dict[str, str]]:
    """Raw field strings of each entry under ``targets:``."""
    entries: List[Dict[str, str]] = []
    in_targets = False
    for lineno, line in enumerate(text.splitlines(), start=1):
        item = line.strip()
        if not item or item.startswith("#"):
            continue
        if not line[0].isspace() and not item.startswith("-"):
            in_targets = item == "targets:"
            continue
        if not in_targets:
            continue

        if item.startswith("-"):
            entries.append({})
            item = item[1:].strip()
            if not item:
                continue
            if ":" not in item:
                entries[-1]["server"] = _unquote(item)
                continue
        elif not entries:
            raise ValueError(f"line {lineno}: field outside a '- server:' entry")

        key, _, value = (part.strip() for part in item.partition(":"))
        if key not in TARGET_FIELDS:
            raise ValueError(f"line {lineno}: unknown target field '{key}'")
        entries[-1][key] = _unquote(value)
    return entries


def _parse_port(server: str, value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    if not value.isdigit() or not 0 < int(value) <= 65535:
        raise ValueError(f"Invalid port for {server}: {value}")
    return int(value)


def parse_targets(text: str) -> List[Target]:
    targets: List[Target] = []
    seen = set()
    for raw in _read_entries(text):
        server = raw.get("server")
        if not server:
            raise ValueError(f"Target entry missing required field 'server': {raw}")
        port = _parse_port(server, raw.get("port"))
        if (server, port) in seen:
            raise ValueError(f"Duplicate target: {server}:{port}")
        seen.add((server, port))
        targets.append(Target(server=server, fallback=raw.get("fallback") or None, port=port))
    if not targets:
        raise ValueError("No targets defined")
    return targets


def load_targets(path: str) -> List[Target]:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse_targets(text)
