"""tools/bridge/versions.py

Parsers for the two version documents the repository serves:

* ``versions.txt`` - ``name: version`` lines (one per component).
* the directory listing of ``{base}/{kind}/`` - an HTML index whose anchors
  are the published version folders.
"""

from __future__ import annotations

import re
from html.parser import HTMLParser
from typing import Dict, List, Optional

_VERSION_ANCHOR = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+")


def parse_versions_txt(content: str) -> Dict[str, str]:
    """``"bridge-cli-bundle: 1.4.0"`` lines -> ``{"bridge-cli-bundle": "1.4.0"}``."""
    out: Dict[str, str] = {}
    for raw in (content or "").splitlines():
        if ":" not in raw:
            continue
        name, _, value = raw.partition(":")
        name = name.strip()
        value = value.strip()
        if name and value:
            out[name] = value
    return out


def version_for(content: str, name: str) -> Optional[str]:
    """Version declared for ``name`` in a ``versions.txt`` document."""
    return parse_versions_txt(content).get(name)


def manifest_declares(content: str, name: str, version: str) -> bool:
    """True when a manifest line reads ``<name>: <version>``."""
    if not version:
        return False
    return version_for(content, name) == version.strip()


class _AnchorCollector(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self.texts: List[str] = []
        self._in_anchor = False
        self._buf: List[str] = []

    def handle_starttag(self, tag, attrs):  # type: ignore[override]
        if tag.lower() == "a":
            self._in_anchor = True
            self._buf = []

    def handle_endtag(self, tag):  # type: ignore[override]
        if tag.lower() == "a" and self._in_anchor:
            self.texts.append("".join(self._buf).strip())
            self._in_anchor = False

    def handle_data(self, data):  # type: ignore[override]
        if self._in_anchor:
            self._buf.append(data)


def parse_version_listing(html: str) -> List[str]:
    """Version folder names from an HTML directory index, in document order."""
    collector = _AnchorCollector()
    collector.feed(html or "")
    collector.close()

    versions: List[str] = []
    for text in collector.texts:
        m = _VERSION_ANCHOR.match(text)
        if m:
            versions.append(m.group(0))
    return versions
