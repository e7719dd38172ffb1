"""Version manifest parsing.

Manifests are a restricted YAML subset::

    services:
      lrctl:
        image: "gcr.io/lrctl-release/lrctl"
        version: "1.2.3"

:func:`parse_manifest` flattens such a document into
``{"services_lrctl_image": ..., "services_lrctl_version": ...}``; nothing is
ever evaluated. :class:`VersionManifest` gives a typed per-service view of
the flat mapping.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

INDENT_UNIT = 2

_LINE_RE = re.compile(
    r"^(?P<indent> *)(?P<key>[A-Za-z0-9_-]+)[ \t]*:(?:[ \t]*(?P<value>.*?))?[ \t]*$"
)
_QUOTED_RE = re.compile(r"""^(?P<q>["'])(?P<body>.*)(?P=q)(?:\s+#.*)?$""")
_COMMENT_RE = re.compile(r"\s+#.*$")

_SERVICES_PREFIX = "services_"
_FIELDS = ("image", "version")


def _clean_value(raw: str) -> str:
    m = _QUOTED_RE.match(raw)
    if m is not None:
        return m.group("body")
    return _COMMENT_RE.sub("", raw).strip()


def parse_manifest(text: str) -> dict[str, str]:
    """Flatten a nested ``key: value`` document into ``scope_..._key`` pairs.

    Indentation defines nesting in steps of :data:`INDENT_UNIT` spaces. A
    ``key:`` line opens a scope; a ``key: value`` line emits a leaf. Lines
    that match neither form (comments, list items, tab-indented lines,
    free text) are skipped.
    """
    flat: dict[str, str] = {}
    scopes: dict[int, str] = {}

    for line in text.splitlines():
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        m = _LINE_RE.match(line)
        if m is None:
            continue

        level = len(m.group("indent")) // INDENT_UNIT
        key = m.group("key").replace("-", "_")
        raw = m.group("value") or ""
        if raw.startswith("#"):
            raw = ""

        for deeper in [lvl for lvl in scopes if lvl >= level]:
            del scopes[deeper]

        if raw:
            parents = [scopes[lvl] for lvl in sorted(scopes)]
            flat["_".join([*parents, key])] = _clean_value(raw)
        else:
            scopes[level] = key

    return flat


@dataclass(frozen=True)
class ManifestEntry:
    """Image and version published for one service."""

    image: str = ""
    version: str = ""

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.version}"


@dataclass
class VersionManifest:
    """Typed view of a flattened manifest: service name -> entry."""

    entries: dict[str, ManifestEntry] = field(default_factory=dict)

    def get(self, service: str) -> ManifestEntry | None:
        return self.entries.get(service)

    def __contains__(self, service: object) -> bool:
        return service in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def from_flat(cls, flat: dict[str, str]) -> VersionManifest:
        """Group ``[services_]<service>_<field>`` keys by service.

        The ``services:`` wrapper is optional; a document that lists
        services at the top level produces the same entries.
        """
        fields: dict[str, dict[str, str]] = {}
        for key, value in flat.items():
            for name in _FIELDS:
                suffix = f"_{name}"
                if not key.endswith(suffix) or len(key) == len(suffix):
                    continue
                service = key[: -len(suffix)]
                if service.startswith(_SERVICES_PREFIX) and len(service) > len(_SERVICES_PREFIX):
                    service = service[len(_SERVICES_PREFIX) :]
                fields.setdefault(service, {})[name] = value
                break

        return cls(
            entries={
                service: ManifestEntry(
                    image=values.get("image", ""), version=values.get("version", "")
                )
                for service, values in fields.items()
            }
        )

    @classmethod
    def parse(cls, text: str) -> VersionManifest:
        return cls.from_flat(parse_manifest(text))
