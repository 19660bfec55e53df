from __future__ import annotations

import re
from dataclasses import dataclass


# Strict semver 2.0 with the usual loose prefixes ("v", "=") and whitespace.
_VERSION_RE = re.compile(
    r"^\s*[v=]*\s*"
    r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?\s*$"
)
_COERCE_RE = re.compile(r"(?:^|[^\d])(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?(?:$|[^\d])")


@dataclass(frozen=True, slots=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None
    build: str | None = None

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


def parse_version(tag: str) -> SemVer | None:
    m = _VERSION_RE.match(tag)
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), m.group(4), m.group(5))


def clean_version(tag: str) -> str | None:
    """Canonical form of a valid version tag, e.g. ``" v1.0.2 "`` -> ``"1.0.2"``."""
    v = parse_version(tag)
    if v is None:
        return None
    return str(v)


def coerce_version(tag: str) -> str | None:
    """Best-effort version from an arbitrary tag, e.g. ``"release-2.1"`` -> ``"2.1.0"``.

    Prerelease and build parts are dropped; missing minor/patch become 0.
    """
    m = _COERCE_RE.search(tag)
    if m is None:
        return None
    major, minor, patch = (int(g) if g else 0 for g in m.groups())
    return str(SemVer(major, minor, patch))


def normalize_tag(tag: str) -> tuple[str, bool]:
    """Resolve the version string used for a release.

    Returns:
        (version, exact): ``exact`` is False when the literal tag had to be
        kept because neither cleaning nor coercion produced a version.
    """
    cleaned = clean_version(tag)
    if cleaned is not None:
        return (cleaned, True)
    coerced = coerce_version(tag)
    if coerced is not None:
        return (coerced, True)
    return (tag, False)
