"""Deployment environment tags and the suffixes they apply to resource names."""

from __future__ import annotations

from enum import StrEnum


class EnvironmentTag(StrEnum):
    """Closed set of environments a topology can be reconciled for."""

    QA = "qa"
    DEV = "dev"
    PROD = "prod"
    TEST = "test"
    LOCAL = "local"
    PREVIEW = "preview"
    UNKNOWN = "unknown"


_ALIASES: dict[str, EnvironmentTag] = {
    "l": EnvironmentTag.LOCAL,
    "local": EnvironmentTag.LOCAL,
    "q": EnvironmentTag.QA,
    "qa": EnvironmentTag.QA,
    "qe": EnvironmentTag.QA,
    "d": EnvironmentTag.DEV,
    "dev": EnvironmentTag.DEV,
    "development": EnvironmentTag.DEV,
    "p": EnvironmentTag.PROD,
    "prod": EnvironmentTag.PROD,
    "production": EnvironmentTag.PROD,
    "t": EnvironmentTag.TEST,
    "test": EnvironmentTag.TEST,
    "testing": EnvironmentTag.TEST,
    "pr": EnvironmentTag.PREVIEW,
    "preview": EnvironmentTag.PREVIEW,
}

# One suffix per environment, shared by queues and topics.
_SUFFIXES: dict[EnvironmentTag, str] = {
    EnvironmentTag.QA: "qa",
    EnvironmentTag.DEV: "dev",
    EnvironmentTag.PROD: "prod",
    EnvironmentTag.TEST: "test",
    EnvironmentTag.LOCAL: "local",
    EnvironmentTag.PREVIEW: "preview",
    EnvironmentTag.UNKNOWN: "",
}


def resolve(raw: str | None) -> EnvironmentTag:
    """Map a raw environment string (e.g. ``"Production"``) to its tag.

    Matching is case-insensitive. Absent or unrecognised input resolves to
    ``EnvironmentTag.UNKNOWN``; this function never raises.
    """
    if raw is None:
        return EnvironmentTag.UNKNOWN
    return _ALIASES.get(raw.strip().lower(), EnvironmentTag.UNKNOWN)


def suffix(tag: EnvironmentTag) -> str:
    """Return the name suffix for *tag* (empty for ``UNKNOWN``)."""
    return _SUFFIXES[tag]


def is_local(tag: EnvironmentTag) -> bool:
    return tag == EnvironmentTag.LOCAL


def is_unknown(tag: EnvironmentTag) -> bool:
    return tag == EnvironmentTag.UNKNOWN
