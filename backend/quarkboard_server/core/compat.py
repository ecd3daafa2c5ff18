"""Version compatibility checks for plugin manifests."""

from __future__ import annotations

from typing import Optional

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

_DEV_TOKENS = ("dev", "local", "snapshot", "dirty")


def is_dev_version(value: Optional[str]) -> bool:
    """Return True if the provided version string represents a dev/local build."""
    if not value:
        return False
    lowered = value.strip().lower()
    if not lowered:
        return False
    if lowered.startswith("0.0.0"):
        return True
    return any(token in lowered for token in _DEV_TOKENS)


def _normalize_clause(clause: str) -> str:
    for operator in ("==", ">=", "<=", "!=", "~=", ">", "<"):
        if clause.startswith(operator):
            return clause
    if clause.startswith("="):
        return "=" + clause
    return "==" + clause


def version_satisfies(actual: Optional[str], requirement: Optional[str]) -> bool:
    """Evaluate whether *actual* satisfies a requirement such as ``>=0.1, <2``.

    Clauses may be separated by commas or whitespace; a bare version means
    an exact match. Dev builds satisfy every requirement.
    """
    if not requirement or not requirement.strip():
        return True
    if not actual:
        return False
    if is_dev_version(actual):
        return True

    clauses: list[str] = []
    pending = ""
    for token in requirement.replace(",", " ").split():
        if token.strip("=<>!~") == "":
            # Operator written apart from its version (">= 0.2").
            pending += token
            continue
        clauses.append(pending + token)
        pending = ""
    if not clauses:
        return True
    try:
        specifiers = SpecifierSet(",".join(_normalize_clause(c) for c in clauses))
        current = Version(actual)
    except (InvalidSpecifier, InvalidVersion):
        return False
    return specifiers.contains(current, prereleases=True)
