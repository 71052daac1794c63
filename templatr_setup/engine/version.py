"""
Version requirement matching.

Requirements follow the range syntax used by npm and most semver tooling:

    latest                 any version (the installed version is not parsed)
    21.0.0  =21.0.0        exact version
    21  21.x  21.*         any 21.y.z
    >=20.0.0  >18  <=21    comparisons; partial versions are padded
    ^20.1.0                compatible with 20.1.0 (>=20.1.0 <21.0.0)
    ~20.1.0  ~>20.1.0      patch updates only (>=20.1.0 <20.2.0)
    1.2.3 - 2.3            hyphen range (>=1.2.3 <2.4.0)
    >=18 <21, !=19.0.0     comparators joined by spaces or commas are ANDed
    ^18 || ^20             alternatives are ORed

Versions are parsed with :class:`packaging.version.Version` after dropping a
leading ``v`` and any ``+build`` suffix. A prerelease version only satisfies a
comparator set that itself mentions a prerelease.

Example:
    >>> satisfies("20.11.1", ">=20.0.0")
    True
    >>> satisfies("21.0.2", "21")
    True
    >>> satisfies("anything", "latest")
    True
    >>> satisfies("18.17.0", "^20.0.0")
    False
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from packaging.version import InvalidVersion, Version

from templatr_setup.core.exceptions import VersionParseError

logger = logging.getLogger(__name__)

WILDCARD = "latest"

_OPERATOR_RE = re.compile(r"^(~>|>=|<=|!=|==|=|>|<|\^|~)?\s*(.+)$")
_OPERATOR_GAP_RE = re.compile(r"(~>|>=|<=|!=|==|>|<|\^|~|=)\s+")
_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")
_PARTIAL_RE = re.compile(
    r"^[vV]?(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?(?:[-.]?([0-9A-Za-z][0-9A-Za-z.-]*))?$"
)


def is_wildcard(requirement: str) -> bool:
    """Whether requirement accepts any version ('latest', '*' or empty)."""
    return requirement.strip().lower() in (WILDCARD, "*", "")


def parse_version(text: str) -> Version:
    """
    Parse a concrete version string.

    Args:
        text: Version such as '20.11.1', 'v1.22.5' or '21.0.2+13'

    Returns:
        Parsed Version

    Raises:
        VersionParseError: If text is not a version
    """
    cleaned = text.strip()
    if cleaned[:1] in ("v", "V"):
        cleaned = cleaned[1:]
    cleaned = cleaned.split("+", 1)[0]
    if not cleaned:
        raise VersionParseError(f"Invalid version: '{text}'")
    try:
        return Version(cleaned)
    except InvalidVersion as e:
        raise VersionParseError(f"Invalid version: '{text}'") from e


# ============================================================================
# Requirement Model
# ============================================================================


@dataclass
class _Partial:
    """A possibly incomplete version from a requirement (e.g. '20', '1.x')."""

    major: Optional[int]
    minor: Optional[int]
    patch: Optional[int]
    prerelease: str = ""

    @property
    def is_any(self) -> bool:
        return self.major is None

    @property
    def is_full(self) -> bool:
        return self.patch is not None

    def floor(self) -> Version:
        """Lowest version covered, missing parts filled with zero."""
        text = f"{self.major or 0}.{self.minor or 0}.{self.patch or 0}"
        if self.prerelease and self.is_full:
            text += f"-{self.prerelease}"
        return _to_version(text)

    def ceiling(self) -> Version:
        """First version above everything covered (partial versions only)."""
        if self.minor is None:
            return _to_version(f"{self.major + 1}.0.0")
        return _to_version(f"{self.major}.{self.minor + 1}.0")


def _to_version(text: str) -> Version:
    try:
        return Version(text)
    except InvalidVersion as e:
        raise VersionParseError(f"Invalid version in requirement: '{text}'") from e


@dataclass
class _Comparator:
    """One predicate in a comparator set."""

    text: str
    test: Callable[[Version], bool]
    prerelease: bool = False

    def __call__(self, version: Version) -> bool:
        return self.test(version)


def _parse_partial(text: str) -> _Partial:
    cleaned = text.strip().split("+", 1)[0]
    match = _PARTIAL_RE.match(cleaned)
    if not match:
        raise VersionParseError(f"Invalid version in requirement: '{text}'")

    parts: List[Optional[int]] = []
    wildcard_seen = False
    for group in match.groups()[:3]:
        if group is None or group in ("x", "X", "*") or wildcard_seen:
            wildcard_seen = wildcard_seen or group is not None
            parts.append(None)
        else:
            parts.append(int(group))
    prerelease = match.group(4) or ""
    if prerelease and parts[2] is None:
        raise VersionParseError(
            f"Invalid version in requirement: '{text}' (prerelease needs major.minor.patch)"
        )
    partial = _Partial(parts[0], parts[1], parts[2], prerelease)
    if prerelease:
        partial.floor()
    return partial


def _between(low: Version, high: Version) -> Callable[[Version], bool]:
    return lambda v: low <= v < high


def _comparators_for(op: str, partial: _Partial, text: str) -> List[_Comparator]:
    """Expand one operator + partial version into comparators."""
    pre = bool(partial.prerelease)

    def make(test):
        return [_Comparator(text, test, pre)]

    if partial.is_any:
        if op in ("<", ">", "!="):
            return make(lambda v: False)
        return make(lambda v: True)

    floor = partial.floor()

    if op in ("", "=", "=="):
        if partial.is_full:
            return make(lambda v: v == floor)
        return make(_between(floor, partial.ceiling()))

    if op == "!=":
        if partial.is_full:
            return make(lambda v: v != floor)
        inside = _between(floor, partial.ceiling())
        return make(lambda v: not inside(v))

    if op == ">":
        if partial.is_full:
            return make(lambda v: v > floor)
        ceiling = partial.ceiling()
        return make(lambda v: v >= ceiling)

    if op == ">=":
        return make(lambda v: v >= floor)

    if op == "<":
        return make(lambda v: v < floor)

    if op == "<=":
        if partial.is_full:
            return make(lambda v: v <= floor)
        ceiling = partial.ceiling()
        return make(lambda v: v < ceiling)

    if op in ("~", "~>"):
        if partial.minor is None:
            upper = _to_version(f"{partial.major + 1}.0.0")
        else:
            upper = _to_version(f"{partial.major}.{partial.minor + 1}.0")
        return make(_between(floor, upper))

    if op == "^":
        major, minor, patch = partial.major, partial.minor, partial.patch
        if major > 0 or minor is None:
            upper = _to_version(f"{major + 1}.0.0")
        elif minor > 0 or patch is None:
            upper = _to_version(f"0.{minor + 1}.0")
        else:
            upper = _to_version(f"0.0.{patch + 1}")
        return make(_between(floor, upper))

    raise VersionParseError(f"Unknown operator '{op}' in requirement: '{text}'")


def _parse_comparator_set(text: str) -> List[_Comparator]:
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        low = _parse_partial(hyphen.group(1))
        high = _parse_partial(hyphen.group(2))
        return _comparators_for(">=", low, text) + _comparators_for("<=", high, text)

    normalized = _OPERATOR_GAP_RE.sub(r"\1", text.replace(",", " "))
    tokens = normalized.split()
    if not tokens:
        raise VersionParseError(f"Empty comparator in requirement: '{text}'")

    comparators: List[_Comparator] = []
    for token in tokens:
        match = _OPERATOR_RE.match(token)
        if not match:
            raise VersionParseError(f"Invalid comparator '{token}'")
        op = match.group(1) or ""
        comparators.extend(_comparators_for(op, _parse_partial(match.group(2)), token))
    return comparators


class Requirement:
    """
    A parsed version requirement.

    Example:
        >>> req = Requirement.parse("^18 || >=20.0.0")
        >>> req.allows(parse_version("20.11.1"))
        True
    """

    def __init__(self, text: str, alternatives: List[List[_Comparator]]):
        self.text = text
        self.alternatives = alternatives

    @classmethod
    def parse(cls, text: str) -> "Requirement":
        """
        Parse a requirement expression.

        Raises:
            VersionParseError: If any part of the expression is malformed
        """
        if not text or not text.strip():
            raise VersionParseError("Empty version requirement")
        alternatives = [_parse_comparator_set(part) for part in text.split("||")]
        return cls(text.strip(), alternatives)

    def allows(self, version: Version) -> bool:
        """Whether version satisfies any alternative."""
        for comparators in self.alternatives:
            if version.is_prerelease and not any(c.prerelease for c in comparators):
                continue
            if all(c(version) for c in comparators):
                return True
        return False

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Requirement({self.text!r})"


# ============================================================================
# Public API
# ============================================================================


def satisfies(installed: str, requirement: str) -> bool:
    """
    Check whether an installed version meets a requirement.

    The wildcard token ``latest`` is satisfied by anything, including an
    unparseable installed version.

    Args:
        installed: Detected version string
        requirement: Requirement expression from the manifest

    Returns:
        True if the requirement is met

    Raises:
        VersionParseError: If either side cannot be parsed
    """
    if is_wildcard(requirement):
        return True
    version = parse_version(installed)
    return Requirement.parse(requirement).allows(version)


def select_best(versions: Iterable[str], requirement: str) -> Optional[str]:
    """
    Pick the newest version that satisfies requirement.

    Unparseable candidates are skipped. The wildcard token selects the newest
    non-prerelease version.

    Raises:
        VersionParseError: If the requirement itself cannot be parsed
    """
    if is_wildcard(requirement):
        allows = lambda v: not v.is_prerelease  # noqa: E731
    else:
        allows = Requirement.parse(requirement).allows

    best: Optional[Tuple[Version, str]] = None
    for candidate in versions:
        try:
            parsed = parse_version(candidate)
        except VersionParseError:
            logger.debug(f"Skipping unparseable release version: {candidate}")
            continue
        if allows(parsed) and (best is None or parsed > best[0]):
            best = (parsed, candidate)
    return best[1] if best else None


def sort_versions(versions: Iterable[str], reverse: bool = True) -> List[str]:
    """Sort version strings (newest first by default), dropping unparseable ones."""
    parsed = []
    for candidate in versions:
        try:
            parsed.append((parse_version(candidate), candidate))
        except VersionParseError:
            continue
    parsed.sort(key=lambda item: item[0], reverse=reverse)
    return [text for _, text in parsed]


__all__ = [
    "WILDCARD",
    "Requirement",
    "is_wildcard",
    "parse_version",
    "satisfies",
    "select_best",
    "sort_versions",
]
