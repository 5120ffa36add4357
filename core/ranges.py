"""Semantic version ranges as unions of intervals.

A range such as ``^1.2.0 || >=3.0.0 <3.5.0`` is parsed into a list of
intervals on the ordered version space, one per ``||`` group. Intersecting two
ranges intersects every pair of their intervals and keeps the non-empty ones,
folding overlapping ones together, so an empty result means no version can
satisfy every input at once.

Pre-release versions follow the usual npm convention: ``2.0.0-beta.1`` only
satisfies a comparator set that mentions ``2.0.0`` with an explicit
pre-release tag. Intervals carry the set of such ``(major, minor, patch)``
triples alongside their bounds.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache

import semantic_version
from semantic_version import Version

_OPERATOR_GAP = re.compile(r"(<=|>=|<|>|=|~>|~|\^)\s+")
_HYPHEN = re.compile(r"^(?P<low>\S+) - (?P<high>\S+)$")
_NUMBER = r"0|[1-9]\d*|[xX*]"
_BLOCK = re.compile(
    r"^v?(?P<op><=|>=|<|>|=|~>|~|\^)?v?"
    rf"(?P<major>{_NUMBER})"
    rf"(?:\.(?P<minor>{_NUMBER})"
    rf"(?:\.(?P<patch>{_NUMBER}))?)?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]*))?"
    r"(?:\+(?P<build>[0-9A-Za-z.-]*))?$"
)
_WILDCARDS = ("x", "X", "*")

# Printed for ranges nothing can satisfy.
EMPTY_RANGE = "<0.0.0-0"


def _version(major: int, minor: int, patch: int, prerelease: str = "") -> Version:
    text = f"{major}.{minor}.{patch}"
    if prerelease:
        text += f"-{prerelease}"
    return Version(text)


@dataclass(frozen=True)
class _Partial:
    """One version as written in a range, with wildcards left as None."""

    major: int | None
    minor: int | None = None
    patch: int | None = None
    prerelease: str = ""

    @property
    def is_full(self) -> bool:
        return self.patch is not None

    @property
    def triple(self) -> tuple[int | None, int | None, int | None]:
        return (self.major, self.minor, self.patch)

    def floor(self) -> Version:
        return _version(self.major or 0, self.minor or 0, self.patch or 0, self.prerelease)

    def ceiling(self) -> Version:
        """First version past a partial, as an exclusive pre-release bound."""
        if self.minor is None:
            return _version(self.major + 1, 0, 0, "0")
        return _version(self.major, self.minor + 1, 0, "0")

    def next_release(self) -> Version:
        if self.minor is None:
            return _version(self.major + 1, 0, 0)
        return _version(self.major, self.minor + 1, 0)


@dataclass(frozen=True)
class Bound:
    version: Version
    inclusive: bool


def _higher_lower(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version > b.version else b
    return b if a.inclusive else a


def _lower_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None:
        return b
    if b is None:
        return a
    if a.version != b.version:
        return a if a.version < b.version else b
    return b if a.inclusive else a


def _bounds_disjoint(lower: Bound | None, upper: Bound | None) -> bool:
    if lower is None or upper is None:
        return False
    if lower.version != upper.version:
        return lower.version > upper.version
    return not (lower.inclusive and upper.inclusive)


@dataclass(frozen=True)
class Interval:
    """A contiguous span of versions; unbounded on a side when the bound is None."""

    lower: Bound | None = None
    upper: Bound | None = None
    prerelease_triples: frozenset = field(default_factory=frozenset)

    def is_empty(self) -> bool:
        """True when no release, and no pre-release this interval admits, lies inside it."""
        if _bounds_disjoint(self.lower, self.upper):
            return True
        if self._holds_release():
            return False
        return not any(self._holds_prerelease_of(triple) for triple in self.prerelease_triples)

    def _holds_release(self) -> bool:
        lower = self.lower
        if lower is None:
            first = _version(0, 0, 0)
        elif lower.version.prerelease:
            first = _version(lower.version.major, lower.version.minor, lower.version.patch)
        elif lower.inclusive:
            first = lower.version
        else:
            first = _version(lower.version.major, lower.version.minor, lower.version.patch + 1)
        return not _bounds_disjoint(Bound(first, True), self.upper)

    def _holds_prerelease_of(self, triple: tuple) -> bool:
        lower = _higher_lower(self.lower, Bound(_version(*triple, "0"), True))
        upper = _lower_upper(self.upper, Bound(_version(*triple), False))
        return not _bounds_disjoint(lower, upper)

    def narrow(self, other: "Interval") -> "Interval":
        """Add the comparators of ``other`` to the same comparator set."""
        return Interval(
            _higher_lower(self.lower, other.lower),
            _lower_upper(self.upper, other.upper),
            self.prerelease_triples | other.prerelease_triples,
        )

    def intersect(self, other: "Interval") -> "Interval":
        """Versions in both intervals.

        A pre-release version must be admitted by both sides, so only the
        triples named on both sides survive.
        """
        return Interval(
            _higher_lower(self.lower, other.lower),
            _lower_upper(self.upper, other.upper),
            self.prerelease_triples & other.prerelease_triples,
        )

    def contains(self, version: Version) -> bool:
        lower, upper = self.lower, self.upper
        if lower is not None:
            if version < lower.version or (version == lower.version and not lower.inclusive):
                return False
        if upper is not None:
            if version > upper.version or (version == upper.version and not upper.inclusive):
                return False
        if version.prerelease:
            return (version.major, version.minor, version.patch) in self.prerelease_triples
        return True

    def __str__(self) -> str:
        lower, upper = self.lower, self.upper
        if lower is None and upper is None:
            return "*"
        if lower and upper and lower.inclusive and upper.inclusive and lower.version == upper.version:
            return str(lower.version)
        parts = []
        if lower is not None:
            parts.append((">=" if lower.inclusive else ">") + str(lower.version))
        if upper is not None:
            version = upper.version
            if not upper.inclusive and version.prerelease == ("0",):
                parts.append(f"<{version.major}.{version.minor}.{version.patch}")
            else:
                parts.append(("<=" if upper.inclusive else "<") + str(version))
        return " ".join(parts)


def _looser_lower(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None or b is None:
        return None
    if a.version != b.version:
        return a if a.version < b.version else b
    return a if a.inclusive else b


def _looser_upper(a: Bound | None, b: Bound | None) -> Bound | None:
    if a is None or b is None:
        return None
    if a.version != b.version:
        return a if a.version > b.version else b
    return a if a.inclusive else b


def _covers(a: "Interval", b: "Interval") -> bool:
    return (
        _looser_lower(a.lower, b.lower) == a.lower
        and _looser_upper(a.upper, b.upper) == a.upper
        and b.prerelease_triples <= a.prerelease_triples
    )


def _merge(intervals: list["Interval"]) -> list["Interval"]:
    """Fold overlapping intervals together and drop the ones another covers."""
    merged: list[Interval] = []
    for interval in intervals:
        pending = True
        while pending:
            pending = False
            for index, kept in enumerate(merged):
                if _covers(kept, interval):
                    interval = None
                    break
                if _covers(interval, kept) or (
                    kept.prerelease_triples == interval.prerelease_triples
                    and not _bounds_disjoint(
                        _higher_lower(kept.lower, interval.lower),
                        _lower_upper(kept.upper, interval.upper),
                    )
                ):
                    del merged[index]
                    interval = Interval(
                        _looser_lower(kept.lower, interval.lower),
                        _looser_upper(kept.upper, interval.upper),
                        kept.prerelease_triples | interval.prerelease_triples,
                    )
                    pending = True
                    break
        if interval is not None:
            merged.append(interval)
    return merged


_ANY = Interval()
_NOTHING = Interval(Bound(_version(0, 0, 0), False), Bound(_version(0, 0, 0), False))


def _number(text: str | None) -> int | None:
    if text is None or text in _WILDCARDS:
        return None
    return int(text)


def _parse_block(block: str) -> tuple[str, _Partial]:
    match = _BLOCK.match(block)
    if not match:
        raise ValueError(f"Invalid range block: {block!r}")
    major = _number(match["major"])
    minor = _number(match["minor"]) if major is not None else None
    patch = _number(match["patch"]) if minor is not None else None
    prerelease = match["pre"] or ""
    if patch is None:
        prerelease = ""
    elif prerelease:
        # Validates the identifiers.
        _version(major, minor, patch, prerelease)
    return match["op"] or "", _Partial(major, minor, patch, prerelease)


def _triples(partial: _Partial) -> frozenset:
    if partial.is_full and partial.prerelease:
        return frozenset({partial.triple})
    return frozenset()


def _comparator(op: str, partial: _Partial) -> Interval:
    """Translate a single comparator into an interval."""
    if partial.major is None:
        return _NOTHING if op in (">", "<") else _ANY

    triples = _triples(partial)
    if op in ("", "="):
        if partial.is_full:
            exact = Bound(partial.floor(), True)
            return Interval(exact, exact, triples)
        return Interval(Bound(partial.floor(), True), Bound(partial.ceiling(), False))
    if op == ">":
        if partial.is_full:
            return Interval(lower=Bound(partial.floor(), False), prerelease_triples=triples)
        return Interval(lower=Bound(partial.next_release(), True))
    if op == ">=":
        return Interval(lower=Bound(partial.floor(), True), prerelease_triples=triples)
    if op == "<":
        if partial.is_full:
            return Interval(upper=Bound(partial.floor(), False), prerelease_triples=triples)
        return Interval(upper=Bound(_version(partial.major, partial.minor or 0, 0, "0"), False))
    if op == "<=":
        if partial.is_full:
            return Interval(upper=Bound(partial.floor(), True), prerelease_triples=triples)
        return Interval(upper=Bound(partial.ceiling(), False))

    lower = Bound(partial.floor(), True)
    if op in ("~", "~>"):
        upper = partial.ceiling() if partial.minor is None else _version(partial.major, partial.minor + 1, 0, "0")
    elif partial.major > 0 or partial.minor is None:
        upper = _version(partial.major + 1, 0, 0, "0")
    elif partial.minor > 0 or partial.patch is None:
        upper = _version(0, partial.minor + 1, 0, "0")
    else:
        upper = _version(0, 0, partial.patch + 1, "0")
    return Interval(lower, Bound(upper, False), triples)


def _hyphen(low: _Partial, high: _Partial) -> Interval:
    lower = Bound(low.floor(), True) if low.major is not None else None
    if high.major is None:
        upper = None
    elif high.is_full:
        upper = Bound(high.floor(), True)
    else:
        upper = Bound(high.ceiling(), False)
    return Interval(lower, upper, _triples(low) | _triples(high))


def _parse_group(group: str) -> Interval:
    if not group:
        return _ANY

    match = _HYPHEN.match(group)
    if match:
        low_op, low = _parse_block(match["low"])
        high_op, high = _parse_block(match["high"])
        if low_op or high_op:
            raise ValueError(f"Operators are not allowed in hyphen ranges: {group!r}")
        return _hyphen(low, high)

    interval = _ANY
    for block in group.split(" "):
        interval = interval.narrow(_comparator(*_parse_block(block)))
    return interval


def canonicalize(text: str) -> str:
    """Glue operators to their versions and collapse whitespace."""
    return " ".join(_OPERATOR_GAP.sub(r"\1", text.strip()).split())


class VersionRange:
    """A union of version intervals, built from a range string or an intersection."""

    def __init__(self, intervals: list[Interval], raw: str | None = None):
        self.intervals = [interval for interval in intervals if not interval.is_empty()]
        if raw is None:
            raw = " || ".join(str(interval) for interval in self.intervals) or EMPTY_RANGE
        self.raw = raw

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        """Parse a range string.

        Raises:
            ValueError: If the text is not a valid range
        """
        if not isinstance(text, str):
            raise ValueError(f"Range must be a string, got {type(text).__name__}")
        groups = canonicalize(text).split("||")
        return cls([_parse_group(group.strip()) for group in groups], raw=text)

    def is_empty(self) -> bool:
        return not self.intervals

    def contains(self, version: Version) -> bool:
        return any(interval.contains(version) for interval in self.intervals)

    def intersect(self, other: "VersionRange") -> "VersionRange":
        pairs = [mine.intersect(theirs) for mine in self.intervals for theirs in other.intervals]
        return VersionRange(_merge([pair for pair in pairs if not pair.is_empty()]))

    def max_satisfying(self, tags: list[str]) -> str | None:
        """Highest tag inside this range, or None."""
        best_tag, best = None, None
        for tag in tags:
            version = parse_version(tag)
            if version is None or not self.contains(version):
                continue
            if best is None or version > best:
                best_tag, best = tag, version
        return best_tag

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"VersionRange({self.raw!r})"


@lru_cache(maxsize=2048)
def parse_range(text: str) -> VersionRange:
    return VersionRange.parse(text)


def is_valid_range(text) -> bool:
    """Check a range against the npm grammar and our interval parser."""
    if not isinstance(text, str):
        return False
    try:
        semantic_version.NpmSpec(canonicalize(text))
        parse_range(text)
    except ValueError:
        return False
    return True


def intersect_all(ranges: list[VersionRange]) -> VersionRange:
    """Intersection of one or more ranges."""
    if not ranges:
        raise ValueError("At least one range is required")
    result = ranges[0]
    for other in ranges[1:]:
        result = result.intersect(other)
    return result


def parse_version(tag: str) -> Version | None:
    """Parse a tag such as ``v1.2.3`` into a version, or None if it is not one."""
    if not isinstance(tag, str):
        return None
    text = tag.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    text = text.split("+", 1)[0]
    try:
        return Version(text)
    except ValueError:
        return None


def is_prerelease(tag: str) -> bool:
    version = parse_version(tag)
    return bool(version and version.prerelease)


def clean_tags(tags: list[str]) -> list[str]:
    """Valid versions among ``tags``, normalized and sorted high to low."""
    versions = {}
    for tag in tags:
        version = parse_version(tag)
        if version is not None:
            versions.setdefault(str(version), version)
    return sorted(versions, key=versions.__getitem__, reverse=True)
