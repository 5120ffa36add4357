"""Turn declared requirement strings into version ranges."""

import re
from dataclasses import dataclass
from typing import Callable

from .ranges import is_valid_range

HOSTED_URL_REGEX = re.compile(
    r"^(?:git\+)?(?:https?|git|ssh)://[^/\s#]+/[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+#(?P<ref>[^#\s]+)$"
)
SHORTHAND_REGEX = re.compile(r"^[A-Za-z0-9-]+/[A-Za-z0-9_.-]+#(?P<ref>[^#\s]+)$")


@dataclass(frozen=True)
class Normalized:
    """Outcome of normalizing one requirement string."""

    raw: object
    range: str | None
    encoding: str  # url, shorthand, range, invalid

    @property
    def valid(self) -> bool:
        return self.range is not None


def _ref_matcher(pattern: re.Pattern) -> Callable[[str], str | None]:
    def match(raw: str) -> str | None:
        found = pattern.match(raw)
        if found and is_valid_range(found["ref"]):
            return found["ref"]
        return None

    return match


def _range_matcher(raw: str) -> str | None:
    return raw if is_valid_range(raw) else None


DEFAULT_MATCHERS = [
    ("url", _ref_matcher(HOSTED_URL_REGEX)),
    ("shorthand", _ref_matcher(SHORTHAND_REGEX)),
    ("range", _range_matcher),
]


class ConstraintNormalizer:
    """Ordered set of matchers; the first one that yields a range wins."""

    def __init__(self, matchers: list[tuple[str, Callable[[str], str | None]]] | None = None):
        self.matchers = list(matchers if matchers is not None else DEFAULT_MATCHERS)

    def normalize(self, raw) -> Normalized:
        """Normalize a requirement.

        Args:
            raw: Requirement as declared in a manifest

        Returns:
            Normalized result; ``range`` is None when no matcher accepted it
        """
        if not isinstance(raw, str):
            return Normalized(raw=raw, range=None, encoding="invalid")

        text = raw.strip()
        for encoding, matcher in self.matchers:
            found = matcher(text)
            if found is not None:
                return Normalized(raw=raw, range=found, encoding=encoding)
        return Normalized(raw=raw, range=None, encoding="invalid")
