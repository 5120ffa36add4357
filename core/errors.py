"""Exception types for DepScope."""


class DepScopeError(Exception):
    """Base class for all DepScope errors."""


class EmptyConstraintSetError(DepScopeError):
    """Resolution was requested on a dependency with no constraints."""

    def __init__(self, name: str):
        super().__init__(f"Dependency {name} has no constraints; supply one or more before resolving")
        self.name = name


class TagSourceError(DepScopeError):
    """A tag source failed to answer a query."""

    def __init__(self, name: str, message: str):
        super().__init__(message)
        self.name = name


class TagNotFoundError(TagSourceError):
    """The dependency is unknown to the tag source."""

    def __init__(self, name: str):
        super().__init__(name, f"Could not find {name} in the tag source")


class CrawlError(DepScopeError):
    """Reading a project from disk failed."""


class NoProjectsError(CrawlError):
    """The projects directory holds no matching projects."""


class EmptyGraphError(DepScopeError):
    """The project graph handed to the driver is empty or malformed."""
