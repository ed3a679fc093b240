"""Errors raised while defining and using tagged unions."""


class TaggedUnionError(Exception):
    """Base class for every error raised by this package."""


class DefinitionError(TaggedUnionError, TypeError):
    """A union, arm set or transition table is malformed."""


class ShapeMismatch(TaggedUnionError, TypeError):
    """A payload does not fit the shape declared by its variant."""


class NonExhaustiveMatch(TaggedUnionError, TypeError):
    """Some variants are left unhandled and no catch-all was given."""

    def __init__(self, union, missing):
        self.union = union
        self.missing = tuple(missing)
        super().__init__(
            "%s: unhandled variants %s"
            % (getattr(union, "__name__", union), ", ".join(self.missing))
        )

    def __reduce__(self):
        return type(self), (self.union, self.missing)


class _NotFoundType:
    """
    The absent result of a failable lookup.

    There is exactly one instance, ``NotFound``; it is falsy so callers can
    branch on it directly.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NotFound"

    def __reduce__(self):
        return "NotFound"


NotFound = _NotFoundType()
