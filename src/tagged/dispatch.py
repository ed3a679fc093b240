"""Exhaustive dispatch over the variants of a union."""
import logging
import weakref
from collections.abc import Mapping
from types import MethodType
from typing import get_origin

from .errors import DefinitionError, NonExhaustiveMatch, NotFound
from .payload import extract_payload


logger = logging.getLogger(__name__)


class _Default:
    """Catch-all pattern: every variant not listed by an earlier arm."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "DEFAULT"

    def __reduce__(self):
        return "DEFAULT"


DEFAULT = _Default()

# union -> {arm layout -> {variant name -> arm index}}
_layouts = weakref.WeakKeyDictionary()


def union_of(union):
    """Accept a union or one of its generic aliases (``Option[int]``)."""
    origin = get_origin(union)
    if origin is not None:
        union = origin
    if not hasattr(union, "_member_names_"):
        raise TypeError("%r is not a tagged union" % (union,))
    return union


def union_of_value(value):
    cls = type(value)
    union = cls.__dict__.get("_union_")
    if union is not None:
        return union
    if hasattr(cls, "_member_names_") and "_name_" in getattr(value, "__dict__", {}):
        return cls
    raise TypeError("%r is not a tagged union value" % (value,))


def tag_of(union, value) -> str:
    if not isinstance(value, union):
        raise TypeError("%r is not a %s" % (value, union.__name__))
    return value._name_


def resolve_pattern(union, pattern) -> tuple:
    """Turn a pattern into the names of the variants it covers."""
    if isinstance(pattern, tuple):
        names = ()
        for item in pattern:
            names += resolve_pattern(union, item)
        return names
    if isinstance(pattern, str):
        if pattern not in union._member_map_:
            raise DefinitionError("%s has no variant %r" % (union.__name__, pattern))
        return (pattern,)
    name = getattr(pattern, "_name_", None)
    if name is None or union._member_map_.get(name) is not pattern:
        raise DefinitionError("%r is not a variant of %s" % (pattern, union.__name__))
    return (name,)


def compile_layout(union, layout: tuple) -> dict:
    """
    Map every variant of `union` to the index of the arm handling it.

    `layout` holds, per arm, either a tuple of variant names or `DEFAULT`.
    The completeness check runs once per union and layout; later calls reuse
    the cached table.
    """
    cached = _layouts.setdefault(union, {})
    try:
        return cached[layout]
    except KeyError:
        pass

    table = {}
    default = None
    for index, names in enumerate(layout):
        if names is DEFAULT:
            if index != len(layout) - 1:
                raise DefinitionError("%s: DEFAULT must be the last arm" % union.__name__)
            default = index
            continue
        for name in names:
            if name in table:
                raise DefinitionError(
                    "%s.%s is handled by more than one arm" % (union.__name__, name)
                )
            table[name] = index

    missing = [name for name in union._member_names_ if name not in table]
    if missing and default is None:
        raise NonExhaustiveMatch(union, missing)
    if default is not None and not missing:
        logger.warning(
            "%s: DEFAULT arm is unreachable, every variant is handled explicitly",
            union.__name__,
        )
    for name in missing:
        table[name] = default

    logger.debug("%s: checked arm layout %r", union.__name__, layout)
    cached[layout] = table
    return table


def _apply(handler, value):
    if getattr(type(value), "_payload_type_", None) is None:
        return handler()
    return handler(*extract_payload(value))


class Matcher:
    """
    A complete set of arms for one union.

    `arms` maps patterns to handlers, either as a mapping or as ``(pattern,
    handler)`` pairs. A pattern is a variant, a variant's name, a tuple of
    those, or `DEFAULT`. Every variant must be covered exactly once unless a
    trailing `DEFAULT` arm takes the rest; otherwise construction fails.

    Handlers for payload variants get the payload fields positionally,
    handlers for constant variants get no arguments, and the `DEFAULT` handler
    gets the value itself.
    """

    def __init__(self, union, arms):
        union = union_of(union)
        pairs = list(arms.items()) if isinstance(arms, Mapping) else list(arms)
        layout = tuple(
            DEFAULT if pattern is DEFAULT else resolve_pattern(union, pattern)
            for pattern, _ in pairs
        )
        self.union = union
        self._table = compile_layout(union, layout)
        self._handlers = tuple(handler for _, handler in pairs)
        self._default = len(pairs) - 1 if layout and layout[-1] is DEFAULT else None

    def __call__(self, value):
        index = self._table[tag_of(self.union, value)]
        handler = self._handlers[index]
        if index == self._default:
            return handler(value)
        return _apply(handler, value)

    def __repr__(self):
        return "<Matcher for %s with %d arms>" % (self.union.__name__, len(self._handlers))


def match(value, arms):
    """Dispatch `value` once; the arm set is checked on first use and cached."""
    return Matcher(union_of_value(value), arms)(value)


def is_case(value, variant) -> bool:
    """Tell whether `value` has the shape `variant` (a variant, name or tuple)."""
    union = union_of_value(value)
    return value._name_ in resolve_pattern(union, variant)


def if_case(value, variant, then, otherwise=None):
    """
    Single-pattern match.

    When `value` is `variant`, call `then` with its payload fields. Otherwise
    call `otherwise` with the value, or return `NotFound` if there is none.
    """
    if is_case(value, variant):
        return _apply(then, value)
    if otherwise is not None:
        return otherwise(value)
    return NotFound


class Equality:
    """
    A hand-written ``__eq__`` that must cover every variant.

    Values of different variants are never equal. Values of the same variant
    are compared by that variant's comparator, or by `otherwise` for variants
    without one. Binding to a union with an uncovered variant and no
    `otherwise` raises `NonExhaustiveMatch`.

    Assign it to ``__eq__`` in a union body and it is bound when the class is
    created; call `bind` to use it on its own.
    """

    def __init__(self, arms=None, *, otherwise=None, **by_name):
        self._arms = list(arms.items()) if arms else []
        self._arms.extend(by_name.items())
        self._otherwise = otherwise
        self.union = None
        self._table = None

    def bind(self, union):
        union = union_of(union)
        table = {}
        for pattern, compare in self._arms:
            for name in resolve_pattern(union, pattern):
                if name in table:
                    raise DefinitionError(
                        "%s.%s has more than one comparator" % (union.__name__, name)
                    )
                table[name] = compare
        missing = [name for name in union._member_names_ if name not in table]
        if missing and self._otherwise is None:
            raise NonExhaustiveMatch(union, missing)
        self.union = union
        self._table = table
        return self

    def __call__(self, lhs, rhs):
        if self._table is None:
            raise DefinitionError("equality is not bound to a union")
        if not isinstance(lhs, self.union) or not isinstance(rhs, self.union):
            return NotImplemented
        if lhs._name_ != rhs._name_:
            return False
        compare = self._table.get(lhs._name_, self._otherwise)
        return bool(compare(lhs, rhs))

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return MethodType(self, instance)


def equality(arms=None, *, otherwise=None, **by_name) -> Equality:
    return Equality(arms, otherwise=otherwise, **by_name)
