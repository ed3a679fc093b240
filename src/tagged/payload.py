"""Payload shapes and runtime conformance of field values."""
import collections.abc
import dataclasses
import logging
import re
from operator import itemgetter
from types import UnionType
from typing import Annotated, Any, Literal, TypeVar, Union, get_args, get_origin, get_type_hints

from .errors import ShapeMismatch


logger = logging.getLogger(__name__)


class PayloadShape:
    """
    The fixed shape of a variant's payload.

    `kind` is one of ``"none"``, ``"single"`` or ``"fields"``; `fields` holds
    ``(name, annotation)`` pairs in declaration order.
    """

    __slots__ = ("kind", "fields")

    def __init__(self, kind: str, fields: tuple = ()):
        self.kind = kind
        self.fields = tuple(fields)

    @classmethod
    def of(cls, variant: type) -> "PayloadShape":
        if not dataclasses.is_dataclass(variant):
            return cls("none")
        fields = tuple((f.name, f.type) for f in dataclasses.fields(variant) if f.init)
        if not fields:
            return cls("none")
        return cls("single" if len(fields) == 1 else "fields", fields)

    @property
    def names(self) -> tuple:
        return tuple(name for name, _ in self.fields)

    def __eq__(self, other):
        if not isinstance(other, PayloadShape):
            return NotImplemented
        return self.kind == other.kind and self.fields == other.fields

    def __hash__(self):
        return hash((self.kind, self.names))

    def __repr__(self):
        if self.kind == "none":
            return "none"
        inner = ", ".join("%s: %s" % (n, _type_name(t)) for n, t in self.fields)
        return "%s(%s)" % (self.kind, inner)


def _type_name(tp) -> str:
    if isinstance(tp, str):
        return tp
    if isinstance(tp, type):
        return tp.__qualname__
    return repr(tp)


def payload_type(qualname: str, shape: PayloadShape) -> type:
    """
    Build the tuple type used to hand out a variant's payload.

    Fields are exposed both by position and as read-only properties named
    after the dataclass fields, whatever those names are.
    """
    names = shape.names

    def __new__(cls, *values):
        if len(values) != len(names):
            raise TypeError(
                "%s takes %d values, got %d" % (cls.__qualname__, len(names), len(values))
            )
        return tuple.__new__(cls, values)

    def __repr__(self):
        inner = ", ".join("%s=%r" % pair for pair in zip(names, self))
        return "%s(%s)" % (type(self).__qualname__, inner)

    def __getnewargs__(self):
        return tuple(self)

    ns = {
        "__slots__": (),
        "__qualname__": qualname + "Payload",
        "_fields": names,
        "__new__": __new__,
        "__repr__": __repr__,
        "__getnewargs__": __getnewargs__,
    }
    for index, name in enumerate(names):
        ns[name] = property(itemgetter(index), doc="Alias for field number %d" % index)
    type_name = re.sub(r"\W", "_", qualname.rpartition(".")[2]) + "Payload"
    return type(type_name, (tuple,), ns)


def conforms(value: Any, tp: Any) -> bool:
    """
    Tell whether `value` fits the annotation `tp`.

    Only the constructs that can be checked cheaply at runtime are inspected;
    anything else (callables, protocols, unresolved forward references) passes.
    """
    if tp is Any or isinstance(tp, TypeVar):
        return True
    if tp is None or tp is type(None):
        return value is None
    if tp is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if tp is complex:
        return isinstance(value, (int, float, complex)) and not isinstance(value, bool)

    origin = get_origin(tp)
    if origin is None:
        if isinstance(tp, type):
            return isinstance(value, tp)
        return True

    args = get_args(tp)
    if origin is Union or origin is UnionType:
        return any(conforms(value, arg) for arg in args)
    if origin is Literal:
        return value in args
    if origin is Annotated:
        return conforms(value, args[0])
    if not isinstance(origin, type):
        return True
    if not isinstance(value, origin):
        return False
    if not args:
        return True
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return all(conforms(item, args[0]) for item in value)
        if args == ((),):
            return len(value) == 0
        return len(value) == len(args) and all(
            conforms(item, arg) for item, arg in zip(value, args)
        )
    if issubclass(origin, collections.abc.Mapping) and len(args) == 2:
        return all(
            conforms(k, args[0]) and conforms(v, args[1]) for k, v in value.items()
        )
    if issubclass(origin, (list, set, frozenset, collections.abc.Sequence)) and len(args) == 1:
        return all(conforms(item, args[0]) for item in value)
    return True


def field_hints(variant: type) -> dict:
    """
    Resolved annotations of a payload variant, computed once and cached.

    The owning union is visible under its own name so self references resolve.
    Unresolvable annotations are left unchecked.
    """
    hints = variant.__dict__.get("_field_hints_")
    if hints is not None:
        return hints
    union = variant._union_
    localns = {union.__name__: union}
    localns.update(union._member_map_)
    try:
        hints = get_type_hints(variant, localns=localns)
    except (NameError, TypeError, SyntaxError) as exc:
        logger.warning(
            "%s: cannot resolve field annotations (%s); payload types are not checked",
            variant.__qualname__,
            exc,
        )
        hints = {}
    variant._field_hints_ = hints
    return hints


def check_payload(instance) -> None:
    """Raise `ShapeMismatch` unless every field of `instance` fits its annotation."""
    variant = type(instance)
    hints = field_hints(variant)
    for name in variant._shape_.names:
        if name not in hints:
            continue
        value = getattr(instance, name)
        if not conforms(value, hints[name]):
            raise ShapeMismatch(
                "%s: field %r expects %s, got %s"
                % (
                    variant.__qualname__,
                    name,
                    _type_name(hints[name]),
                    type(value).__qualname__,
                )
            )


def construct(variant, *args, **kwargs):
    """
    Build a union value from a variant and its payload.

    Payload variants validate the payload; constant variants accept none and
    are returned as-is.
    """
    if isinstance(variant, type) and "_union_" in variant.__dict__:
        return variant(*args, **kwargs)
    if hasattr(type(variant), "_member_map_") and hasattr(variant, "_name_"):
        if args or kwargs:
            raise ShapeMismatch("%s carries no payload" % (variant,))
        return variant
    raise TypeError("%r is not a variant of a tagged union" % (variant,))


def extract_payload(value):
    """
    Return the payload of `value` as a tuple with named fields.

    Fields are reachable both by position and by name, so ``a, b = payload``
    and ``payload.a, payload.b`` always agree.
    """
    make = getattr(type(value), "_payload_type_", None)
    if make is None:
        raise ShapeMismatch("%s carries no payload" % (value,))
    return make(*(getattr(value, name) for name in type(value)._shape_.names))
