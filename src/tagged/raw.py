"""Raw-value backing: definition-time sequencing and failable lookup."""
import math

from .errors import DefinitionError, NotFound


RAW_KINDS = (int, float, str)


class auto:
    """
    Placeholder for a constant variant.

    In a raw-backed union the value is filled in when the class is defined:
    the previous value plus one for numbers, the variant's own name for text.
    """

    def __repr__(self):
        return "auto()"


def _accepts(kind, value) -> bool:
    if isinstance(value, bool):
        return False
    if kind is float:
        return isinstance(value, (int, float))
    return isinstance(value, kind)


def _coerce(union_name, name, kind, value):
    if not _accepts(kind, value):
        raise DefinitionError(
            "%s.%s: raw value %r is not of kind %s"
            % (union_name, name, value, kind.__name__)
        )
    if kind is float:
        value = float(value)
        if math.isnan(value):
            raise DefinitionError("%s.%s: NaN cannot be a raw value" % (union_name, name))
    return value


def _next_value(union_name, name, kind, previous):
    if kind is str:
        return name
    if previous is None:
        return kind(0)
    if kind is float and not previous.is_integer():
        raise DefinitionError(
            "%s.%s: cannot continue from non-integral raw value %r; give it explicitly"
            % (union_name, name, previous)
        )
    return previous + 1


def resolve_raw_values(union_name: str, kind: type, constants) -> dict:
    """
    Resolve the raw value of every constant variant, in declaration order.

    `constants` is a sequence of ``(name, declared)`` pairs where `declared` is
    either an explicit value or `auto`. Each explicit value restarts the
    numbering, so one union may hold several ranges.
    """
    if kind not in RAW_KINDS:
        raise DefinitionError(
            "%s: raw values must be int, float or str, not %r" % (union_name, kind)
        )
    resolved = {}
    owners = {}
    previous = None
    for name, declared in constants:
        if isinstance(declared, auto):
            value = _next_value(union_name, name, kind, previous)
        else:
            value = _coerce(union_name, name, kind, declared)
        if value in owners:
            raise DefinitionError(
                "%s: %s and %s share raw value %r"
                % (union_name, owners[value], name, value)
            )
        owners[value] = name
        resolved[name] = value
        previous = value
    return resolved


def from_raw_value(union, raw):
    """
    Look up the member of `union` whose raw value is `raw`.

    Returns `NotFound` when no member matches, including for values of the
    wrong kind and for unions without raw values. Never raises.
    """
    kind = getattr(union, "_raw_kind_", None)
    if kind is None or not _accepts(kind, raw):
        return NotFound
    try:
        return union._value2member_map_[raw]
    except (KeyError, TypeError):
        return NotFound


def raw_value_of(member):
    """The raw value of a member of a raw-backed union."""
    return member.raw_value


class RawConverter:
    """
    Read raw values of a union as some richer domain type.

    `convert` turns a raw value into the domain value. `parse` turns outside
    input into a raw value before it is looked up and defaults to identity.
    Neither takes part in the union's definition.
    """

    def __init__(self, union, convert, parse=None):
        if getattr(union, "_raw_kind_", None) is None:
            raise TypeError("%r has no raw values to convert" % (union,))
        self.union = union
        self._convert = convert
        self._parse = parse

    def value_of(self, member):
        return self._convert(raw_value_of(member))

    def lookup(self, text):
        raw = text if self._parse is None else self._parse(text)
        return from_raw_value(self.union, raw)

    def __repr__(self):
        return "<RawConverter for %s>" % self.union.__name__
