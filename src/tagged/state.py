"""State transitions between constant variants."""
import logging
from collections.abc import Mapping

from .dispatch import DEFAULT, compile_layout, resolve_pattern, tag_of, union_of, union_of_value
from .errors import DefinitionError


logger = logging.getLogger(__name__)


def transitions(union, table):
    """
    Build a step function from a transition table.

    `table` maps each constant variant (or a tuple of them, or a trailing
    `DEFAULT`) to the variant that follows it. Every variant must have a
    successor, and only unions made entirely of constant variants qualify,
    since a transition never invents or patches a payload.

    The returned function is pure: it maps the old member to the new one.
    Use a `Cell` to apply it in place.
    """
    union = union_of(union)
    payloads = [v.name for v in union.variants() if v.kind != "constant"]
    if payloads:
        raise DefinitionError(
            "%s: transitions only apply to constant variants, not %s"
            % (union.__name__, ", ".join(payloads))
        )
    pairs = list(table.items()) if isinstance(table, Mapping) else list(table)
    layout = tuple(
        DEFAULT if source is DEFAULT else resolve_pattern(union, source)
        for source, _ in pairs
    )
    arms = compile_layout(union, layout)
    targets = []
    for source, target in pairs:
        names = resolve_pattern(union, target)
        if len(names) != 1:
            raise DefinitionError(
                "%s: %r must lead to exactly one variant, not %r"
                % (union.__name__, source, target)
            )
        targets.append(union._member_map_[names[0]])

    def step(value):
        return targets[arms[tag_of(union, value)]]

    return step


class Cell:
    """
    A holder whose union value can be replaced in place.

    Union values themselves are immutable; a cell swaps the whole value, so
    the variant is always replaced as a unit and never partially patched.

    Cells are not thread-safe. Sharing one between threads requires an
    external lock around `advance` and `replace`.
    """

    __slots__ = ("union", "_value")

    def __init__(self, value):
        self.union = union_of_value(value)
        self._value = value

    @property
    def value(self):
        return self._value

    def replace(self, value):
        if not isinstance(value, self.union):
            raise TypeError("%r is not a %s" % (value, self.union.__name__))
        self._value = value
        return value

    def advance(self, step):
        """Replace the held value with ``step(value)`` and return it."""
        previous = self._value
        current = self.replace(step(previous))
        logger.debug("%s: %s -> %s", self.union.__name__, previous, current)
        return current

    def __repr__(self):
        return "Cell(%r)" % (self._value,)
