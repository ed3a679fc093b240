"""Closed tagged unions with raw values, payloads and exhaustive dispatch."""
import logging

from .dispatch import DEFAULT, Equality, Matcher, equality, if_case, is_case, match
from .errors import (
    DefinitionError,
    NonExhaustiveMatch,
    NotFound,
    ShapeMismatch,
    TaggedUnionError,
)
from .log import configure_logging
from .payload import PayloadShape, construct, extract_payload
from .raw import RawConverter, auto, from_raw_value, raw_value_of
from .state import Cell, transitions
from .union import TaggedUnion, TaggedUnionMeta, Variant, indirect


logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "DEFAULT",
    "Cell",
    "DefinitionError",
    "Equality",
    "Matcher",
    "NonExhaustiveMatch",
    "NotFound",
    "PayloadShape",
    "RawConverter",
    "ShapeMismatch",
    "TaggedUnion",
    "TaggedUnionError",
    "TaggedUnionMeta",
    "Variant",
    "auto",
    "configure_logging",
    "construct",
    "equality",
    "extract_payload",
    "from_raw_value",
    "if_case",
    "indirect",
    "is_case",
    "match",
    "raw_value_of",
    "transitions",
]
