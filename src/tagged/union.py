"""Closed tagged unions declared as classes."""
import inspect
import logging
import re
import sys
from dataclasses import FrozenInstanceError, dataclass, is_dataclass
from types import DynamicClassAttribute, GenericAlias, MappingProxyType, new_class
from typing import Any, ForwardRef, Literal, get_args, get_origin

from .dispatch import Equality, Matcher
from .errors import DefinitionError, NotFound, ShapeMismatch
from .payload import PayloadShape, check_payload, payload_type
from .raw import auto, from_raw_value, resolve_raw_values


logger = logging.getLogger(__name__)

TaggedUnion = None

# Class-body callables that must not be copied onto payload variants.
_NOT_COPIED = frozenset(
    {"__init__", "__new__", "__init_subclass__", "__class_getitem__", "__reduce_ex__"}
)


def _is_dunder(name: str) -> bool:
    return len(name) > 4 and name[:2] == name[-2:] == "__" and name[2] != "_"


def _is_descriptor(obj) -> bool:
    return (
        hasattr(obj, "__get__") or hasattr(obj, "__set__") or hasattr(obj, "__delete__")
    )


def _is_variant(value) -> bool:
    if isinstance(value, type):
        return is_dataclass(value)
    return not _is_descriptor(value)


def indirect(cls):
    """
    Mark a payload variant as holding values of its own union.

    Recursive references must be declared this way; children are owned by
    the node that holds them.
    """
    cls._indirect_ = True
    return cls


@dataclass(frozen=True)
class Variant:
    """Describes one variant of a union."""

    name: str
    kind: str
    shape: PayloadShape


class _UnionNamespace(dict):
    """Class body namespace that records variants in declaration order."""

    def __init__(self, cls_name):
        super().__init__()
        self._cls_name = cls_name
        self._member_names = []

    def __setitem__(self, key, value):
        if key.startswith("_"):
            pass
        elif key in self._member_names:
            raise DefinitionError(
                "%s: variant %r is defined more than once" % (self._cls_name, key)
            )
        elif _is_variant(value):
            if key in self:
                raise DefinitionError(
                    "%s: variant %r reuses the name of %r"
                    % (self._cls_name, key, self[key])
                )
            self._member_names.append(key)
        super().__setitem__(key, value)


def _mentions(annotation, names, qualnames=()) -> bool:
    """Tell whether an annotation refers to any of `names`, however it is spelled."""
    if isinstance(annotation, str):
        return any(
            re.search(r"\b%s\b" % re.escape(name), annotation) is not None for name in names
        )
    if isinstance(annotation, ForwardRef):
        return _mentions(annotation.__forward_arg__, names)
    if get_origin(annotation) is Literal:
        return False
    if isinstance(annotation, type) and annotation.__qualname__ in qualnames:
        return True
    return any(_mentions(arg, names, qualnames) for arg in get_args(annotation))


def _frozen_setattr(self, name, value):
    if self.__dict__.get("_sealed_"):
        raise FrozenInstanceError("cannot assign to field %r" % name)
    object.__setattr__(self, name, value)


def _frozen_delattr(self, name):
    raise FrozenInstanceError("cannot delete field %r" % name)


def _variant_hash(self):
    cls = type(self)
    return hash((cls._name_,) + tuple(getattr(self, n) for n in cls._shape_.names))


def _checked_init(base, qualname):
    signature = inspect.signature(base)
    base_init = base.__init__

    def __init__(self, *args, **kwargs):
        try:
            signature.bind(*args, **kwargs)
        except TypeError as exc:
            raise ShapeMismatch("%s: %s" % (qualname, exc)) from exc
        base_init(self, *args, **kwargs)
        check_payload(self)
        object.__setattr__(self, "_sealed_", True)

    return __init__


class TaggedUnionMeta(type):
    """
    Metaclass for TaggedUnion
    """

    def __instancecheck__(cls, instance: Any) -> bool:
        union = type(instance).__dict__.get("_union_")
        if union is not None and issubclass(union, cls):
            return True
        return type.__instancecheck__(cls, instance)

    def __subclasscheck__(cls, subclass) -> bool:
        union = getattr(subclass, "__dict__", {}).get("_union_")
        if union is not None and issubclass(union, cls):
            return True
        return type.__subclasscheck__(cls, subclass)

    @classmethod
    def __prepare__(metacls, cls, bases, raw=None, **kwds):
        metacls._check_bases(cls, bases)
        return _UnionNamespace(cls)

    def __new__(metacls, cls, bases, classdict, raw=None, **kwds):
        raw = metacls._raw_kind(bases, raw)
        custom_methods = metacls._gather_user_methods(classdict) if bases else {}

        # keep variants out of the class namespace; they are installed below
        members = {name: classdict[name] for name in classdict._member_names}
        for name in classdict._member_names:
            del classdict[name]

        if TaggedUnion is not None:
            invalid_names = set(members) & metacls._reserved_names()
            if invalid_names:
                raise DefinitionError(
                    "%s: reserved variant names: %s" % (cls, ", ".join(sorted(invalid_names)))
                )

        constants = [(n, v) for n, v in members.items() if not isinstance(v, type)]
        payloads = [n for n, v in members.items() if isinstance(v, type)]
        if raw is not None:
            if payloads:
                raise DefinitionError(
                    "%s: raw-value backed unions cannot carry payloads (%s)"
                    % (cls, ", ".join(payloads))
                )
            raw_values = resolve_raw_values(cls, raw, constants)
        else:
            explicit = [n for n, v in constants if not isinstance(v, auto)]
            if explicit and payloads:
                raise DefinitionError(
                    "%s: mixes raw values (%s) with payload variants (%s)"
                    % (cls, ", ".join(explicit), ", ".join(payloads))
                )
            if explicit:
                raise DefinitionError(
                    "%s: raw values given for %s without a raw kind; "
                    "declare raw=int, raw=float or raw=str, or use auto()"
                    % (cls, ", ".join(explicit))
                )
            raw_values = {}

        custom_eq = "__eq__" in classdict
        if custom_eq and "__hash__" not in classdict:
            classdict["__hash__"] = TaggedUnion.__hash__
            custom_methods["__hash__"] = TaggedUnion.__hash__

        if "__doc__" not in classdict:
            classdict["__doc__"] = "A tagged union."

        union = super().__new__(metacls, cls, bases, classdict, **kwds)
        union._member_names_ = []  # names in definition order
        union._member_map_ = {}  # name -> member or variant class
        union._value2member_map_ = {}  # raw value -> member
        union._variants_ = ()
        union._raw_kind_ = raw

        # DynamicClassAttribute names are looked up through __getattr__ instead
        dynamic_attributes = {
            k
            for c in union.mro()
            for k, v in c.__dict__.items()
            if isinstance(v, DynamicClassAttribute)
        }

        variants = []
        for member_name, value in members.items():
            if isinstance(value, type):
                member = metacls._make_variant_class(
                    union, member_name, value, custom_methods, payloads
                )
                variants.append(Variant(member_name, "payload", member._shape_))
            else:
                member = object.__new__(union)
                object.__setattr__(member, "_name_", member_name)
                object.__setattr__(member, "_value_", raw_values.get(member_name))
                object.__setattr__(member, "__objclass__", union)
                if raw is not None:
                    union._value2member_map_[member._value_] = member
                variants.append(Variant(member_name, "constant", PayloadShape("none")))
            union._member_names_.append(member_name)
            if member_name not in dynamic_attributes:
                type.__setattr__(union, member_name, member)
            union._member_map_[member_name] = member
        union._variants_ = tuple(variants)

        equality = classdict.get("__eq__")
        if isinstance(equality, Equality):
            equality.bind(union)

        if TaggedUnion is not None:
            logger.debug(
                "defined %s with %d variants%s",
                union.__qualname__,
                len(variants),
                " (raw %s)" % raw.__name__ if raw is not None else "",
            )
        return union

    def __bool__(cls):
        """
        classes/types should always be True.
        """
        return True

    def __call__(cls, value, names=None, *, module=None, qualname=None, raw=None):
        """
        Either returns an existing member, or creates a new union class.

        ``Fruit(Fruit.apple)`` returns the value unchanged and
        ``HttpCodes(200)`` looks a member up by raw value, raising
        `ValueError` when there is none (`from_raw_value` is the failable
        form).

        ``TaggedUnion("Fruit", "apple pear")`` is the functional API: `names`
        is a whitespace/comma separated string, a sequence of names, a
        sequence of ``(name, value)`` pairs or a mapping; `raw` picks the raw
        kind. `module` and `qualname` should be given where the caller's
        module cannot be guessed, or the class will not pickle.
        """
        if names is None:
            return cls._lookup(value)
        return cls._create_(
            value, names, module=module, qualname=qualname, raw=raw
        )

    def __contains__(cls, obj):
        if isinstance(obj, type):
            return obj.__dict__.get("_union_") is cls
        return isinstance(obj, cls) and obj._name_ in cls._member_map_

    def __delattr__(cls, attr):
        if attr in cls._member_map_:
            raise AttributeError("%s: cannot delete variant %r" % (cls.__name__, attr))
        super().__delattr__(attr)

    def __dir__(cls):
        return [
            "__class__",
            "__doc__",
            "__members__",
            "__module__",
        ] + cls._member_names_

    def __getattr__(cls, name):
        """
        Return the variant matching `name`.

        Variants shadowed by a DynamicClassAttribute (such as ``name``) are
        only reachable this way.
        """
        if _is_dunder(name):
            raise AttributeError(name)
        try:
            return cls.__dict__["_member_map_"][name]
        except KeyError:
            raise AttributeError(name) from None

    def __iter__(cls):
        """
        Returns variants in definition order.
        """
        return (cls._member_map_[name] for name in cls._member_names_)

    def __len__(cls):
        return len(cls._member_names_)

    @property
    def __members__(cls):
        """
        Read-only mapping of variant name -> member or variant class.
        """
        return MappingProxyType(cls._member_map_)

    def __repr__(cls):
        return "<TaggedUnion %r>" % cls.__name__

    def __reversed__(cls):
        return (cls._member_map_[name] for name in reversed(cls._member_names_))

    def __setattr__(cls, name, value):
        """
        Block attempts to reassign variants.
        """
        member_map = cls.__dict__.get("_member_map_", {})
        if name in member_map:
            raise AttributeError("Cannot reassign variants.")
        super().__setattr__(name, value)

    def _lookup(cls, value):
        if value in cls:
            return value
        member = from_raw_value(cls, value)
        if member is NotFound:
            raise ValueError("%r is not a valid %s" % (value, cls.__qualname__))
        return member

    def _create_(cls, class_name, names, *, module=None, qualname=None, raw=None):
        metacls = cls.__class__
        bases = (cls,)
        classdict = metacls.__prepare__(class_name, bases, raw=raw)

        if isinstance(names, str):
            names = names.replace(",", " ").split()
        if isinstance(names, (tuple, list)) and names and isinstance(names[0], str):
            names = [(name, auto()) for name in names]

        # Here, names is either an iterable of (name, value) or a mapping.
        for item in names:
            if isinstance(item, str):
                member_name, member_value = item, names[item]
            else:
                member_name, member_value = item
            classdict[member_name] = member_value
        union = metacls.__new__(metacls, class_name, bases, classdict, raw=raw)

        if module is None:
            try:
                module = sys._getframe(2).f_globals["__name__"]
            except (AttributeError, ValueError, KeyError):
                pass
        if module is not None:
            union.__module__ = module
        if qualname is not None:
            union.__qualname__ = qualname
        return union

    @staticmethod
    def _check_bases(class_name, bases):
        for base in bases:
            if not isinstance(base, TaggedUnionMeta):
                raise DefinitionError(
                    "%s: tagged unions do not support mixins (%r)" % (class_name, base)
                )
            if base._member_names_:
                raise DefinitionError(
                    "%s: cannot extend union %r" % (class_name, base.__name__)
                )

    @staticmethod
    def _raw_kind(bases, raw):
        if raw is not None:
            return raw
        for base in bases:
            inherited = base.__dict__.get("_raw_kind_")
            if inherited is not None:
                return inherited
        return None

    @staticmethod
    def _reserved_names():
        return {"mro"} | {
            k
            for k, v in vars(TaggedUnion).items()
            if not k.startswith("_") and not isinstance(v, DynamicClassAttribute)
        }

    @staticmethod
    def _gather_user_methods(classdict) -> dict:
        res = {}
        for k, v in classdict.items():
            if k in _NOT_COPIED or isinstance(v, type):
                continue
            if callable(v) or isinstance(v, (property, classmethod, staticmethod)):
                res[k] = v
        return res

    @staticmethod
    def _make_variant_class(union, name, base, custom_methods, payload_names):
        union_name = union.__name__
        shape = PayloadShape.of(base)
        if not getattr(base, "_indirect_", False):
            # the union itself or any payload variant, including this one
            names = (union_name,) + tuple(payload_names)
            qualnames = {"%s.%s" % (union.__qualname__, n) for n in payload_names}
            for field_name, annotation in shape.fields:
                if _mentions(annotation, names, qualnames):
                    raise DefinitionError(
                        "%s.%s: field %r refers to %s; mark the variant @indirect"
                        % (union_name, name, field_name, union_name)
                    )

        qualname = "%s.%s" % (union.__qualname__, name)

        def customize_subclass_ns(ns):
            ns.update(custom_methods)
            ns["__module__"] = base.__module__
            ns["__qualname__"] = qualname
            ns["_union_"] = union
            ns["_name_"] = name
            ns["_shape_"] = shape
            ns["_payload_type_"] = payload_type(qualname, shape)
            ns["_field_hints_"] = None
            ns["__init__"] = _checked_init(base, qualname)
            ns["__setattr__"] = _frozen_setattr
            ns["__delattr__"] = _frozen_delattr
            if "__hash__" not in custom_methods:
                ns["__hash__"] = _variant_hash

        # subclass so the variant can carry the union's methods and checks
        return new_class(base.__name__, (base,), exec_body=customize_subclass_ns)


class TaggedUnion(metaclass=TaggedUnionMeta):
    """
    A closed tagged union.

    Derive from this class and list the variants in the body: constant
    variants as ``NAME = auto()`` (or a raw value, with ``raw=int``,
    ``raw=float`` or ``raw=str`` on the class statement), payload variants as
    nested dataclasses. The set of variants is fixed once the class exists.
    """

    def __repr__(self):
        if self._value_ is None:
            return "<%s.%s>" % (self.__class__.__name__, self._name_)
        return "<%s.%s: %r>" % (self.__class__.__name__, self._name_, self._value_)

    def __str__(self):
        return "%s.%s" % (self.__class__.__name__, self._name_)

    def __dir__(self):
        """
        Returns all members and all public methods
        """
        added_behavior = [
            m
            for cls in self.__class__.mro()
            for m in cls.__dict__
            if m[0] != "_" and m not in self._member_map_
        ]
        return ["__class__", "__doc__", "__module__", "name"] + added_behavior

    def __format__(self, format_spec):
        return str.__format__(str(self), format_spec)

    def __hash__(self):
        return hash(self._name_)

    def __setattr__(self, name, value):
        raise FrozenInstanceError("cannot assign to %r of %s" % (name, self))

    def __delattr__(self, name):
        raise FrozenInstanceError("cannot delete %r of %s" % (name, self))

    def __reduce_ex__(self, proto):
        return getattr, (self.__class__, self._name_)

    # DynamicClassAttribute keeps `name` and `raw_value` usable on members
    # while still allowing variants with those names.

    @DynamicClassAttribute
    def name(self):
        """The name of the variant."""
        return self._name_

    @DynamicClassAttribute
    def raw_value(self):
        """The raw value of the member; only raw-backed unions have one."""
        if self._raw_kind_ is None:
            raise AttributeError(
                "%s members carry no raw value" % self.__class__.__name__
            )
        return self._value_

    @classmethod
    def variants(cls) -> tuple:
        """`Variant` descriptors in declaration order."""
        return cls._variants_

    @classmethod
    def from_raw_value(cls, raw):
        """The member with raw value `raw`, or `NotFound`."""
        return from_raw_value(cls, raw)

    @classmethod
    def matcher(cls, arms) -> Matcher:
        """An exhaustive `Matcher` over this union."""
        return Matcher(cls, arms)

    def __class_getitem__(cls, types):
        return GenericAlias(cls, types)
