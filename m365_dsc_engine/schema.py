"""
Resource schema — typed state records and the descriptor that binds a
record type to its Graph collection.

Every resource type declares one ``ResourceState`` dataclass. Field
metadata carries constraints (``bounded``, ``choices``), the Graph
property name, and whether the field holds the remote object id.
A field left as ``None`` was not specified by the caller and takes no
part in drift comparison.
"""

from __future__ import annotations

import dataclasses
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional

from .config import CONNECTION_PARAMETERS


class ValidationError(ValueError):
    """A desired-state value violates the resource schema."""
    pass


class Ensure(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"

    @classmethod
    def parse(cls, value: Any) -> "Ensure":
        if isinstance(value, Ensure):
            return value
        for member in cls:
            if isinstance(value, str) and value.lower() == member.value.lower():
                return member
        raise ValidationError(f"Ensure must be 'Present' or 'Absent', got {value!r}")


# ─── Field metadata helpers ─────────────────────────────────────────────────

def bounded(lo: int, hi: int, **extra: Any) -> dict:
    """Metadata for an integer field constrained to [lo, hi]."""
    return {"min": lo, "max": hi, **extra}


def choices(*values: str, **extra: Any) -> dict:
    """Metadata for a string field restricted to a closed set of values."""
    return {"choices": tuple(values), **extra}


def remote_id() -> dict:
    """Metadata marking the field that carries the Graph object id."""
    return {"remote_id": True}


def _snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _snake_to_pascal(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


def _unwrap_optional(tp: Any) -> Any:
    if typing.get_origin(tp) is typing.Union:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


# ─── State record ───────────────────────────────────────────────────────────

@dataclass(kw_only=True)
class ResourceState:
    """
    Base for per-resource state records.
    Subclasses add their fields and set KEY_FIELDS to the natural key.
    Validation runs on construction, so an invalid desired state never
    reaches the Graph client.
    """

    KEY_FIELDS: ClassVar[tuple[str, ...]] = ("display_name",)

    ensure: Ensure = Ensure.PRESENT

    def __post_init__(self):
        self.ensure = Ensure.parse(self.ensure)
        hints = typing.get_type_hints(type(self))
        for f in dataclasses.fields(self):
            if f.name == "ensure":
                continue
            value = getattr(self, f.name)
            if f.name in self.KEY_FIELDS:
                if not isinstance(value, str) or not value.strip():
                    raise ValidationError(f"{f.name} is the natural key and must be a non-empty string")
                continue
            if value is None:
                continue
            _check_value(f, _unwrap_optional(hints[f.name]), value)

    @property
    def natural_key(self) -> tuple:
        return tuple(getattr(self, name) for name in self.KEY_FIELDS)

    def specified(self) -> dict[str, Any]:
        """Fields the caller actually set (non-None), ensure included."""
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if getattr(self, f.name) is not None
        }

    def replace(self, **changes: Any) -> "ResourceState":
        return dataclasses.replace(self, **changes)


def _check_value(f: dataclasses.Field, expected: Any, value: Any) -> None:
    if expected is int:
        # bool is an int subclass; a flag is never a valid count
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{f.name} must be an integer, got {value!r}")
    elif expected in (bool, str) and not isinstance(value, expected):
        raise ValidationError(f"{f.name} must be {expected.__name__}, got {value!r}")

    lo, hi = f.metadata.get("min"), f.metadata.get("max")
    if lo is not None and value < lo:
        raise ValidationError(f"{f.name}={value} is below the minimum of {lo}")
    if hi is not None and value > hi:
        raise ValidationError(f"{f.name}={value} is above the maximum of {hi}")

    allowed = f.metadata.get("choices")
    if allowed and value not in allowed:
        raise ValidationError(f"{f.name}={value!r} is not one of {', '.join(allowed)}")


def _coerce(name: str, expected: Any, value: Any) -> Any:
    """Convert CLI/engine string input to the field type. Validation happens later."""
    if value is None or not isinstance(value, str):
        return value
    if expected is bool:
        lowered = value.strip().lower().lstrip("$")
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise ValidationError(f"{name} must be a boolean, got {value!r}")
    if expected is int:
        try:
            return int(value.strip())
        except ValueError:
            raise ValidationError(f"{name} must be an integer, got {value!r}") from None
    return value


# ─── Descriptor ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ResourceDescriptor:
    """Identifies a resource type and maps its record onto a Graph collection."""
    name: str
    state_type: type
    collection: str
    discriminator: Optional[str] = None
    beta: bool = False
    server_filter: bool = True
    excluded: frozenset = CONNECTION_PARAMETERS

    @property
    def key_fields(self) -> tuple[str, ...]:
        return self.state_type.KEY_FIELDS

    def state_fields(self) -> list[dataclasses.Field]:
        return list(dataclasses.fields(self.state_type))

    @property
    def id_field(self) -> Optional[str]:
        for f in self.state_fields():
            if f.metadata.get("remote_id"):
                return f.name
        return None

    def comparable_fields(self) -> tuple[str, ...]:
        """Every field except the remote id; ensure is compared like any other."""
        return tuple(f.name for f in self.state_fields() if not f.metadata.get("remote_id"))

    def graph_property(self, f: dataclasses.Field) -> str:
        return f.metadata.get("graph_name") or _snake_to_camel(f.name)

    def parameter_name(self, f: dataclasses.Field) -> str:
        return f.metadata.get("parameter") or _snake_to_pascal(f.name)

    # ─── Construction ────────────────────────────────────────────────────────

    def build(self, **values: Any) -> ResourceState:
        return self.state_type(**values)

    def from_parameters(self, params: dict[str, Any]) -> ResourceState:
        """
        Build a desired state from DSC-style PascalCase parameters.
        Connection parameters are dropped; unknown names are rejected.
        """
        hints = typing.get_type_hints(self.state_type)
        by_param = {self.parameter_name(f).lower(): f for f in self.state_fields()}
        excluded = {name.lower() for name in self.excluded}
        values: dict[str, Any] = {}
        for raw_name, value in params.items():
            key = raw_name.lower()
            if key in excluded:
                continue
            f = by_param.get(key)
            if f is None:
                raise ValidationError(f"{self.name} has no parameter named {raw_name!r}")
            values[f.name] = _coerce(raw_name, _unwrap_optional(hints[f.name]), value)
        missing = [k for k in self.key_fields if k not in values]
        if missing:
            raise ValidationError(f"{self.name} requires {', '.join(missing)}")
        return self.build(**values)

    def to_parameters(self, state: ResourceState) -> dict[str, Any]:
        """Specified fields of a state as PascalCase DSC parameters."""
        params = {}
        for f in self.state_fields():
            value = getattr(state, f.name)
            if value is None:
                continue
            params[self.parameter_name(f)] = value.value if isinstance(value, Ensure) else value
        return params

    # ─── Graph mapping ───────────────────────────────────────────────────────

    def matches(self, remote: dict) -> bool:
        """Client-side discriminator check for shared collections."""
        if self.discriminator is None:
            return True
        return remote.get("@odata.type") == self.discriminator

    def from_remote(self, remote: dict) -> ResourceState:
        """Map a Graph record onto a Present state."""
        values: dict[str, Any] = {"ensure": Ensure.PRESENT}
        for f in self.state_fields():
            if f.name == "ensure":
                continue
            if f.metadata.get("remote_id"):
                values[f.name] = remote.get("id")
            else:
                values[f.name] = remote.get(self.graph_property(f))
        return self.build(**values)

    def to_payload(self, state: ResourceState) -> dict[str, Any]:
        """Request body from the specified, non-id fields plus the discriminator."""
        payload: dict[str, Any] = {}
        if self.discriminator:
            payload["@odata.type"] = self.discriminator
        for f in self.state_fields():
            if f.name == "ensure" or f.metadata.get("remote_id"):
                continue
            value = getattr(state, f.name)
            if value is not None:
                payload[self.graph_property(f)] = value
        return payload
