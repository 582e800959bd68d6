"""Fingerprinting utilities for cache keys.

Provides canonical, type-tagged encoding of call arguments so that value-equal
arguments produce identical keys regardless of object identity, and arguments
that differ in value, order or type produce different keys.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
import dataclasses
import datetime
import decimal
import enum
import hashlib
import inspect
import json
from pathlib import PurePath
from typing import Any
import uuid

from pydantic import BaseModel

from memento.core.errors import KeyDerivationError

# Length of the per-function namespace prefix in a key (hex chars)
PREFIX_LENGTH = 16


def _qualname(obj: Any) -> str:
    cls = obj if isinstance(obj, type) else type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def _sort_encoded(items: Iterable[Any]) -> list[Any]:
    return sorted(items, key=lambda item: _dumps(item))


def _dumps(payload: Any) -> str:
    # Canonical JSON: sorted keys, compact separators
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def canonicalize(value: Any, _active: frozenset[int] = frozenset()) -> Any:
    """
    Convert a value into a type-tagged, JSON-encodable structure.

    Every value is tagged with its type category so that e.g. `1`, `1.0`,
    `True` and `"1"` never collide, and `[1, 2]` differs from `(1, 2)`.
    Mappings and sets are sorted by their encoded form.

    Args:
        value: Argument value

    Returns:
        JSON-encodable canonical structure

    Raises:
        KeyDerivationError: If the value (or a nested value) has no canonical
            encoding, or contains a reference cycle

    Example:
        >>> canonicalize((1, "a"))
        ['tuple', [['int', 1], ['str', 'a']]]
    """
    if value is None:
        return ["none"]
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ["bool", value]
    if isinstance(value, enum.Enum):
        return ["enum", _qualname(value), value.name]
    if isinstance(value, int):
        return ["int", value]
    if isinstance(value, float):
        return ["float", repr(value)]
    if isinstance(value, complex):
        return ["complex", repr(value)]
    if isinstance(value, str):
        return ["str", value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ["bytes", bytes(value).hex()]
    if isinstance(value, decimal.Decimal):
        return ["decimal", str(value)]
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return [type(value).__name__, value.isoformat()]
    if isinstance(value, datetime.timedelta):
        return ["timedelta", value.total_seconds()]
    if isinstance(value, PurePath):
        return ["path", value.as_posix()]
    if isinstance(value, uuid.UUID):
        return ["uuid", str(value)]

    # Containers: guard against reference cycles
    if id(value) in _active:
        raise KeyDerivationError(f"Cannot derive cache key from self-referencing {type(value)!r}")
    active = _active | {id(value)}

    if isinstance(value, BaseModel):
        return ["model", _qualname(value), canonicalize(value.model_dump(mode="python"), active)]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return ["dataclass", _qualname(value), canonicalize(fields, active)]
    if isinstance(value, tuple):
        return ["tuple", [canonicalize(v, active) for v in value]]
    if isinstance(value, list):
        return ["list", [canonicalize(v, active) for v in value]]
    if isinstance(value, dict):
        pairs = [[canonicalize(k, active), canonicalize(v, active)] for k, v in value.items()]
        return ["dict", _sort_encoded(pairs)]
    if isinstance(value, (set, frozenset)):
        return [type(value).__name__, _sort_encoded(canonicalize(v, active) for v in value)]

    raise KeyDerivationError(f"Cannot derive cache key from value of type {_qualname(value)}")


def compute_fingerprint(namespace: str, version: str, inputs: Any) -> str:
    """
    Compute stable fingerprint from function identity and inputs.

    Uses canonical JSON encoding (sorted keys, compact separators) of the
    type-tagged inputs to ensure stable hashing across processes and runs.

    Args:
        namespace: Function identifier (module-qualified name)
        version: Function version (bump on logic changes)
        inputs: Bound call arguments (or a custom key value)

    Returns:
        SHA256 hex digest (64 chars)

    Raises:
        KeyDerivationError: If inputs cannot be encoded
    """
    payload = {
        "namespace": namespace,
        "version": version,
        "inputs": canonicalize(inputs),
    }
    return hashlib.sha256(_dumps(payload).encode("utf-8")).hexdigest()


def function_prefix(namespace: str, version: str) -> bytes:
    """Key prefix shared by every entry of one function version."""
    digest = hashlib.sha256(f"{namespace}:{version}".encode()).hexdigest()
    return f"{digest[:PREFIX_LENGTH]}-".encode("ascii")


def derive_key(namespace: str, version: str, inputs: Any) -> bytes:
    """
    Derive the store key for a call.

    Keys are `<function prefix>-<input fingerprint>` in ASCII, so entries of one
    function can be listed by prefix and keys are safe as file/object names.
    """
    return function_prefix(namespace, version) + compute_fingerprint(
        namespace, version, inputs
    ).encode("ascii")


def bind_arguments(
    func: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    omit: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Normalize call arguments into an ordered name -> value mapping.

    Positional and keyword spellings of the same call, and calls relying on
    default values, bind to the same mapping. Parameters named in `omit` are
    excluded (e.g. connection or context objects).

    Raises:
        TypeError: If the arguments do not match the signature, exactly as
            calling `func` directly would
    """
    omitted = set(omit)
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures
        return {
            "args": list(args),
            "kwargs": {k: v for k, v in kwargs.items() if k not in omitted},
        }

    bound = signature.bind(*args, **kwargs)
    bound.apply_defaults()
    return {name: value for name, value in bound.arguments.items() if name not in omitted}
