"""Value serializers for cached results.

A serializer turns a computation result into bytes for the store and back.
Serialization of a given value must be deterministic; failures surface as
SerializationError and leave the cache unmodified.
"""

from __future__ import annotations

import json
import pickle
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from memento.core.errors import SerializationError

T = TypeVar("T", bound=BaseModel)


class Serializer(Protocol):
    """Protocol for value serializers."""

    name: str

    def dumps(self, value: Any) -> bytes:
        """
        Serialize a value.

        Raises:
            SerializationError: If the value is not representable
        """
        ...

    def loads(self, data: bytes) -> Any:
        """
        Deserialize a value.

        Raises:
            SerializationError: If the data is corrupt or of the wrong shape
        """
        ...


class PickleSerializer:
    """Pickle-based serializer (default). Handles arbitrary picklable Python values."""

    name = "pickle"

    def __init__(self, protocol: int = 5) -> None:
        # Fixed protocol keeps output stable across interpreter defaults
        self.protocol = protocol

    def dumps(self, value: Any) -> bytes:
        try:
            return pickle.dumps(value, protocol=self.protocol)
        except (pickle.PicklingError, TypeError, AttributeError, RecursionError) as e:
            raise SerializationError(
                f"Cannot pickle value of type {type(value).__name__}: {e}"
            ) from e

    def loads(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)  # noqa: S301 - only reads entries this cache wrote
        except Exception as e:
            raise SerializationError(f"Cannot unpickle cached value: {e}") from e


class JSONSerializer:
    """Canonical JSON serializer (sorted keys, compact separators)."""

    name = "json"

    def dumps(self, value: Any) -> bytes:
        try:
            text = json.dumps(
                value,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Value is not JSON serializable: {e}") from e
        return text.encode("utf-8")

    def loads(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(f"Invalid cached JSON: {e}") from e


class PydanticSerializer(Generic[T]):
    """
    Serializer for a single pydantic model class.

    Values are written with `model_dump_json()` and validated with
    `model_validate_json()` on load.
    """

    name = "pydantic"

    def __init__(self, model_cls: type[T]) -> None:
        self.model_cls = model_cls

    def dumps(self, value: Any) -> bytes:
        if not isinstance(value, self.model_cls):
            raise SerializationError(
                f"Expected {self.model_cls.__name__}, got {type(value).__name__}"
            )
        return value.model_dump_json().encode("utf-8")

    def loads(self, data: bytes) -> T:
        try:
            return self.model_cls.model_validate_json(data)
        except (ValidationError, ValueError) as e:
            raise SerializationError(
                f"Cached value failed {self.model_cls.__name__} validation: {e}"
            ) from e


def get_serializer(name: str) -> Serializer:
    """Look up a serializer by config name ("pickle" or "json")."""
    if name == "pickle":
        return PickleSerializer()
    if name == "json":
        return JSONSerializer()
    raise ValueError(f"Unknown serializer: {name}")
