"""Tests for value serializers."""

import threading

from pydantic import BaseModel
import pytest

from memento.core.caching.serializers import (
    JSONSerializer,
    PickleSerializer,
    PydanticSerializer,
    get_serializer,
)
from memento.core.errors import SerializationError


class SampleArtifact(BaseModel):
    """Sample artifact model for testing."""

    value: str
    schema_version: int = 1


class TestPickleSerializer:
    """Tests for the default pickle serializer."""

    def test_round_trip(self):
        """Test arbitrary Python values survive a round trip."""
        s = PickleSerializer()
        value = {"rows": [(1, "a"), (2, "b")], "total": 2.5, "tags": {"x"}}
        assert s.loads(s.dumps(value)) == value

    def test_deterministic_output(self):
        """Test the same value serializes to the same bytes."""
        s = PickleSerializer()
        assert s.dumps([1, "two", 3.0]) == s.dumps([1, "two", 3.0])

    def test_unpicklable_value_raises(self):
        """Test unpicklable values raise SerializationError."""
        with pytest.raises(SerializationError):
            PickleSerializer().dumps(threading.Lock())

    def test_corrupt_data_raises(self):
        """Test garbage bytes raise SerializationError on load."""
        with pytest.raises(SerializationError):
            PickleSerializer().loads(b"not a pickle")


class TestJSONSerializer:
    """Tests for the canonical JSON serializer."""

    def test_canonical_output(self):
        """Test keys are sorted and separators compact."""
        assert JSONSerializer().dumps({"b": 1, "a": 2}) == b'{"a":2,"b":1}'

    def test_round_trip(self):
        """Test JSON values survive a round trip."""
        s = JSONSerializer()
        assert s.loads(s.dumps({"a": [1, 2, None]})) == {"a": [1, 2, None]}

    @pytest.mark.parametrize("value", [{1, 2}, float("nan"), object()])
    def test_unrepresentable_values_raise(self, value):
        """Test values outside JSON raise SerializationError."""
        with pytest.raises(SerializationError):
            JSONSerializer().dumps(value)

    def test_invalid_json_raises(self):
        """Test invalid bytes raise SerializationError on load."""
        with pytest.raises(SerializationError):
            JSONSerializer().loads(b"{oops")


class TestPydanticSerializer:
    """Tests for the pydantic model serializer."""

    def test_round_trip(self):
        """Test models are validated back into the model class."""
        s = PydanticSerializer(SampleArtifact)
        loaded = s.loads(s.dumps(SampleArtifact(value="cached")))
        assert isinstance(loaded, SampleArtifact)
        assert loaded.value == "cached"

    def test_wrong_type_raises(self):
        """Test values of another type raise SerializationError."""
        with pytest.raises(SerializationError, match="Expected SampleArtifact"):
            PydanticSerializer(SampleArtifact).dumps({"value": "x"})

    def test_invalid_payload_raises(self):
        """Test payloads failing validation raise SerializationError."""
        with pytest.raises(SerializationError):
            PydanticSerializer(SampleArtifact).loads(b'{"schema_version": 1}')


def test_get_serializer_by_name():
    """Test config names map to serializers."""
    assert isinstance(get_serializer("pickle"), PickleSerializer)
    assert isinstance(get_serializer("json"), JSONSerializer)
    with pytest.raises(ValueError):
        get_serializer("xml")
