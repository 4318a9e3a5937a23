"""Tests for record validation and field discovery."""

from collections import namedtuple
from dataclasses import dataclass, field
from typing import Annotated, ClassVar, Optional

import pytest
from prometheus_client import Counter, Histogram

from metricfields.errors import RecordRequiredError
from metricfields.introspection import FieldDescriptor, unpack_record
from metricfields.tags import MetricTag


class PlainStats:
    hits: Annotated[Counter, "labels=[route]"]
    latency: Histogram
    started_at: float = 0.0
    kind: ClassVar[str] = "stats"


@dataclass
class DataclassStats:
    hits: Optional[Counter] = field(default=None, metadata={"metrics": "name=hits_seen"})
    errors: Annotated[Optional[Counter], "labels=[code]"] = field(
        default=None, metadata={"metrics": "help='errors seen'"}
    )
    other: Optional[Counter] = field(default=None, metadata={"custom": "name=custom_name"})


@dataclass(frozen=True)
class FrozenStats:
    hits: Optional[Counter] = None


class TestRecordValidation:
    """Tests for rejecting targets that are not mutable record instances."""

    def test_class_instead_of_instance(self):
        with pytest.raises(RecordRequiredError, match="got class PlainStats"):
            unpack_record(PlainStats)

    @pytest.mark.parametrize("value", [42, "stats", 1.5, None, [1], {"hits": 1}, object()])
    def test_builtin_values(self, value):
        with pytest.raises(RecordRequiredError):
            unpack_record(value)

    def test_namedtuple(self):
        Stats = namedtuple("Stats", ["hits"])
        with pytest.raises(RecordRequiredError, match="is a tuple"):
            unpack_record(Stats(hits=None))

    def test_frozen_dataclass(self):
        with pytest.raises(RecordRequiredError, match="frozen dataclass"):
            unpack_record(FrozenStats())

    def test_unresolvable_annotation(self):
        class Broken:
            hits: "MissingType"  # noqa: F821

        with pytest.raises(RecordRequiredError, match="cannot resolve"):
            unpack_record(Broken())

    def test_record_required_is_type_error(self):
        with pytest.raises(TypeError):
            unpack_record(PlainStats)


class TestFieldDiscovery:
    """Tests for the descriptors produced for valid records."""

    def test_declaration_order_and_classvar_skipped(self):
        fields = unpack_record(PlainStats())
        assert [f.name for f in fields] == ["hits", "latency", "started_at"]

    def test_annotated_text_and_declared_type(self):
        hits, latency, started_at = unpack_record(PlainStats())
        assert hits == FieldDescriptor("hits", Counter, annotation="labels=[route]")
        assert latency.declared_type is Histogram
        assert latency.annotation is None
        assert started_at.declared_type is float

    def test_optional_is_unwrapped(self):
        fields = {f.name: f for f in unpack_record(DataclassStats())}
        assert fields["hits"].declared_type is Counter
        assert fields["errors"].declared_type is Counter

    def test_dataclass_metadata_is_appended_to_annotated_text(self):
        fields = {f.name: f for f in unpack_record(DataclassStats())}
        assert fields["hits"].annotation == "name=hits_seen"
        assert fields["errors"].annotation == "labels=[code], help='errors seen'"
        assert fields["other"].annotation is None

    def test_custom_metadata_key(self):
        fields = {f.name: f for f in unpack_record(DataclassStats(), metadata_key="custom")}
        assert fields["other"].annotation == "name=custom_name"
        assert fields["hits"].annotation is None

    def test_structured_tags_are_collected(self):
        tag = MetricTag(name="hits_total_seen")

        class Tagged:
            hits: Annotated[Counter, tag, "help='hits'"]

        (descriptor,) = unpack_record(Tagged())
        assert descriptor.tags == (tag,)
        assert descriptor.annotation == "help='hits'"

    def test_inherited_fields_come_first(self):
        class Extended(PlainStats):
            retries: Counter

        assert [f.name for f in unpack_record(Extended())] == [
            "hits",
            "latency",
            "started_at",
            "retries",
        ]

    def test_record_without_fields(self):
        class Empty:
            pass

        assert unpack_record(Empty()) == []

    def test_assign_writes_into_record(self):
        stats = PlainStats()
        descriptor = unpack_record(stats)[0]
        descriptor.assign(stats, "collector")
        assert stats.hits == "collector"
