"""Collector factory.

Maps declared field types to collector kinds and folds a field's attribute
definitions into a ``CollectorSpec``, which is then turned into a live
``prometheus_client`` collector.

Each kind owns an allow-list of attribute handlers. Handlers run in the
order the definitions were written, so a repeated ``name=`` or ``help=``
clause overwrites the earlier one while repeated ``labels=`` clauses keep
appending.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from prometheus_client import Counter, Histogram

from metricfields.config import DEFAULT_BUCKETS, RegistrationConfig
from metricfields.errors import (
    AttributeMalformedError,
    CollectorConstructionError,
    UnsupportedAttributeError,
)
from metricfields.naming import to_snake_case
from metricfields.tags import AttributeDefinition

logger = logging.getLogger(__name__)

Collector = Union[Counter, Histogram]


class CollectorKind(Enum):
    """Collector kinds a record field can declare."""

    COUNTER = "counter"
    HISTOGRAM = "histogram"


@dataclass
class CollectorSpec:
    """Resolved configuration for one collector.

    Attributes:
        kind: Collector kind
        name: Metric name before any namespace prefix
        help: Help text (may be empty)
        labels: Label names, in declaration order
        buckets: Histogram bucket ladder; None for counters
    """

    kind: CollectorKind
    name: str
    help: str = ""
    labels: List[str] = field(default_factory=list)
    buckets: Optional[List[float]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "name": self.name,
            "help": self.help,
            "labels": list(self.labels),
        }
        if self.buckets is not None:
            result["buckets"] = list(self.buckets)
        return result


_Handler = Callable[[CollectorSpec, AttributeDefinition, str], None]


def _malformed(definition: AttributeDefinition, field_name: str, reason: str) -> AttributeMalformedError:
    return AttributeMalformedError(
        f"attribute '{definition.name}' malformed: {reason}",
        attribute=definition.name,
        field_name=field_name,
    )


def _set_name(spec: CollectorSpec, definition: AttributeDefinition, field_name: str) -> None:
    value = definition.value()
    if not isinstance(value, str):
        raise _malformed(definition, field_name, "name is not a string")
    spec.name = value


def _set_help(spec: CollectorSpec, definition: AttributeDefinition, field_name: str) -> None:
    value = definition.value()
    if not isinstance(value, str):
        raise _malformed(definition, field_name, "help is not a string")
    spec.help = value


def _append_labels(spec: CollectorSpec, definition: AttributeDefinition, field_name: str) -> None:
    value = definition.value()
    if not isinstance(value, list):
        raise _malformed(definition, field_name, "labels is not a list")
    for label in value:
        if not isinstance(label, str):
            raise _malformed(definition, field_name, f"label {label!r} is not a string")
        spec.labels.append(label)


def _set_buckets(spec: CollectorSpec, definition: AttributeDefinition, field_name: str) -> None:
    value = definition.value()
    if not isinstance(value, list):
        raise _malformed(definition, field_name, "buckets is not a list of numbers")
    buckets: List[float] = []
    for bucket in value:
        if isinstance(bucket, bool) or not isinstance(bucket, (int, float)):
            raise _malformed(definition, field_name, f"bucket {bucket!r} is not a number")
        buckets.append(float(bucket))
    spec.buckets = buckets


_COUNTER_HANDLERS: Mapping[str, _Handler] = {
    "name": _set_name,
    "labels": _append_labels,
    "help": _set_help,
}

_HISTOGRAM_HANDLERS: Mapping[str, _Handler] = {
    **_COUNTER_HANDLERS,
    "buckets": _set_buckets,
}


def _fold(
    spec: CollectorSpec,
    definitions: Sequence[AttributeDefinition],
    handlers: Mapping[str, _Handler],
    field_name: str,
) -> CollectorSpec:
    for definition in definitions:
        handler = handlers.get(definition.name)
        if handler is None:
            raise UnsupportedAttributeError(
                definition.name,
                kind=spec.kind.value,
                allowed=tuple(handlers),
                field_name=field_name,
            )
        handler(spec, definition, field_name)
    return spec


def build_counter_spec(
    field_name: str,
    definitions: Sequence[AttributeDefinition],
    config: Optional[RegistrationConfig] = None,
) -> CollectorSpec:
    """Resolve the spec of a counter field."""
    spec = CollectorSpec(kind=CollectorKind.COUNTER, name=to_snake_case(field_name))
    return _fold(spec, definitions, _COUNTER_HANDLERS, field_name)


def build_histogram_spec(
    field_name: str,
    definitions: Sequence[AttributeDefinition],
    config: Optional[RegistrationConfig] = None,
) -> CollectorSpec:
    """Resolve the spec of a histogram field.

    The bucket ladder starts from ``config.default_buckets`` and is replaced
    as a whole by a ``buckets=`` clause; it is never sorted or merged.
    """
    default_buckets = config.default_buckets if config is not None else DEFAULT_BUCKETS
    spec = CollectorSpec(
        kind=CollectorKind.HISTOGRAM,
        name=to_snake_case(field_name),
        buckets=list(default_buckets),
    )
    return _fold(spec, definitions, _HISTOGRAM_HANDLERS, field_name)


@dataclass(frozen=True)
class _KindEntry:
    kind: CollectorKind
    collector_class: type
    build_spec: Callable[..., CollectorSpec]


_KINDS_BY_TYPE: Dict[type, _KindEntry] = {
    Counter: _KindEntry(CollectorKind.COUNTER, Counter, build_counter_spec),
    Histogram: _KindEntry(CollectorKind.HISTOGRAM, Histogram, build_histogram_spec),
}

_KINDS: Dict[CollectorKind, _KindEntry] = {entry.kind: entry for entry in _KINDS_BY_TYPE.values()}


def kind_for_type(declared_type: Any) -> Optional[CollectorKind]:
    """Return the collector kind for a declared field type, or None.

    Only exact ``prometheus_client.Counter`` and ``Histogram`` types match.
    """
    try:
        entry = _KINDS_BY_TYPE.get(declared_type)
    except TypeError:
        # unhashable annotation objects are never collector types
        return None
    return entry.kind if entry is not None else None


def build_spec(
    kind: CollectorKind,
    field_name: str,
    definitions: Sequence[AttributeDefinition],
    config: Optional[RegistrationConfig] = None,
) -> CollectorSpec:
    """Resolve a CollectorSpec for ``field_name`` using the kind's builder.

    Raises:
        AttributeMalformedError: If an attribute value has the wrong shape
        UnsupportedAttributeError: If an attribute is not allowed for the kind
    """
    spec = _KINDS[kind].build_spec(field_name, definitions, config)
    logger.debug(
        f"Resolved {kind.value} spec for field {field_name}",
        extra={"field": field_name, "spec": spec.to_dict()},
    )
    return spec


def create_collector(spec: CollectorSpec, namespace: str = "") -> Collector:
    """Instantiate an unregistered prometheus_client collector from a spec.

    Raises:
        CollectorConstructionError: If prometheus_client rejects the spec
    """
    kwargs: Dict[str, Any] = {
        "labelnames": list(spec.labels),
        "namespace": namespace,
        "registry": None,
    }
    if spec.kind is CollectorKind.HISTOGRAM and spec.buckets is not None:
        kwargs["buckets"] = list(spec.buckets)

    try:
        return _KINDS[spec.kind].collector_class(spec.name, spec.help, **kwargs)
    except ValueError as exc:
        raise CollectorConstructionError(
            f"cannot create {spec.kind.value} '{spec.name}': {exc}",
            metric_name=spec.name,
        ) from exc
