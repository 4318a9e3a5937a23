"""Registration of declarative metric records.

Usage:
    from typing import Annotated

    from prometheus_client import CollectorRegistry, Counter, Histogram

    from metricfields import register_metrics

    class Stats:
        requests: Annotated[Counter, "name=request_count,labels=[route],help='requests served'"]
        latency: Annotated[Histogram, "labels=[route],buckets=[0.1, 0.5, 1, 5]"]
        started_at: float = 0.0  # not a collector, left untouched

    registry = CollectorRegistry()
    stats = Stats()
    register_metrics(stats, registry)
    stats.requests.labels(route="/").inc()

Registration runs once per record at start-up. It is not thread-safe and
not idempotent: registering the same names twice into one registry fails.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from prometheus_client import CollectorRegistry

from metricfields.config import RegistrationConfig, get_config
from metricfields.errors import MetricFieldsError, RegistrationConflictError
from metricfields.factory import (
    Collector,
    CollectorSpec,
    build_spec,
    create_collector,
    kind_for_type,
)
from metricfields.introspection import unpack_record
from metricfields.tags import definition_names, parse_field_tags

logger = logging.getLogger(__name__)


@dataclass
class RegisteredCollector:
    """A collector created for a record field and added to a registry."""

    field_name: str
    spec: CollectorSpec
    collector: Collector


def register_metrics(
    record: Any,
    registry: CollectorRegistry,
    *,
    config: Optional[RegistrationConfig] = None,
) -> List[RegisteredCollector]:
    """Create, inject and register a collector for every collector field of ``record``.

    Fields whose declared type is not ``Counter`` or ``Histogram`` are
    skipped. Processing stops at the first failing field; collectors
    registered for earlier fields stay registered.

    Args:
        record: Record instance whose fields receive the collectors
        registry: Registry the collectors are added to
        config: Registration settings (defaults to the global config)

    Returns:
        One RegisteredCollector per registered field, in declaration order

    Raises:
        RecordRequiredError: If record is not a mutable record instance
        AnnotationParseError: If a field annotation does not parse
        AttributeMalformedError: If an attribute value has the wrong shape
        UnsupportedAttributeError: If an attribute is not allowed for the kind
        CollectorConstructionError: If prometheus_client rejects a spec
        RegistrationConflictError: If the registry rejects a collector
    """
    config = config or get_config()
    record_name = type(record).__name__

    try:
        fields = unpack_record(record, metadata_key=config.metadata_key)
    except MetricFieldsError as exc:
        exc.add_context("struct unpack error")
        raise

    kinds = {descriptor.name: kind_for_type(descriptor.declared_type) for descriptor in fields}

    # Only collector fields are parsed; other fields may carry any annotation.
    try:
        tags = parse_field_tags([d for d in fields if kinds[d.name] is not None])
    except MetricFieldsError as exc:
        exc.add_context("struct tag parse error")
        raise

    registered: List[RegisteredCollector] = []
    for descriptor in fields:
        kind = kinds[descriptor.name]
        if kind is None:
            logger.debug(
                f"Skipping non-collector field {descriptor.name}",
                extra={"record": record_name, "field": descriptor.name},
            )
            continue

        definitions = tags.get(descriptor.name, [])
        try:
            spec = build_spec(kind, descriptor.name, definitions, config)
            collector = create_collector(spec, namespace=config.namespace)
        except MetricFieldsError as exc:
            exc.field_name = descriptor.name
            exc.add_context(f"field '{descriptor.name}'")
            raise

        descriptor.assign(record, collector)
        try:
            registry.register(collector)
        except ValueError as exc:
            raise RegistrationConflictError(
                f"collector register failed: {exc}",
                metric_name=spec.name,
                field_name=descriptor.name,
            ).add_context(f"field '{descriptor.name}'") from exc

        logger.info(
            f"Registered {kind.value} {spec.name} for field {descriptor.name}",
            extra={
                "record": record_name,
                "field": descriptor.name,
                "metric": spec.name,
                "attributes": definition_names(definitions),
            },
        )
        registered.append(RegisteredCollector(descriptor.name, spec, collector))

    logger.info(
        f"Registered {len(registered)} collectors from {record_name}",
        extra={"record": record_name, "count": len(registered)},
    )
    return registered
