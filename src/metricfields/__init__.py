"""Declarative prometheus_client collectors for record fields.

Declare collectors as annotated fields of a class, then let
``register_metrics`` build, inject and register them:

    class Stats:
        hits: Annotated[Counter, "labels=[route],help='hits served'"]

    register_metrics(stats, registry)
"""

from metricfields.config import (
    DEFAULT_BUCKETS,
    RegistrationConfig,
    get_config,
    set_config,
)
from metricfields.errors import (
    AnnotationParseError,
    AttributeMalformedError,
    CollectorConstructionError,
    MetricFieldsError,
    RecordRequiredError,
    RegistrationConflictError,
    UnsupportedAttributeError,
)
from metricfields.factory import (
    CollectorKind,
    CollectorSpec,
    build_spec,
    create_collector,
    kind_for_type,
)
from metricfields.introspection import FieldDescriptor, unpack_record
from metricfields.registration import RegisteredCollector, register_metrics
from metricfields.tags import (
    AttributeDefinition,
    MetricTag,
    parse_annotation,
    parse_field_tags,
)

__all__ = [
    # Registration
    "register_metrics",
    "RegisteredCollector",
    # Declaration
    "MetricTag",
    "AttributeDefinition",
    "parse_annotation",
    "parse_field_tags",
    "FieldDescriptor",
    "unpack_record",
    # Factory
    "CollectorKind",
    "CollectorSpec",
    "build_spec",
    "create_collector",
    "kind_for_type",
    # Config
    "DEFAULT_BUCKETS",
    "RegistrationConfig",
    "get_config",
    "set_config",
    # Errors
    "MetricFieldsError",
    "RecordRequiredError",
    "AnnotationParseError",
    "AttributeMalformedError",
    "UnsupportedAttributeError",
    "RegistrationConflictError",
    "CollectorConstructionError",
]
