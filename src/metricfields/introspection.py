"""Record introspection.

Turns a user-supplied record instance into an ordered list of
``FieldDescriptor`` objects: field name, declared type and the raw
annotation attached to the field.
"""

import dataclasses
import logging
import types
import typing
from dataclasses import dataclass
from typing import Any, Annotated, ClassVar, List, Optional, Tuple, Union

from metricfields.config import DEFAULT_METADATA_KEY
from metricfields.errors import RecordRequiredError
from metricfields.tags import MetricTag

logger = logging.getLogger(__name__)

_NONE_TYPE = type(None)


@dataclass(frozen=True)
class FieldDescriptor:
    """Read-only view of one annotated record field.

    Attributes:
        name: Attribute name on the record
        declared_type: Field type with Annotated/Optional wrappers removed
        annotation: Raw attribute-grammar text, None when absent
        tags: Structured MetricTag options attached via Annotated
    """

    name: str
    declared_type: Any
    annotation: Optional[str] = None
    tags: Tuple[MetricTag, ...] = ()

    def assign(self, record: Any, value: Any) -> None:
        """Write ``value`` into this field of ``record``."""
        setattr(record, self.name, value)


def _unwrap_type(hint: Any) -> Tuple[Any, Tuple[Any, ...]]:
    """Strip Annotated and Optional wrappers, collecting Annotated metadata."""
    metadata: List[Any] = []
    while True:
        if typing.get_origin(hint) is Annotated:
            metadata.extend(hint.__metadata__)
            hint = hint.__origin__
            continue
        if typing.get_origin(hint) in (Union, types.UnionType):
            members = [arg for arg in typing.get_args(hint) if arg is not _NONE_TYPE]
            if len(members) == 1:
                hint = members[0]
                continue
        return hint, tuple(metadata)


def _check_record(record: Any) -> None:
    record_type = type(record)

    if isinstance(record, type):
        raise RecordRequiredError(
            f"record instance required, got class {record.__name__}",
            record_type="type",
        )
    if record_type.__module__ == "builtins":
        raise RecordRequiredError(
            f"record instance required, got {record_type.__name__}",
            record_type=record_type.__name__,
        )
    if isinstance(record, tuple):
        raise RecordRequiredError(
            f"record fields must be writable, {record_type.__name__} is a tuple",
            record_type=record_type.__name__,
        )
    if dataclasses.is_dataclass(record) and record_type.__dataclass_params__.frozen:
        raise RecordRequiredError(
            f"record fields must be writable, {record_type.__name__} is a frozen dataclass",
            record_type=record_type.__name__,
        )


def unpack_record(record: Any, metadata_key: str = DEFAULT_METADATA_KEY) -> List[FieldDescriptor]:
    """Validate ``record`` and describe its annotated fields in declaration order.

    Args:
        record: Instance of a user-defined class with annotated fields
        metadata_key: Dataclass field-metadata key holding annotation text

    Returns:
        One FieldDescriptor per annotated, non-ClassVar field

    Raises:
        RecordRequiredError: If record is a class, a builtin value, a tuple,
            a frozen dataclass, or its annotations cannot be resolved
    """
    _check_record(record)
    record_type = type(record)

    try:
        hints = typing.get_type_hints(record_type, include_extras=True)
    except (NameError, TypeError) as exc:
        raise RecordRequiredError(
            f"cannot resolve field annotations of {record_type.__name__}: {exc}",
            record_type=record_type.__name__,
        ) from exc

    dataclass_metadata = {}
    if dataclasses.is_dataclass(record):
        dataclass_metadata = {f.name: f.metadata for f in dataclasses.fields(record)}

    fields: List[FieldDescriptor] = []
    for name, hint in hints.items():
        if typing.get_origin(hint) is ClassVar or hint is ClassVar:
            continue

        declared_type, metadata = _unwrap_type(hint)
        texts = [item for item in metadata if isinstance(item, str) and item.strip()]
        tags = tuple(item for item in metadata if isinstance(item, MetricTag))

        field_text = dataclass_metadata.get(name, {}).get(metadata_key)
        if isinstance(field_text, str) and field_text.strip():
            texts.append(field_text)

        fields.append(
            FieldDescriptor(
                name=name,
                declared_type=declared_type,
                annotation=", ".join(texts) if texts else None,
                tags=tags,
            )
        )

    logger.debug(
        f"Unpacked {len(fields)} fields from {record_type.__name__}",
        extra={"record": record_type.__name__, "fields": [f.name for f in fields]},
    )
    return fields
