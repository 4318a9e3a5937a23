"""Error classes for metric declaration and registration.

Every error raised by the registration pipeline derives from
``MetricFieldsError``. The coordinator adds stage and field context with
``add_context`` and re-raises the same object, so callers can still match
on the concrete class while ``str(exc)`` reads as one composite message:

    field 'request_latency': unsupported attribute 'colour' for histogram
"""

from typing import List, Optional


class MetricFieldsError(Exception):
    """Base class for all metricfields errors.

    Attributes:
        message: Description of the failure without context prefixes.
        field_name: Record field the error belongs to, when known.
        context: Prefixes added by outer stages, outermost first.
    """

    def __init__(self, message: str, *, field_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field_name = field_name
        self.context: List[str] = []

    def add_context(self, context: str) -> "MetricFieldsError":
        """Prepend a context prefix and return self for re-raising."""
        self.context.insert(0, context)
        return self

    def __str__(self) -> str:
        return ": ".join([*self.context, self.message])


class RecordRequiredError(MetricFieldsError, TypeError):
    """Raised when the registration target is not a mutable record instance."""

    def __init__(self, message: str, *, record_type: Optional[str] = None) -> None:
        super().__init__(message)
        self.record_type = record_type


class AnnotationParseError(MetricFieldsError, ValueError):
    """Raised when field annotation text does not follow the attribute grammar.

    Attributes:
        text: The annotation text being parsed.
        position: Character offset where parsing failed.
    """

    def __init__(
        self,
        message: str,
        *,
        text: str = "",
        position: int = 0,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, field_name=field_name)
        self.text = text
        self.position = position


class AttributeMalformedError(MetricFieldsError, ValueError):
    """Raised when an attribute value has the wrong shape for its name."""

    def __init__(
        self,
        message: str,
        *,
        attribute: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, field_name=field_name)
        self.attribute = attribute


class UnsupportedAttributeError(MetricFieldsError, ValueError):
    """Raised when an attribute is not on the allow-list of a collector kind."""

    def __init__(
        self,
        attribute: str,
        *,
        kind: str,
        allowed: tuple = (),
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"unsupported attribute '{attribute}' for {kind}",
            field_name=field_name,
        )
        self.attribute = attribute
        self.kind = kind
        self.allowed = tuple(allowed)


class RegistrationConflictError(MetricFieldsError, ValueError):
    """Raised when the registry rejects a collector, typically a duplicate name."""

    def __init__(
        self,
        message: str,
        *,
        metric_name: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, field_name=field_name)
        self.metric_name = metric_name


class CollectorConstructionError(MetricFieldsError, ValueError):
    """Raised when prometheus_client refuses a resolved collector spec.

    Covers invalid metric or label names, reserved labels and unsorted
    bucket ladders.
    """

    def __init__(
        self,
        message: str,
        *,
        metric_name: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(message, field_name=field_name)
        self.metric_name = metric_name
