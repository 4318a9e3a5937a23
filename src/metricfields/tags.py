"""Attribute grammar for per-field metric annotations.

A field annotation is a comma-separated list of clauses::

    name=request_count, labels=[route, status], help='requests served'

Grammar:
    annotation := clause ("," clause)*
    clause     := IDENT [ "=" value | "(" IDENT "=" value ("," IDENT "=" value)* ")" ]
    value      := STRING | NUMBER | WORD | "[" [item ("," item)*] "]"
    item       := STRING | NUMBER | WORD

Strings may use single or double quotes with backslash escapes. Numbers
without a decimal point or exponent parse as ``int``, other numbers as
``float``. Any other bare token is a string.

``MetricTag`` is the structured alternative to annotation text and yields
the same ``AttributeDefinition`` objects.
"""

import re
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from metricfields.errors import AnnotationParseError, MetricFieldsError

if TYPE_CHECKING:
    from metricfields.introspection import FieldDescriptor

AttributeValue = Union[str, int, float, List[Union[str, int, float]]]

_TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<number>[-+]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?(?=[\s,\])]|$))
    |(?P<word>[^\s=,\[\]()'"]+)
    |(?P<punct>[=,\[\]()])
    """,
    re.VERBOSE,
)
_INTEGER_PATTERN = re.compile(r"^[-+]?\d+$")
_ESCAPE_PATTERN = re.compile(r"\\(.)")


@dataclass(frozen=True)
class AttributeDefinition:
    """One parsed clause of a field annotation.

    Attributes:
        name: Clause name (e.g. "labels")
        attributes: Attribute key to value; ``{name: value}`` for ``name=value``
    """

    name: str
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict)

    def value(self) -> Optional[AttributeValue]:
        """Return the value stored under the clause's own name."""
        return self.attributes.get(self.name)


@dataclass(frozen=True)
class _Token:
    kind: str
    value: Any
    position: int


class _AnnotationParser:
    """Recursive-descent parser over the tokens of one annotation."""

    def __init__(self, text: str, field_name: Optional[str] = None) -> None:
        self.text = text
        self.field_name = field_name
        self.tokens = self._tokenize()
        self.index = 0

    def _error(self, message: str, position: int) -> AnnotationParseError:
        return AnnotationParseError(
            f"{message} at offset {position} in {self.text!r}",
            text=self.text,
            position=position,
            field_name=self.field_name,
        )

    def _tokenize(self) -> List[_Token]:
        tokens: List[_Token] = []
        position = 0
        while position < len(self.text):
            match = _TOKEN_PATTERN.match(self.text, position)
            if match is None:
                raise self._error("unterminated string", position)
            kind = match.lastgroup or ""
            raw = match.group()
            if kind == "string":
                tokens.append(_Token(kind, _ESCAPE_PATTERN.sub(r"\1", raw[1:-1]), position))
            elif kind == "number":
                value = int(raw) if _INTEGER_PATTERN.match(raw) else float(raw)
                tokens.append(_Token(kind, value, position))
            elif kind != "space":
                tokens.append(_Token(kind, raw, position))
            position = match.end()
        return tokens

    def _peek(self) -> Optional[_Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _next(self, expected: str) -> _Token:
        token = self._peek()
        if token is None:
            raise self._error(f"expected {expected}, got end of text", len(self.text))
        self.index += 1
        return token

    def _is_punct(self, token: Optional[_Token], char: str) -> bool:
        return token is not None and token.kind == "punct" and token.value == char

    def _expect_punct(self, char: str) -> None:
        token = self._next(f"'{char}'")
        if not self._is_punct(token, char):
            raise self._error(f"expected '{char}', got {token.value!r}", token.position)

    def _identifier(self) -> str:
        token = self._next("attribute name")
        if token.kind != "word":
            raise self._error(f"expected attribute name, got {token.value!r}", token.position)
        return token.value

    def parse(self) -> List[AttributeDefinition]:
        definitions: List[AttributeDefinition] = []
        if not self.tokens:
            return definitions

        while True:
            definitions.append(self._clause())
            token = self._peek()
            if token is None:
                return definitions
            if not self._is_punct(token, ","):
                raise self._error(f"expected ',' between clauses, got {token.value!r}", token.position)
            self.index += 1

    def _clause(self) -> AttributeDefinition:
        name = self._identifier()
        token = self._peek()

        if self._is_punct(token, "="):
            self.index += 1
            return AttributeDefinition(name, {name: self._value()})

        if self._is_punct(token, "("):
            self.index += 1
            attributes: Dict[str, AttributeValue] = {}
            while True:
                key = self._identifier()
                self._expect_punct("=")
                attributes[key] = self._value()
                closing = self._next("',' or ')'")
                if self._is_punct(closing, ")"):
                    return AttributeDefinition(name, attributes)
                if not self._is_punct(closing, ","):
                    raise self._error(f"expected ',' or ')', got {closing.value!r}", closing.position)

        return AttributeDefinition(name, {})

    def _value(self) -> AttributeValue:
        token = self._peek()
        if self._is_punct(token, "["):
            self.index += 1
            return self._list()
        return self._item()

    def _list(self) -> List[Union[str, int, float]]:
        items: List[Union[str, int, float]] = []
        if self._is_punct(self._peek(), "]"):
            self.index += 1
            return items

        while True:
            items.append(self._item())
            token = self._next("',' or ']'")
            if self._is_punct(token, "]"):
                return items
            if not self._is_punct(token, ","):
                raise self._error(f"expected ',' or ']', got {token.value!r}", token.position)

    def _item(self) -> Union[str, int, float]:
        token = self._next("value")
        if token.kind == "punct":
            raise self._error(f"expected value, got {token.value!r}", token.position)
        return token.value


def parse_annotation(text: Optional[str], field_name: Optional[str] = None) -> List[AttributeDefinition]:
    """Parse annotation text into attribute definitions, in clause order.

    Args:
        text: Annotation text; None or blank text yields no definitions
        field_name: Field the text belongs to, recorded on parse errors

    Returns:
        List of AttributeDefinition

    Raises:
        AnnotationParseError: If the text does not follow the grammar

    Examples:
        >>> parse_annotation("name=hits,labels=[route]")[1]
        AttributeDefinition(name='labels', attributes={'labels': ['route']})
    """
    if text is None or not text.strip():
        return []
    return _AnnotationParser(text, field_name).parse()


@dataclass(frozen=True)
class MetricTag:
    """Structured per-field metric options.

    Use inside ``typing.Annotated`` as an alternative to annotation text::

        hits: Annotated[Counter, MetricTag(labels=("route",), help="hits")]

    Only the options that are set produce definitions, so an empty tag
    behaves like no annotation at all.
    """

    name: Optional[str] = None
    help: Optional[str] = None
    labels: Sequence[str] = ()
    buckets: Optional[Sequence[float]] = None

    def definitions(self) -> List[AttributeDefinition]:
        definitions: List[AttributeDefinition] = []
        if self.name is not None:
            definitions.append(AttributeDefinition("name", {"name": self.name}))
        if self.labels:
            labels: Any = self.labels
            if not isinstance(labels, str):
                labels = list(labels)
            definitions.append(AttributeDefinition("labels", {"labels": labels}))
        if self.help is not None:
            definitions.append(AttributeDefinition("help", {"help": self.help}))
        if self.buckets is not None:
            definitions.append(AttributeDefinition("buckets", {"buckets": list(self.buckets)}))
        return definitions


def parse_field_tags(fields: Sequence["FieldDescriptor"]) -> Dict[str, List[AttributeDefinition]]:
    """Parse the annotations of every field.

    Text definitions come first, then those of structured ``MetricTag``
    descriptors. Fields without annotations map to an empty list.

    Raises:
        AnnotationParseError: For the first field whose text fails to parse,
            with the field name added as context
    """
    tags: Dict[str, List[AttributeDefinition]] = {}
    for descriptor in fields:
        try:
            definitions = parse_annotation(descriptor.annotation, descriptor.name)
        except MetricFieldsError as exc:
            exc.add_context(f"field '{descriptor.name}'")
            raise
        for tag in descriptor.tags:
            definitions.extend(tag.definitions())
        tags[descriptor.name] = definitions
    return tags


def definition_names(definitions: Sequence[AttributeDefinition]) -> Tuple[str, ...]:
    """Return the clause names of a definition list, in order."""
    return tuple(definition.name for definition in definitions)
