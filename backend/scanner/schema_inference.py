"""Best-effort example payloads from validation-library metadata.

A route handler can carry a schema in many shapes: a pydantic model, a
marshmallow-style schema, a dataclass, a ``fields`` map, a JSON-Schema dict,
or something a host-specific extractor understands. ``SchemaInference``
probes a handle for those shapes and turns the first one it recognises into
an example payload (``{"name": "string", "age": 0}``).

Usage::

    inference = SchemaInference()
    inference.use(my_extractor)        # (handle) -> dict | None
    inference.infer(CreateUser)        # {"name": "string", "age": 0}
"""

import collections.abc
import dataclasses
import enum
import logging
import types
import typing
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)

FieldMap = dict[str, Any]
SchemaExtractor = Callable[[Any], Optional[FieldMap]]

ANY = "any"

# Attribute (or key) paths where validation helpers keep their schema.
# The empty path means "the handle is the schema".
CANDIDATE_PATHS: tuple[tuple[str, ...], ...] = (
    (),
    ("schema",),
    ("params", "schema"),
    ("parameters", "schema"),
    ("validator", "schema"),
    ("body_schema",),
)

_SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Iterable,
)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)
_UNWRAP_LIMIT = 16


def probe(obj: Any, *path: str) -> Any:
    """Follow an attribute/key path, returning None on any miss."""
    current = obj
    for name in path:
        if current is None:
            return None
        try:
            if isinstance(current, Mapping):
                current = current.get(name)
            else:
                current = getattr(current, name, None)
        except Exception:
            return None
    return current


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def example_for_type_name(type_name: str) -> Any:
    """Example value for a declared type name, or ``"any"`` when unknown."""
    name = type_name.strip().lower()
    if name in ("string", "str", "text"):
        return "string"
    if name in ("number", "integer", "int", "float", "decimal"):
        return 0
    if name in ("boolean", "bool"):
        return True
    if name in ("array", "list"):
        return []
    if name in ("object", "dict", "mapping"):
        return {}
    if name in ("date", "datetime", "date-time"):
        return _now_iso()
    return ANY


def unwrap_annotation(annotation: Any) -> Any:
    """Strip Annotated, Optional/Union and NewType wrappers down to one type."""
    for _ in range(_UNWRAP_LIMIT):
        origin = typing.get_origin(annotation)
        if origin is typing.Annotated:
            annotation = typing.get_args(annotation)[0]
        elif origin is typing.Union or origin is types.UnionType:
            members = [a for a in typing.get_args(annotation) if a is not type(None)]
            if not members:
                return None
            annotation = members[0]
        elif hasattr(annotation, "__supertype__"):
            annotation = annotation.__supertype__
        else:
            return annotation
    return annotation


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and isinstance(getattr(annotation, "model_fields", None), Mapping)


def example_for_annotation(annotation: Any, seen: frozenset = frozenset()) -> Any:
    """Example value for a Python type annotation, or None when unknown."""
    annotation = unwrap_annotation(annotation)
    origin = typing.get_origin(annotation)

    if origin is typing.Literal:
        values = typing.get_args(annotation)
        return values[0] if values else None
    if origin in _SEQUENCE_ORIGINS:
        return []
    if origin in _MAPPING_ORIGINS:
        return {}
    if not isinstance(annotation, type):
        return None

    if issubclass(annotation, bool):
        return True
    if issubclass(annotation, enum.Enum):
        members = list(annotation)
        return members[0].value if members else "enum"
    if issubclass(annotation, str):
        return "string"
    if issubclass(annotation, (int, float, Decimal)):
        return 0
    if issubclass(annotation, (datetime, date)):
        return _now_iso()
    if issubclass(annotation, (list, tuple, set, frozenset)):
        return []
    if issubclass(annotation, dict):
        return {}
    if annotation in seen:
        return {}
    if _is_model(annotation):
        return _model_example(annotation, seen | {annotation})
    if dataclasses.is_dataclass(annotation):
        return _dataclass_example(annotation, seen | {annotation})
    return None


def _model_example(model: type, seen: frozenset) -> FieldMap:
    fields = model.model_fields
    body = fields.get("body")
    if body is not None:
        body_type = unwrap_annotation(body.annotation)
        if _is_model(body_type) and body_type not in seen:
            # Request wrapper models ({body, query, params}) document the body
            return _model_example(body_type, seen | {body_type})

    result: FieldMap = {}
    for name, info in fields.items():
        key = getattr(info, "alias", None) or name
        result[key] = example_for_annotation(info.annotation, seen)
    return result


def _dataclass_example(cls: type, seen: frozenset) -> FieldMap:
    try:
        hints = typing.get_type_hints(cls)
    except Exception:
        hints = {}
    result: FieldMap = {}
    for f in dataclasses.fields(cls):
        declared = hints.get(f.name, f.type)
        if isinstance(declared, str):
            result[f.name] = example_for_type_name(declared)
            continue
        value = example_for_annotation(declared, seen)
        result[f.name] = ANY if value is None else value
    return result


# =============================================================================
# Shape strategies
# =============================================================================


class SchemaShape(Protocol):
    """A recognizer/extractor pair for one family of schema objects."""

    name: str

    def matches(self, candidate: Any) -> bool:
        ...

    def extract(self, candidate: Any) -> Optional[FieldMap]:
        ...


class PydanticModelShape:
    """Builder shape: pydantic models (classes or instances)."""

    name = "pydantic-model"

    @staticmethod
    def _model(candidate: Any) -> type:
        return candidate if isinstance(candidate, type) else type(candidate)

    def matches(self, candidate: Any) -> bool:
        return _is_model(self._model(candidate))

    def extract(self, candidate: Any) -> Optional[FieldMap]:
        model = self._model(candidate)
        return _model_example(model, frozenset({model}))


class DeclaredKeysShape:
    """Schema-description shape: only the declared key names are known."""

    name = "declared-keys"

    @staticmethod
    def _keys(candidate: Any) -> Optional[list]:
        declared = probe(candidate, "_declared_fields")
        if isinstance(declared, Mapping):
            return list(declared)

        keys = probe(candidate, "keys")
        if keys is not None and not callable(keys):
            if isinstance(keys, Mapping):
                return list(keys)
            if isinstance(keys, (list, tuple)):
                return [k for k in keys if isinstance(k, str)]
            if isinstance(keys, (set, frozenset)):
                return sorted(k for k in keys if isinstance(k, str))

        by_key = probe(candidate, "_ids", "_by_key")
        if isinstance(by_key, Mapping):
            return list(by_key)
        return None

    def matches(self, candidate: Any) -> bool:
        return self._keys(candidate) is not None

    def extract(self, candidate: Any) -> Optional[FieldMap]:
        return {str(key): ANY for key in self._keys(candidate) or []}


class FieldsMapShape:
    """Fields-map shape: ``fields`` descriptors with a ``type``, or dataclasses."""

    name = "fields-map"

    def matches(self, candidate: Any) -> bool:
        return dataclasses.is_dataclass(candidate) or isinstance(probe(candidate, "fields"), Mapping)

    def extract(self, candidate: Any) -> Optional[FieldMap]:
        if dataclasses.is_dataclass(candidate):
            cls = candidate if isinstance(candidate, type) else type(candidate)
            return _dataclass_example(cls, frozenset({cls}))
        return {str(name): self._describe(d) for name, d in probe(candidate, "fields").items()}

    def _describe(self, descriptor: Any, depth: int = 0) -> Any:
        if isinstance(descriptor, str):
            return example_for_type_name(descriptor)
        if isinstance(descriptor, type):
            value = example_for_annotation(descriptor)
            return ANY if value is None else value

        nested = probe(descriptor, "fields")
        if isinstance(nested, Mapping) and depth < _UNWRAP_LIMIT:
            return {str(name): self._describe(d, depth + 1) for name, d in nested.items()}

        declared = probe(descriptor, "type")
        if isinstance(declared, str):
            return example_for_type_name(declared)
        if isinstance(declared, type):
            value = example_for_annotation(declared)
            return ANY if value is None else value
        return ANY


class JsonSchemaShape:
    """Generic JSON-Schema-like shape: ``properties`` with ``type`` strings."""

    name = "json-schema"

    def matches(self, candidate: Any) -> bool:
        return isinstance(probe(candidate, "properties"), Mapping)

    def extract(self, candidate: Any, depth: int = 0) -> Optional[FieldMap]:
        result: FieldMap = {}
        for name, prop in probe(candidate, "properties").items():
            result[str(name)] = self._example(prop, depth)
        return result

    def _example(self, prop: Any, depth: int) -> Any:
        choices = probe(prop, "enum")
        if isinstance(choices, (list, tuple)) and choices:
            return choices[0]

        declared = probe(prop, "type")
        if isinstance(declared, (list, tuple)):
            declared = next((t for t in declared if t != "null"), None)
        if declared == "object":
            if self.matches(prop) and depth < _UNWRAP_LIMIT:
                return self.extract(prop, depth + 1)
            return {}
        if isinstance(declared, str):
            return example_for_type_name(declared)
        return ANY


SHAPES: tuple[SchemaShape, ...] = (PydanticModelShape(), DeclaredKeysShape(), FieldsMapShape())
FALLBACK_SHAPES: tuple[SchemaShape, ...] = (JsonSchemaShape(),)


def iter_candidates(handle: Any) -> Iterator[Any]:
    """Yield each distinct object found at the known schema locations."""
    seen_ids: set[int] = set()
    for path in CANDIDATE_PATHS:
        candidate = probe(handle, *path) if path else handle
        if candidate is None or isinstance(candidate, (str, bytes, int, float)):
            continue
        if id(candidate) in seen_ids:
            continue
        seen_ids.add(id(candidate))
        yield candidate


def _try_shape(shape: SchemaShape, candidate: Any) -> Optional[FieldMap]:
    try:
        if not shape.matches(candidate):
            return None
        return shape.extract(candidate) or None
    except Exception:
        logger.debug("Schema shape %s failed on %r", shape.name, candidate, exc_info=True)
        return None


class SchemaInference:
    """Ordered fallback chain over custom extractors and built-in shapes."""

    def __init__(self, extractors: Optional[list[SchemaExtractor]] = None) -> None:
        self._extractors: list[SchemaExtractor] = list(extractors or [])

    @property
    def extractors(self) -> tuple[SchemaExtractor, ...]:
        return tuple(self._extractors)

    def use(self, extractor: SchemaExtractor) -> None:
        """Register a custom extractor. Earlier registrations take precedence."""
        self._extractors.append(extractor)

    def infer(self, handle: Any) -> Optional[FieldMap]:
        if handle is None:
            return None

        for extractor in self._extractors:
            try:
                result = extractor(handle)
            except Exception:
                logger.debug("Custom schema extractor %r failed", extractor, exc_info=True)
                continue
            if result:
                return result

        candidates = list(iter_candidates(handle))
        for shapes in (SHAPES, FALLBACK_SHAPES):
            for candidate in candidates:
                for shape in shapes:
                    result = _try_shape(shape, candidate)
                    if result:
                        return result
        return None


def with_schema(schema: Any) -> Callable:
    """Attach a body schema to an endpoint or dependency for the route scanner.

    ::

        @router.post("/legacy")
        @with_schema({"properties": {"name": {"type": "string"}}})
        async def legacy(request: Request): ...
    """

    def decorator(fn: Callable) -> Callable:
        fn.body_schema = schema
        return fn

    return decorator
