"""Relation model: object types, their relations and how relations compose.

A model is loaded once from a JSON document of the form::

    {
      "schema_version": "1.1",
      "type_definitions": [
        {
          "type": "post",
          "relations": {
            "owner": {"this": {}},
            "can_edit": {"union": {"child": [
              {"computed_userset": {"relation": "owner"}},
              {"tuple_to_userset": {"tupleset": {"relation": "org"},
                                    "computed_userset": {"relation": "admin"}}}
            ]}}
          },
          "metadata": {"relations": {
            "owner": {"directly_related_user_types": [{"type": "user"}]}
          }}
        }
      ]
    }

and validated eagerly. Any reference that does not resolve raises
``SchemaError``; the process must not serve checks with such a model.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union as TypingUnion

from .exceptions import SchemaError, ValidationError
from .identifiers import ObjectRef, validate_relation_name

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMA_VERSIONS = ("1.1",)


@dataclass(frozen=True)
class This:
    """Direct relation: satisfied by a stored tuple."""


@dataclass(frozen=True)
class ComputedUserset:
    """Another relation on the same object."""

    relation: str


@dataclass(frozen=True)
class TupleToUserset:
    """Follow ``tupleset`` to related objects, then check ``computed_relation`` there."""

    tupleset: str
    computed_relation: str


@dataclass(frozen=True)
class Union:
    """Any child allows."""

    children: tuple


Rewrite = TypingUnion[This, ComputedUserset, TupleToUserset, Union]


@dataclass(frozen=True)
class RelationDefinition:
    name: str
    rewrite: Any
    allowed_subject_types: tuple[str, ...] = ()

    @property
    def is_direct(self) -> bool:
        """True when tuples may be written for this relation."""
        return _contains_this(self.rewrite)


@dataclass(frozen=True)
class TypeDefinition:
    name: str
    relations: dict[str, RelationDefinition] = field(default_factory=dict)


def _contains_this(rewrite) -> bool:
    if isinstance(rewrite, This):
        return True
    if isinstance(rewrite, Union):
        return any(_contains_this(child) for child in rewrite.children)
    return False


class Schema:
    """Validated, immutable authorization model."""

    def __init__(self, types: dict[str, TypeDefinition], schema_version: str, digest: str):
        self.types = types
        self.schema_version = schema_version
        self.digest = digest

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Schema {self.schema_version} {self.digest[:12]} types={sorted(self.types)}>"

    def get_relation(self, object_type: str, relation: str) -> RelationDefinition:
        """Return the definition of ``relation`` on ``object_type``.

        Unknown types or relations are a caller mistake and raise
        ``ValidationError`` (not a deny).
        """
        validate_relation_name(relation)
        type_def = self.types.get(object_type)
        if type_def is None:
            raise ValidationError(f"Unknown object type: {object_type!r}")
        definition = type_def.relations.get(relation)
        if definition is None:
            raise ValidationError(f"Unknown relation {relation!r} on type {object_type!r}")
        return definition

    def validate_tuple(self, subject: ObjectRef, relation: str, obj: ObjectRef) -> None:
        """Reject tuples the model does not allow to be stored."""
        definition = self.get_relation(obj.type, relation)
        if not definition.is_direct:
            raise ValidationError(
                f"Relation {obj.type}#{relation} is computed and cannot be written directly."
            )
        if subject.type not in definition.allowed_subject_types:
            raise ValidationError(
                f"Subject type {subject.type!r} is not allowed for {obj.type}#{relation}."
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "type_definitions": [_type_to_dict(t) for t in self.types.values()],
        }


def _rewrite_to_dict(rewrite) -> dict[str, Any]:
    if isinstance(rewrite, This):
        return {"this": {}}
    if isinstance(rewrite, ComputedUserset):
        return {"computed_userset": {"relation": rewrite.relation}}
    if isinstance(rewrite, TupleToUserset):
        return {
            "tuple_to_userset": {
                "tupleset": {"relation": rewrite.tupleset},
                "computed_userset": {"relation": rewrite.computed_relation},
            }
        }
    return {"union": {"child": [_rewrite_to_dict(c) for c in rewrite.children]}}


def _type_to_dict(type_def: TypeDefinition) -> dict[str, Any]:
    relations = {name: _rewrite_to_dict(r.rewrite) for name, r in type_def.relations.items()}
    metadata = {
        name: {"directly_related_user_types": [{"type": t} for t in r.allowed_subject_types]}
        for name, r in type_def.relations.items()
        if r.allowed_subject_types
    }
    doc: dict[str, Any] = {"type": type_def.name, "relations": relations}
    if metadata:
        doc["metadata"] = {"relations": metadata}
    return doc


def _parse_rewrite(node: Any, where: str):
    if not isinstance(node, dict) or len(node) != 1:
        raise SchemaError(f"{where}: a rewrite must be an object with exactly one key")
    (kind, body), = node.items()
    if kind == "this":
        return This()
    if kind == "computed_userset":
        return ComputedUserset(_relation_name(body, where))
    if kind == "tuple_to_userset":
        if not isinstance(body, dict):
            raise SchemaError(f"{where}: tuple_to_userset must be an object")
        return TupleToUserset(
            tupleset=_relation_name(body.get("tupleset"), where),
            computed_relation=_relation_name(body.get("computed_userset"), where),
        )
    if kind == "union":
        children = body.get("child") if isinstance(body, dict) else None
        if not isinstance(children, list) or not children:
            raise SchemaError(f"{where}: union needs a non-empty 'child' list")
        return Union(tuple(_parse_rewrite(child, where) for child in children))
    raise SchemaError(f"{where}: unsupported rewrite {kind!r}")


def _relation_name(body: Any, where: str) -> str:
    relation = body.get("relation") if isinstance(body, dict) else None
    try:
        return validate_relation_name(relation)
    except ValidationError as exc:
        raise SchemaError(f"{where}: {exc.message}") from exc


def _check_references(types: dict[str, TypeDefinition]) -> None:
    # Subject types first: rewrite checks below index ``types`` by them.
    for type_def in types.values():
        for relation in type_def.relations.values():
            where = f"{type_def.name}#{relation.name}"
            for subject_type in relation.allowed_subject_types:
                if subject_type not in types:
                    raise SchemaError(f"{where}: unknown subject type {subject_type!r}")
            if relation.is_direct and not relation.allowed_subject_types:
                raise SchemaError(f"{where}: direct relation declares no subject types")
    for type_def in types.values():
        for relation in type_def.relations.values():
            _check_rewrite(relation.rewrite, type_def, types, f"{type_def.name}#{relation.name}")


def _check_rewrite(rewrite, type_def: TypeDefinition, types, where: str) -> None:
    if isinstance(rewrite, Union):
        for child in rewrite.children:
            _check_rewrite(child, type_def, types, where)
    elif isinstance(rewrite, ComputedUserset):
        if rewrite.relation not in type_def.relations:
            raise SchemaError(f"{where}: references undefined relation {rewrite.relation!r}")
    elif isinstance(rewrite, TupleToUserset):
        tupleset = type_def.relations.get(rewrite.tupleset)
        if tupleset is None or not tupleset.is_direct:
            raise SchemaError(f"{where}: tupleset {rewrite.tupleset!r} is not a direct relation")
        for target_type in tupleset.allowed_subject_types:
            if rewrite.computed_relation not in types[target_type].relations:
                raise SchemaError(
                    f"{where}: {target_type!r} has no relation {rewrite.computed_relation!r}"
                )


def compute_digest(document: dict[str, Any]) -> str:
    """Stable content hash of a model document."""
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_schema(document: dict[str, Any]) -> Schema:
    """Parse and validate a model document, raising ``SchemaError`` on any defect."""
    if not isinstance(document, dict):
        raise SchemaError("Authorization model must be a JSON object")
    version = document.get("schema_version", "1.1")
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        raise SchemaError(f"Unsupported schema_version {version!r}")
    type_docs = document.get("type_definitions")
    if not isinstance(type_docs, list) or not type_docs:
        raise SchemaError("Authorization model declares no type_definitions")

    types: dict[str, TypeDefinition] = {}
    for type_doc in type_docs:
        name = type_doc.get("type") if isinstance(type_doc, dict) else None
        try:
            ObjectRef(name, "x")
        except ValidationError as exc:
            raise SchemaError(f"Malformed type name {name!r}") from exc
        if name in types:
            raise SchemaError(f"Type {name!r} is defined twice")

        metadata = (type_doc.get("metadata") or {}).get("relations") or {}
        relations = {}
        for rel_name, rewrite_doc in (type_doc.get("relations") or {}).items():
            where = f"{name}#{rel_name}"
            try:
                validate_relation_name(rel_name)
            except ValidationError as exc:
                raise SchemaError(f"{where}: {exc.message}") from exc
            entries = (metadata.get(rel_name) or {}).get("directly_related_user_types", [])
            if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
                raise SchemaError(f"{where}: directly_related_user_types must be a list of objects")
            allowed = tuple(entry.get("type") for entry in entries)
            relations[rel_name] = RelationDefinition(
                name=rel_name,
                rewrite=_parse_rewrite(rewrite_doc, where),
                allowed_subject_types=allowed,
            )
        types[name] = TypeDefinition(name=name, relations=relations)

    _check_references(types)
    return Schema(types=types, schema_version=version, digest=compute_digest(document))


def load_schema(path: "str | Path") -> Schema:
    """Read a model document from disk and parse it."""
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SchemaError(f"Cannot read authorization model {path}: {exc}") from exc
    schema = parse_schema(document)
    logger.info("Loaded authorization model %s from %s", schema.digest[:12], path)
    return schema


__all__ = [
    "This",
    "ComputedUserset",
    "TupleToUserset",
    "Union",
    "RelationDefinition",
    "TypeDefinition",
    "Schema",
    "parse_schema",
    "load_schema",
    "compute_digest",
]
