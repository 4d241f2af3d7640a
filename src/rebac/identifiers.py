"""Value types for subjects, objects and relation tuples.

Identifiers travel through the engine as ``ObjectRef`` instances rather than
ad-hoc ``"type:id"`` strings, so a malformed reference is rejected once, at
construction, and never reaches the tuple store.
"""

import re
from dataclasses import dataclass

from .exceptions import ValidationError

_TYPE_RE = re.compile(r"^[a-z][a-z0-9_]{0,49}$")
_ID_RE = re.compile(r"^[A-Za-z0-9_\-.@]{1,128}$")
_RELATION_RE = re.compile(r"^[a-z][a-z0-9_]{0,49}$")


def validate_relation_name(relation: str) -> str:
    """Return ``relation`` if it is a syntactically valid relation name."""
    if not isinstance(relation, str) or not _RELATION_RE.match(relation):
        raise ValidationError(f"Malformed relation name: {relation!r}")
    return relation


@dataclass(frozen=True, order=True)
class ObjectRef:
    """A typed reference such as ``user:42`` or ``post:7``."""

    type: str
    id: str

    def __post_init__(self):
        if not isinstance(self.type, str) or not _TYPE_RE.match(self.type):
            raise ValidationError(f"Malformed object type: {self.type!r}")
        if not isinstance(self.id, str) or not _ID_RE.match(self.id):
            raise ValidationError(f"Malformed object id: {self.id!r}")

    @classmethod
    def parse(cls, value: "str | ObjectRef") -> "ObjectRef":
        """Build a reference from its ``type:id`` string form."""
        if isinstance(value, ObjectRef):
            return value
        if not isinstance(value, str) or value.count(":") != 1:
            raise ValidationError(f"Malformed object reference: {value!r}")
        type_, id_ = value.split(":", 1)
        return cls(type_, id_)

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


def user_ref(user_id) -> ObjectRef:
    """Reference for a subject identified by its user primary key."""
    return ObjectRef("user", str(user_id))


def post_ref(post_id) -> ObjectRef:
    """Reference for a content item identified by its post primary key."""
    return ObjectRef("post", str(post_id))


def org_ref(org_id: str = "blog") -> ObjectRef:
    return ObjectRef("org", org_id)


@dataclass(frozen=True, order=True)
class TupleKey:
    """A single ``(subject, relation, object)`` fact."""

    subject: ObjectRef
    relation: str
    object: ObjectRef

    def __post_init__(self):
        if not isinstance(self.subject, ObjectRef) or not isinstance(self.object, ObjectRef):
            raise ValidationError("Tuple subject and object must be ObjectRef instances.")
        validate_relation_name(self.relation)

    @classmethod
    def of(cls, subject, relation: str, obj) -> "TupleKey":
        """Build a key from references or their string forms."""
        return cls(ObjectRef.parse(subject), relation, ObjectRef.parse(obj))

    def __str__(self) -> str:
        return f"{self.object}#{self.relation}@{self.subject}"


__all__ = [
    "ObjectRef",
    "TupleKey",
    "user_ref",
    "post_ref",
    "org_ref",
    "validate_relation_name",
]
