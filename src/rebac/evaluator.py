"""Graph evaluation of ``check(subject, relation, object)``.

A direct relation allows iff the exact tuple exists. A computed relation
walks its rewrite tree: ``computed_userset`` re-checks another relation on the
same object, ``tuple_to_userset`` follows a tupleset to related objects and
checks there, and ``union`` allows as soon as one child allows.

Every check is deterministic over the current tuples and the installed
model. Revisiting a ``(subject, relation, object)`` triple inside one check,
or exceeding ``max_depth``, means the model is cyclic: that branch evaluates
to deny and a warning is logged.
"""

import logging

from .identifiers import ObjectRef, TupleKey
from .schema import ComputedUserset, Schema, This, TupleToUserset, Union
from .store import TupleStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 25


class Evaluator:
    """Resolve relation checks against a tuple store using a schema."""

    def __init__(self, schema: Schema, store: TupleStore, max_depth: int = DEFAULT_MAX_DEPTH):
        self.schema = schema
        self.store = store
        self.max_depth = max_depth

    def install(self, schema: Schema) -> None:
        """Swap in a new model. Tuples are untouched."""
        self.schema = schema

    def check(self, subject, relation: str, obj) -> bool:
        """Return True (allow) or False (deny).

        Raises ``ValidationError`` for malformed input and ``StoreUnavailable``
        when the store cannot answer.
        """
        subject = ObjectRef.parse(subject)
        obj = ObjectRef.parse(obj)
        self.schema.get_relation(obj.type, relation)
        allowed = self._check(subject, relation, obj, visited=frozenset(), depth=0)
        logger.debug("check %s#%s@%s -> %s", obj, relation, subject, "allow" if allowed else "deny")
        return allowed

    def _check(self, subject: ObjectRef, relation: str, obj: ObjectRef, visited, depth: int) -> bool:
        triple = (subject, relation, obj)
        if triple in visited:
            logger.warning("Cycle in authorization model at %s#%s; treating as deny", obj, relation)
            return False
        if depth > self.max_depth:
            logger.warning(
                "Check depth exceeded %d at %s#%s; treating as deny", self.max_depth, obj, relation
            )
            return False

        type_def = self.schema.types.get(obj.type)
        definition = type_def.relations.get(relation) if type_def else None
        if definition is None:
            return False
        return self._rewrite(definition.rewrite, subject, relation, obj, visited | {triple}, depth + 1)

    def _rewrite(self, rewrite, subject, relation, obj, visited, depth) -> bool:
        if isinstance(rewrite, This):
            return self.store.exists(TupleKey(subject, relation, obj))
        if isinstance(rewrite, ComputedUserset):
            return self._check(subject, rewrite.relation, obj, visited, depth)
        if isinstance(rewrite, TupleToUserset):
            for related in sorted(self.store.read(relation=rewrite.tupleset, object=obj)):
                if self._check(subject, rewrite.computed_relation, related.subject, visited, depth):
                    return True
            return False
        if isinstance(rewrite, Union):
            return any(
                self._rewrite(child, subject, relation, obj, visited, depth)
                for child in rewrite.children
            )
        raise TypeError(f"Unknown rewrite node: {rewrite!r}")


__all__ = ["Evaluator", "DEFAULT_MAX_DEPTH"]
