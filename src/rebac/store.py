"""Tuple store backed by the Django ORM.

The relational database is the single source of truth for tuples. Batches
run inside ``transaction.atomic`` so a write/delete pair is applied
all-or-nothing, and database connectivity failures (including statement
timeouts) are translated to ``StoreUnavailable`` so they are never mistaken
for a deny.
"""

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator

from django.db import DatabaseError, IntegrityError, transaction

from .exceptions import StoreUnavailable, TransactionFailed, ValidationError
from .identifiers import ObjectRef, TupleKey
from .models import RelationTuple

logger = logging.getLogger(__name__)


def _normalize_batch(tuples: Iterable[TupleKey]) -> list[TupleKey]:
    """Validate batch shape: an iterable of ``TupleKey``. Duplicates collapse."""
    if isinstance(tuples, (str, bytes, TupleKey)) or tuples is None:
        raise ValidationError("A tuple batch must be a collection of TupleKey instances.")
    batch: list[TupleKey] = []
    for key in tuples:
        if not isinstance(key, TupleKey):
            raise ValidationError(f"Not a TupleKey: {key!r}")
        if key not in batch:
            batch.append(key)
    return batch


def _key_filter(key: TupleKey) -> dict[str, str]:
    return {
        "subject_type": key.subject.type,
        "subject_id": key.subject.id,
        "relation": key.relation,
        "object_type": key.object.type,
        "object_id": key.object.id,
    }


def _to_key(row: RelationTuple) -> TupleKey:
    return TupleKey(
        ObjectRef(row.subject_type, row.subject_id),
        row.relation,
        ObjectRef(row.object_type, row.object_id),
    )


class TupleStore:
    """Add, remove and query relation tuples."""

    def __init__(self, using: str = "default"):
        self.using = using

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            logger.warning("Tuple store %s rolled back: %s", operation, exc)
            raise TransactionFailed() from exc
        except DatabaseError as exc:
            logger.warning("Tuple store %s failed: %s", operation, exc)
            raise StoreUnavailable() from exc

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run the enclosed store calls as one all-or-nothing unit."""
        with self._guard("transaction"), transaction.atomic(using=self.using):
            yield

    def _queryset(self):
        return RelationTuple.objects.using(self.using)

    def read(
        self,
        subject: ObjectRef | None = None,
        relation: str | None = None,
        object: ObjectRef | None = None,
    ) -> set[TupleKey]:
        """Return every tuple matching the given (possibly empty) filter."""
        filters: dict[str, str] = {}
        if subject is not None:
            filters.update(subject_type=subject.type, subject_id=subject.id)
        if relation is not None:
            filters["relation"] = relation
        if object is not None:
            filters.update(object_type=object.type, object_id=object.id)
        with self._guard("read"):
            return {_to_key(row) for row in self._queryset().filter(**filters)}

    def exists(self, key: TupleKey) -> bool:
        with self._guard("read"):
            return self._queryset().filter(**_key_filter(key)).exists()

    def write(self, tuples: Iterable[TupleKey]) -> int:
        """Insert tuples; already-present ones are left alone. Returns rows added."""
        return self.apply(writes=tuples)[0]

    def delete(self, tuples: Iterable[TupleKey]) -> int:
        """Remove exact tuples; absent ones are ignored. Returns rows removed."""
        return self.apply(deletes=tuples)[1]

    def apply(
        self,
        writes: Iterable[TupleKey] = (),
        deletes: Iterable[TupleKey] = (),
    ) -> tuple[int, int]:
        """Apply deletes then writes as a single atomic batch."""
        writes = _normalize_batch(writes)
        deletes = _normalize_batch(deletes)
        added = removed = 0
        with self.atomic():
            for key in deletes:
                count, _ = self._queryset().filter(**_key_filter(key)).delete()
                removed += count
            for key in writes:
                added += self._insert(key)
        if added or removed:
            logger.debug("Applied tuple batch: +%d -%d (%s / %s)", added, removed,
                         [str(k) for k in writes], [str(k) for k in deletes])
        return added, removed

    def _insert(self, key: TupleKey) -> bool:
        """Insert one tuple unless present. Returns whether a row was added.

        A concurrent writer may insert the same tuple between the lookup and
        the insert; that conflict is still a no-op. Any other constraint
        violation (e.g. a second owner) propagates.
        """
        existing = self._queryset().filter(**_key_filter(key))
        if existing.exists():
            return False
        try:
            with transaction.atomic(using=self.using):
                RelationTuple.objects.db_manager(self.using).create(**_key_filter(key))
        except IntegrityError:
            if existing.exists():
                return False
            raise
        return True

    def lock_object(self, obj: ObjectRef) -> set[TupleKey]:
        """Lock every tuple on ``obj`` until the surrounding transaction ends.

        Must be called inside ``atomic()``; concurrent lockers of the same
        object queue behind the holder.
        """
        with self._guard("lock"):
            rows = self._queryset().select_for_update().filter(
                object_type=obj.type, object_id=obj.id
            )
            return {_to_key(row) for row in rows}

    def delete_object(self, obj: ObjectRef) -> int:
        """Remove every tuple whose object is ``obj``."""
        with self.atomic():
            count, _ = self._queryset().filter(object_type=obj.type, object_id=obj.id).delete()
        return count


__all__ = ["TupleStore"]
