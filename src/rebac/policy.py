"""Policy orchestration for the content lifecycle.

Each operation combines org-role checks on ``org:<id>`` with relation checks
on ``post:<id>`` and, when allowed, applies its tuple effects. Disjuncts are
evaluated in order and stop at the first one that allows. A deny never
mutates tuples.

Parameter validation happens before any store access; a policy-level
rejection of an otherwise well-formed request (e.g. granting per-post edit to
a non-moderator) is a ``ValidationError`` as well.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .evaluator import Evaluator
from .exceptions import AuthorizationDenied, ValidationError
from .identifiers import ObjectRef, TupleKey, org_ref
from .models import FirstAdminClaim
from .store import TupleStore

logger = logging.getLogger(__name__)

ORG_ROLES = ("admin", "editor", "moderator", "viewer")
CONTENT_STATUSES = ("draft", "published")
ROLE_ACTIONS = ("grant", "revoke")


class Operation(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    EDIT = "edit"
    DELETE = "delete"
    PUBLISH = "publish"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    GRANT_EDIT = "grant_edit"
    MANAGE_ROLE = "manage_role"

    @classmethod
    def parse(cls, value: "str | Operation") -> "Operation":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown operation: {value!r}") from exc


@dataclass(frozen=True)
class TupleEffect:
    action: str  # "write" or "delete"
    key: TupleKey

    def __str__(self) -> str:
        return f"{self.action} {self.key}"


@dataclass(frozen=True)
class Verdict:
    """Outcome of ``PolicyOrchestrator.apply``."""

    operation: Operation
    allowed: bool
    effects: tuple[TupleEffect, ...] = field(default=())

    def __bool__(self) -> bool:
        return self.allowed


def _param(params: dict[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == "":
        raise ValidationError(f"Missing parameter: {name}")
    return value


def _ref(params: dict[str, Any], name: str, expected_type: str) -> ObjectRef:
    ref = ObjectRef.parse(_param(params, name))
    if ref.type != expected_type:
        raise ValidationError(f"Parameter {name} must reference a {expected_type}, got {ref}")
    return ref


class PolicyOrchestrator:
    """Entry point for every authorization-gated content operation."""

    def __init__(self, evaluator: Evaluator, store: TupleStore, org: ObjectRef | None = None):
        self.evaluator = evaluator
        self.store = store
        self.org = org or org_ref()
        self._handlers: dict[Operation, Callable[[ObjectRef, dict[str, Any]], Verdict]] = {
            Operation.CREATE: self._create,
            Operation.READ: self._read,
            Operation.EDIT: self._edit,
            Operation.DELETE: self._delete,
            Operation.PUBLISH: self._publish,
            Operation.TRANSFER_OWNERSHIP: self._transfer_ownership,
            Operation.GRANT_EDIT: self._grant_edit,
            Operation.MANAGE_ROLE: self._manage_role,
        }

    # -- public API ---------------------------------------------------------

    def check(self, subject, relation: str, obj) -> bool:
        return self.evaluator.check(subject, relation, obj)

    def has_org_role(self, subject: ObjectRef, *roles: str) -> bool:
        """True if ``subject`` holds any of ``roles`` on the org (short-circuit)."""
        return any(self.evaluator.check(subject, role, self.org) for role in roles)

    def org_roles(self, subject) -> list[str]:
        subject = ObjectRef.parse(subject)
        return [role for role in ORG_ROLES if self.evaluator.check(subject, role, self.org)]

    def apply(self, operation, subject, params: dict[str, Any] | None = None) -> Verdict:
        """Evaluate ``operation`` for ``subject`` and apply its tuple effects if allowed."""
        operation = Operation.parse(operation)
        subject = ObjectRef.parse(subject)
        if subject.type != "user":
            raise ValidationError(f"Subject must be a user, got {subject}")
        verdict = self._handlers[operation](subject, dict(params or {}))
        if not verdict.allowed:
            logger.info("Denied %s for %s (%s)", operation.value, subject, params)
        elif verdict.effects:
            logger.info("Allowed %s for %s: %s", operation.value, subject,
                        ", ".join(str(e) for e in verdict.effects))
        return verdict

    def require(self, operation, subject, params: dict[str, Any] | None = None) -> Verdict:
        """Like ``apply`` but raises ``AuthorizationDenied`` on deny."""
        verdict = self.apply(operation, subject, params)
        if not verdict.allowed:
            raise AuthorizationDenied()
        return verdict

    def register_subject(self, user_id) -> str:
        """Assign the initial org role of a newly created subject.

        The first subject to claim the singleton ``FirstAdminClaim`` row gets
        ``admin``; everyone else gets ``viewer``. Runs once, at creation.
        """
        subject = ObjectRef("user", str(user_id))
        with self.store.atomic():
            _, claimed = FirstAdminClaim.objects.get_or_create(
                key=FirstAdminClaim.SINGLETON_KEY, defaults={"user_id": user_id}
            )
            role = "admin" if claimed else "viewer"
            self.evaluator.schema.validate_tuple(subject, role, self.org)
            self.store.write([TupleKey(subject, role, self.org)])
        if claimed:
            logger.info("Subject %s claimed the first admin role", subject)
        return role

    def forget_content(self, post) -> int:
        """Drop every tuple on a deleted content item."""
        return self.store.delete_object(ObjectRef.parse(post))

    # -- helpers ------------------------------------------------------------

    def _first(self, checks: Iterable[Callable[[], bool]]) -> bool:
        for check in checks:
            if check():
                return True
        return False

    def _effects(self, operation: Operation, writes=(), deletes=()) -> Verdict:
        for key in writes:
            self.evaluator.schema.validate_tuple(key.subject, key.relation, key.object)
        self.store.apply(writes=writes, deletes=deletes)
        effects = tuple(TupleEffect("delete", k) for k in deletes) + tuple(
            TupleEffect("write", k) for k in writes
        )
        return Verdict(operation, True, effects)

    # -- operations ---------------------------------------------------------

    def _create(self, subject, params) -> Verdict:
        post = _ref(params, "post", "post")
        if not self.has_org_role(subject, "admin", "editor", "moderator"):
            return Verdict(Operation.CREATE, False)
        return self._effects(
            Operation.CREATE,
            writes=[TupleKey(subject, "owner", post), TupleKey(self.org, "org", post)],
        )

    def _read(self, subject, params) -> Verdict:
        post = _ref(params, "post", "post")
        status = _param(params, "status")
        if status not in CONTENT_STATUSES:
            raise ValidationError(f"Unknown content status: {status!r}")
        allowed = self._first([
            lambda: status == "published",
            lambda: self.evaluator.check(subject, "owner", post),
        ])
        return Verdict(Operation.READ, allowed)

    def _edit(self, subject, params) -> Verdict:
        post = _ref(params, "post", "post")
        return Verdict(Operation.EDIT, self.evaluator.check(subject, "can_edit", post))

    def _delete(self, subject, params) -> Verdict:
        post = _ref(params, "post", "post")
        allowed = self._first([
            lambda: self.evaluator.check(subject, "owner", post),
            lambda: self.has_org_role(subject, "admin", "moderator"),
        ])
        return Verdict(Operation.DELETE, allowed)

    def _publish(self, subject, params) -> Verdict:
        _ref(params, "post", "post")
        return Verdict(Operation.PUBLISH, self.has_org_role(subject, "admin", "moderator"))

    def _transfer_ownership(self, subject, params) -> Verdict:
        post = _ref(params, "post", "post")
        new_owner = _ref(params, "new_owner", "user")
        with self.store.atomic():
            # Serializes concurrent transfers of the same post.
            locked = self.store.lock_object(post)
            current = [key for key in locked if key.relation == "owner"]
            allowed = self._first([
                lambda: any(key.subject == subject for key in current),
                lambda: self.has_org_role(subject, "admin"),
            ])
            if not allowed:
                return Verdict(Operation.TRANSFER_OWNERSHIP, False)
            if not self.has_org_role(new_owner, "editor"):
                raise ValidationError("New owner must hold the editor role.")
            if [key.subject for key in current] == [new_owner]:
                return Verdict(Operation.TRANSFER_OWNERSHIP, True)
            return self._effects(
                Operation.TRANSFER_OWNERSHIP,
                writes=[TupleKey(new_owner, "owner", post)],
                deletes=current,
            )

    def _grant_edit(self, subject, params) -> Verdict:
        post = _ref(params, "post", "post")
        target = _ref(params, "target", "user")
        if not self.has_org_role(subject, "admin"):
            return Verdict(Operation.GRANT_EDIT, False)
        if not self.has_org_role(target, "moderator"):
            raise ValidationError("Per-post edit can only be granted to moderators.")
        return self._effects(Operation.GRANT_EDIT, writes=[TupleKey(target, "granted_editor", post)])

    def _manage_role(self, subject, params) -> Verdict:
        target = _ref(params, "target", "user")
        role = _param(params, "role")
        action = _param(params, "action")
        if role not in ORG_ROLES:
            raise ValidationError(f"Invalid role: {role!r}")
        if action not in ROLE_ACTIONS:
            raise ValidationError(f"Invalid action: {action!r}")
        if not self.has_org_role(subject, "admin"):
            return Verdict(Operation.MANAGE_ROLE, False)
        key = TupleKey(target, role, self.org)
        if action == "grant":
            return self._effects(Operation.MANAGE_ROLE, writes=[key])
        return self._effects(Operation.MANAGE_ROLE, deletes=[key])


__all__ = [
    "ORG_ROLES",
    "CONTENT_STATUSES",
    "Operation",
    "TupleEffect",
    "Verdict",
    "PolicyOrchestrator",
]
