"""Evaluator tests: direct, computed, traversal, cycles and depth bounds."""

from __future__ import annotations

from unittest import mock

from django.db import OperationalError
from django.test import TestCase

from rebac.engine import DEFAULT_MODEL_PATH
from rebac.evaluator import Evaluator
from rebac.exceptions import StoreUnavailable, ValidationError
from rebac.identifiers import ObjectRef, TupleKey
from rebac.schema import load_schema, parse_schema
from rebac.store import TupleStore

ADMIN = ObjectRef("user", "admin")
OWNER = ObjectRef("user", "owner")
MODERATOR = ObjectRef("user", "mod")
EDITOR = ObjectRef("user", "editor")
STRANGER = ObjectRef("user", "stranger")
ORG = ObjectRef("org", "blog")
POST = ObjectRef("post", "1")
OTHER_POST = ObjectRef("post", "2")

FOLDER_MODEL = {
    "schema_version": "1.1",
    "type_definitions": [
        {"type": "user", "relations": {}},
        {
            "type": "folder",
            "relations": {
                "parent": {"this": {}},
                "viewer": {
                    "union": {
                        "child": [
                            {"this": {}},
                            {
                                "tuple_to_userset": {
                                    "tupleset": {"relation": "parent"},
                                    "computed_userset": {"relation": "viewer"},
                                }
                            },
                        ]
                    }
                },
            },
            "metadata": {
                "relations": {
                    "parent": {"directly_related_user_types": [{"type": "folder"}]},
                    "viewer": {"directly_related_user_types": [{"type": "user"}]},
                }
            },
        },
    ],
}

CYCLIC_MODEL = {
    "schema_version": "1.1",
    "type_definitions": [
        {"type": "user", "relations": {}},
        {
            "type": "doc",
            "relations": {
                "a": {"computed_userset": {"relation": "b"}},
                "b": {"computed_userset": {"relation": "a"}},
            },
        },
    ],
}


class BlogModelEvaluationTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        store = TupleStore()
        store.write(
            [
                TupleKey(ADMIN, "admin", ORG),
                TupleKey(MODERATOR, "moderator", ORG),
                TupleKey(EDITOR, "editor", ORG),
                TupleKey(OWNER, "owner", POST),
                TupleKey(ORG, "org", POST),
                TupleKey(ORG, "org", OTHER_POST),
                TupleKey(EDITOR, "granted_editor", OTHER_POST),
            ]
        )

    def setUp(self):
        self.evaluator = Evaluator(load_schema(DEFAULT_MODEL_PATH), TupleStore())

    def test_direct_relation_requires_exact_tuple(self):
        self.assertTrue(self.evaluator.check(OWNER, "owner", POST))
        self.assertFalse(self.evaluator.check(OWNER, "owner", OTHER_POST))
        self.assertFalse(self.evaluator.check(ADMIN, "owner", POST))

    def test_can_edit_union(self):
        self.assertTrue(self.evaluator.check(OWNER, "can_edit", POST))
        self.assertTrue(self.evaluator.check(ADMIN, "can_edit", POST))
        self.assertTrue(self.evaluator.check(MODERATOR, "can_edit", POST))
        self.assertFalse(self.evaluator.check(EDITOR, "can_edit", POST))
        self.assertFalse(self.evaluator.check(STRANGER, "can_edit", POST))

    def test_granted_editor_is_scoped_to_one_post(self):
        self.assertTrue(self.evaluator.check(EDITOR, "can_edit", OTHER_POST))
        self.assertFalse(self.evaluator.check(EDITOR, "can_edit", POST))

    def test_admin_can_edit_every_post_regardless_of_owner(self):
        for post in (POST, OTHER_POST):
            with self.subTest(post=str(post)):
                self.assertTrue(self.evaluator.check(ADMIN, "can_edit", post))

    def test_accepts_string_references(self):
        self.assertTrue(self.evaluator.check("user:owner", "can_edit", "post:1"))

    def test_malformed_input_is_validation_error(self):
        for args in (
            ("user", "can_edit", "post:1"),
            ("user:owner", "can_edit", "post:"),
            ("user:owner", "can_fly", "post:1"),
            ("user:owner", "can_edit", "page:1"),
        ):
            with self.subTest(args=args):
                with self.assertRaises(ValidationError):
                    self.evaluator.check(*args)

    def test_store_outage_is_not_a_deny(self):
        with mock.patch.object(TupleStore, "_queryset", side_effect=OperationalError("timeout")):
            with self.assertRaises(StoreUnavailable):
                self.evaluator.check(OWNER, "can_edit", POST)


class TraversalAndCycleTests(TestCase):
    def _chain(self, length: int) -> list[ObjectRef]:
        folders = [ObjectRef("folder", f"f{i}") for i in range(length)]
        store = TupleStore()
        store.write([TupleKey(parent, "parent", child) for parent, child in zip(folders, folders[1:])])
        store.write([TupleKey(ADMIN, "viewer", folders[0])])
        return folders

    def test_viewer_inherited_through_parents(self):
        folders = self._chain(4)
        evaluator = Evaluator(parse_schema(FOLDER_MODEL), TupleStore())

        self.assertTrue(evaluator.check(ADMIN, "viewer", folders[-1]))
        self.assertFalse(evaluator.check(STRANGER, "viewer", folders[-1]))

    def test_depth_limit_denies_with_warning(self):
        folders = self._chain(8)
        evaluator = Evaluator(parse_schema(FOLDER_MODEL), TupleStore(), max_depth=3)

        with self.assertLogs("rebac.evaluator", level="WARNING") as logs:
            self.assertFalse(evaluator.check(ADMIN, "viewer", folders[-1]))
        self.assertTrue(any("depth" in line for line in logs.output))

    def test_parent_cycle_in_data_terminates(self):
        a, b = ObjectRef("folder", "a"), ObjectRef("folder", "b")
        TupleStore().write([TupleKey(a, "parent", b), TupleKey(b, "parent", a)])
        evaluator = Evaluator(parse_schema(FOLDER_MODEL), TupleStore())

        with self.assertLogs("rebac.evaluator", level="WARNING"):
            self.assertFalse(evaluator.check(ADMIN, "viewer", a))

    def test_schema_cycle_is_deny_not_infinite_loop(self):
        evaluator = Evaluator(parse_schema(CYCLIC_MODEL), TupleStore())

        with self.assertLogs("rebac.evaluator", level="WARNING") as logs:
            self.assertFalse(evaluator.check(ADMIN, "a", ObjectRef("doc", "1")))
        self.assertTrue(any("Cycle" in line for line in logs.output))

    def test_install_keeps_tuples(self):
        folders = self._chain(2)
        evaluator = Evaluator(parse_schema(CYCLIC_MODEL), TupleStore())

        evaluator.install(parse_schema(FOLDER_MODEL))

        self.assertTrue(evaluator.check(ADMIN, "viewer", folders[1]))
