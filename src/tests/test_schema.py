"""Tests for loading and validating authorization models."""

from __future__ import annotations

import copy
import json
import tempfile
from pathlib import Path

from django.test import SimpleTestCase, override_settings

from rebac.checks import authorization_model_is_valid
from rebac.engine import DEFAULT_MODEL_PATH, build_engine
from rebac.exceptions import SchemaError, ValidationError
from rebac.identifiers import ObjectRef, TupleKey
from rebac.schema import ComputedUserset, TupleToUserset, Union, load_schema, parse_schema


def _bundled_document() -> dict:
    return json.loads(Path(DEFAULT_MODEL_PATH).read_text(encoding="utf-8"))


def _minimal(relations: dict, metadata: dict | None = None) -> dict:
    doc = {
        "schema_version": "1.1",
        "type_definitions": [
            {"type": "user", "relations": {}},
            {"type": "doc", "relations": relations},
        ],
    }
    if metadata:
        doc["type_definitions"][1]["metadata"] = {"relations": metadata}
    return doc


class BundledModelTests(SimpleTestCase):
    def test_bundled_model_loads(self):
        schema = load_schema(DEFAULT_MODEL_PATH)

        self.assertEqual(set(schema.types), {"user", "org", "post"})
        self.assertTrue(schema.get_relation("org", "admin").is_direct)
        can_edit = schema.get_relation("post", "can_edit")
        self.assertFalse(can_edit.is_direct)
        self.assertIsInstance(can_edit.rewrite, Union)
        self.assertIn(ComputedUserset("owner"), can_edit.rewrite.children)
        self.assertIn(TupleToUserset("org", "moderator"), can_edit.rewrite.children)

    def test_digest_is_stable_and_round_trips(self):
        first = parse_schema(_bundled_document())
        second = parse_schema(first.to_dict())

        self.assertEqual(first.digest, parse_schema(_bundled_document()).digest)
        self.assertEqual(set(second.types), set(first.types))
        self.assertEqual(
            second.get_relation("post", "can_edit").rewrite,
            first.get_relation("post", "can_edit").rewrite,
        )

    def test_unknown_relation_lookup_is_validation_error(self):
        schema = load_schema(DEFAULT_MODEL_PATH)

        with self.assertRaises(ValidationError):
            schema.get_relation("post", "can_fly")
        with self.assertRaises(ValidationError):
            schema.get_relation("folder", "viewer")
        with self.assertRaises(ValidationError):
            schema.get_relation("post", "Bad-Name")

    def test_validate_tuple_rejects_computed_and_wrong_subject_type(self):
        schema = load_schema(DEFAULT_MODEL_PATH)
        user = ObjectRef("user", "1")
        post = ObjectRef("post", "1")

        schema.validate_tuple(user, "owner", post)
        with self.assertRaises(ValidationError):
            schema.validate_tuple(user, "can_edit", post)
        with self.assertRaises(ValidationError):
            schema.validate_tuple(ObjectRef("org", "blog"), "owner", post)
        key = TupleKey.of("org:blog", "org", "post:1")
        schema.validate_tuple(key.subject, key.relation, key.object)


class SchemaValidationTests(SimpleTestCase):
    """Every unresolved reference is a SchemaError at load time."""

    def test_undefined_computed_relation(self):
        doc = _minimal({"viewer": {"computed_userset": {"relation": "reader"}}})
        with self.assertRaisesMessage(SchemaError, "undefined relation 'reader'"):
            parse_schema(doc)

    def test_tupleset_must_be_direct(self):
        doc = _minimal(
            {
                "owner": {"this": {}},
                "alias": {"computed_userset": {"relation": "owner"}},
                "viewer": {
                    "tuple_to_userset": {
                        "tupleset": {"relation": "alias"},
                        "computed_userset": {"relation": "viewer"},
                    }
                },
            },
            {"owner": {"directly_related_user_types": [{"type": "user"}]}},
        )
        with self.assertRaises(SchemaError):
            parse_schema(doc)

    def test_traversal_target_must_define_relation(self):
        doc = _minimal(
            {
                "parent": {"this": {}},
                "viewer": {
                    "tuple_to_userset": {
                        "tupleset": {"relation": "parent"},
                        "computed_userset": {"relation": "viewer"},
                    }
                },
            },
            {"parent": {"directly_related_user_types": [{"type": "user"}]}},
        )
        with self.assertRaisesMessage(SchemaError, "'user' has no relation 'viewer'"):
            parse_schema(doc)

    def test_unknown_subject_type(self):
        doc = _minimal({"owner": {"this": {}}}, {"owner": {"directly_related_user_types": [{"type": "team"}]}})
        with self.assertRaises(SchemaError):
            parse_schema(doc)

    def test_unknown_tupleset_subject_type_behind_earlier_traversal(self):
        """The traversal is declared before the tupleset it walks."""
        doc = _minimal(
            {
                "can_view": {
                    "tuple_to_userset": {
                        "tupleset": {"relation": "parent"},
                        "computed_userset": {"relation": "viewer"},
                    }
                },
                "parent": {"this": {}},
            },
            {"parent": {"directly_related_user_types": [{"type": "ghost"}]}},
        )
        with self.assertRaisesMessage(SchemaError, "unknown subject type 'ghost'"):
            parse_schema(doc)

    def test_malformed_subject_type_metadata(self):
        doc = _minimal({"owner": {"this": {}}}, {"owner": {"directly_related_user_types": ["user"]}})
        with self.assertRaises(SchemaError):
            parse_schema(doc)

    def test_system_check_reports_unknown_tupleset_subject_type(self):
        doc = _minimal(
            {
                "can_view": {
                    "tuple_to_userset": {
                        "tupleset": {"relation": "parent"},
                        "computed_userset": {"relation": "viewer"},
                    }
                },
                "parent": {"this": {}},
            },
            {"parent": {"directly_related_user_types": [{"type": "ghost"}]}},
        )
        handle = tempfile.NamedTemporaryFile("w", suffix=".json", delete=False)
        with handle:
            json.dump(doc, handle)
        self.addCleanup(Path(handle.name).unlink)

        with override_settings(REBAC_MODEL_PATH=handle.name):
            errors = authorization_model_is_valid(None)

        self.assertEqual([e.id for e in errors], ["rebac.E001"])

    def test_direct_relation_needs_subject_types(self):
        with self.assertRaises(SchemaError):
            parse_schema(_minimal({"owner": {"this": {}}}))

    def test_unsupported_rewrite_and_version(self):
        with self.assertRaises(SchemaError):
            parse_schema(_minimal({"owner": {"intersection": {"child": []}}}))
        doc = _bundled_document()
        doc["schema_version"] = "2.0"
        with self.assertRaises(SchemaError):
            parse_schema(doc)

    def test_duplicate_type(self):
        doc = _bundled_document()
        doc["type_definitions"].append(copy.deepcopy(doc["type_definitions"][0]))
        with self.assertRaisesMessage(SchemaError, "defined twice"):
            parse_schema(doc)

    def test_cyclic_model_is_accepted_at_load(self):
        """Cycles are only detectable per check; loading them is not an error."""
        doc = _minimal(
            {
                "a": {"computed_userset": {"relation": "b"}},
                "b": {"computed_userset": {"relation": "a"}},
            }
        )
        self.assertIn("a", parse_schema(doc).types["doc"].relations)


class StartupValidationTests(SimpleTestCase):
    """An invalid model file stops the engine from being built."""

    def _write_model(self, document) -> str:
        handle = tempfile.NamedTemporaryFile("w", suffix=".json", delete=False)
        with handle:
            json.dump(document, handle)
        self.addCleanup(Path(handle.name).unlink)
        return handle.name

    def test_build_engine_fails_on_invalid_model(self):
        path = self._write_model(_minimal({"viewer": {"computed_userset": {"relation": "nope"}}}))
        with override_settings(REBAC_MODEL_PATH=path):
            with self.assertRaises(SchemaError):
                build_engine(use_installed=False)

    def test_build_engine_fails_on_unreadable_model(self):
        with override_settings(REBAC_MODEL_PATH="/nonexistent/model.json"):
            with self.assertRaises(SchemaError):
                build_engine(use_installed=False)

    def test_system_check_reports_invalid_model(self):
        path = self._write_model(_minimal({"viewer": {"computed_userset": {"relation": "nope"}}}))
        with override_settings(REBAC_MODEL_PATH=path):
            errors = authorization_model_is_valid(None)

        self.assertEqual([e.id for e in errors], ["rebac.E001"])

    def test_system_check_reports_missing_policy_relations(self):
        doc = _bundled_document()
        doc["type_definitions"] = [t for t in doc["type_definitions"] if t["type"] != "post"]
        with override_settings(REBAC_MODEL_PATH=self._write_model(doc)):
            errors = authorization_model_is_valid(None)

        self.assertEqual([e.id for e in errors], ["rebac.E002"])

    def test_system_check_passes_for_bundled_model(self):
        self.assertEqual(authorization_model_is_valid(None), [])
