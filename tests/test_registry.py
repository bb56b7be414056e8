import dataclasses
import unittest

from lib.extraction.models import FieldRole, TrackRecord
from lib.extraction.registry import (
    SCORED_TRACK_FIELDS,
    TILE_REGISTRY,
    TRACK_EXPORT_FIELDS,
    TRACK_REGISTRY,
)


class RegistryTests(unittest.TestCase):
    def test_unknown_field_has_no_candidates(self):
        self.assertEqual(TRACK_REGISTRY.get_candidates("lyrics"), ())
        self.assertIsNone(TRACK_REGISTRY.get_field("lyrics"))

    def test_candidates_are_ordered_and_non_empty(self):
        for name in TRACK_REGISTRY.all_field_names():
            candidates = TRACK_REGISTRY.get_candidates(name)
            self.assertTrue(candidates, name)
            self.assertEqual(len(candidates), len(set(candidates)), name)
        self.assertEqual(TRACK_REGISTRY.get_candidates("title")[0], "@primary-text")

    def test_roles_match_field_names(self):
        for f in TRACK_REGISTRY.fields() + TILE_REGISTRY.fields():
            self.assertEqual(f.role, FieldRole(f.name))

    def test_export_schema_matches_record_and_registry(self):
        record_fields = [f.name for f in dataclasses.fields(TrackRecord)]
        self.assertEqual(list(TRACK_EXPORT_FIELDS), record_fields)
        self.assertTrue(TRACK_REGISTRY.all_field_names() <= set(TRACK_EXPORT_FIELDS))
        self.assertTrue(set(SCORED_TRACK_FIELDS) <= TRACK_REGISTRY.all_field_names())

    def test_all_field_names_is_immutable(self):
        self.assertIsInstance(TRACK_REGISTRY.all_field_names(), frozenset)


if __name__ == "__main__":
    unittest.main()
