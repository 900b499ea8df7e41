from __future__ import annotations

import unittest

from app.domain.survey import CanonicalField
from app.mappers.column_normalizer import (
    COLUMN_SYNONYMS,
    canonical_headers,
    ensure_branch_column,
    has_rating_field,
    normalize_column_name,
    normalize_rows,
)


class TestNormalizeColumnName(unittest.TestCase):
    def test_french_headers_map_to_canonical_names(self) -> None:
        self.assertEqual(normalize_column_name("Agence"), "Branch")
        self.assertEqual(normalize_column_name("Raisons du score"), "Reasons Of Score")

    def test_lookup_ignores_case_and_surrounding_whitespace(self) -> None:
        self.assertEqual(normalize_column_name("  BRANCH NAME "), "Branch")
        self.assertEqual(normalize_column_name("EMAIL"), "Email")
        self.assertEqual(normalize_column_name("as"), "AS")

    def test_every_synonym_is_case_insensitive(self) -> None:
        for synonym, _ in COLUMN_SYNONYMS:
            with self.subTest(synonym=synonym):
                expected = normalize_column_name(synonym)
                self.assertEqual(normalize_column_name(synonym.upper()), expected)
                self.assertEqual(normalize_column_name(f"  {synonym.title()} "), expected)

    def test_canonical_names_map_to_themselves(self) -> None:
        for field in CanonicalField:
            self.assertEqual(normalize_column_name(field.value), field.value)

    def test_partial_match_uses_first_synonym_in_table_order(self) -> None:
        # "id" precedes every branch synonym in the table.
        self.assertEqual(normalize_column_name("Location ID"), "Case #")

    def test_unknown_header_is_returned_unchanged(self) -> None:
        self.assertEqual(normalize_column_name("Foo Bar"), "Foo Bar")

    def test_canonical_headers_maps_a_header_row(self) -> None:
        mapping = canonical_headers(["Agence", "Satisfaction", "Foo Bar"])
        self.assertEqual(
            mapping,
            {
                "Agence": "Branch",
                "Satisfaction": CanonicalField.SATISFACTION_RATING.value,
                "Foo Bar": "Foo Bar",
            },
        )


class TestNormalizeRows(unittest.TestCase):
    def test_rows_are_rekeyed(self) -> None:
        rows = normalize_rows([{"Agence": "Accra", "Satisfaction": 4, "Foo Bar": "x"}])

        self.assertEqual(
            rows,
            [
                {
                    "Branch": "Accra",
                    CanonicalField.SATISFACTION_RATING.value: 4,
                    "Foo Bar": "x",
                }
            ],
        )

    def test_later_column_wins_on_collision(self) -> None:
        rows = normalize_rows([{"Branch": "A", "Agence": "B"}])
        self.assertEqual(rows, [{"Branch": "B"}])

    def test_input_rows_are_not_mutated(self) -> None:
        raw = [{"Agence": "Accra"}]
        normalize_rows(raw)
        self.assertEqual(raw, [{"Agence": "Accra"}])


class TestEnsureBranchColumn(unittest.TestCase):
    def test_fills_branch_from_likely_raw_column(self) -> None:
        raw = [{"Location ID": "Accra"}, {"Location ID": "Lome"}]
        normalized = normalize_rows(raw)
        self.assertNotIn("Branch", normalized[0])

        used = ensure_branch_column(raw, normalized)

        self.assertEqual(used, "Location ID")
        self.assertEqual([row["Branch"] for row in normalized], ["Accra", "Lome"])

    def test_noop_when_branch_already_present(self) -> None:
        raw = [{"Branch": "Accra"}]
        normalized = normalize_rows(raw)
        self.assertIsNone(ensure_branch_column(raw, normalized))

    def test_noop_without_candidate_column(self) -> None:
        raw = [{"Foo Bar": 1}]
        normalized = normalize_rows(raw)
        self.assertIsNone(ensure_branch_column(raw, normalized))
        self.assertNotIn("Branch", normalized[0])


class TestHasRatingField(unittest.TestCase):
    def test_detects_rating_columns(self) -> None:
        self.assertTrue(has_rating_field({CanonicalField.SATISFACTION_RATING.value: 4}))
        self.assertTrue(has_rating_field({"AS": 9}))
        self.assertTrue(has_rating_field({"Overall NPS": 9}))
        self.assertFalse(has_rating_field({"Branch": "Accra"}))


if __name__ == "__main__":
    unittest.main()
