"""Tests for placement lookup in the category tree."""

import json

import pytest

from flyer.errors import HierarchyNotFoundError, InvalidDocumentError
from flyer.hierarchy import build_path_index, iter_placements, load_template, locate, path_key
from flyer.models import FlyerDocument


def _doc(data):
    return FlyerDocument.from_json(data)


class TestLocate:
    """Tests for locate()."""

    def test_finds_placement_indices(self, template):
        ref = locate(template, "Mliečne výrobky", "Syry", "Mäkké syry")
        assert (ref.category_index, ref.subcategory_index, ref.placement_index) == (1, 1, 1)
        assert ref.node(template).name == "Mäkké syry"

    def test_missing_category(self, template):
        with pytest.raises(HierarchyNotFoundError) as exc:
            locate(template, "Mäso", "Chlieb", "Rozne druhy")
        assert exc.value.level == "category"
        assert exc.value.kind == "category_not_found"

    def test_missing_subcategory(self, template):
        with pytest.raises(HierarchyNotFoundError) as exc:
            locate(template, "Pekáreň", "Syry", "Rozne druhy")
        assert exc.value.level == "subcategory"

    def test_missing_placement(self, template):
        with pytest.raises(HierarchyNotFoundError) as exc:
            locate(template, "Pekáreň", "Chlieb", "Tvrdé syry")
        assert exc.value.kind == "placement_not_found"

    def test_exact_match_only(self, template):
        """Tree navigation is not normalized: case and diacritics must match."""
        with pytest.raises(HierarchyNotFoundError):
            locate(template, "pekáreň", "Chlieb", "Rozne druhy")
        with pytest.raises(HierarchyNotFoundError):
            locate(template, "Pekaren", "Chlieb", "Rozne druhy")

    def test_blank_keys_fail_at_category(self, template):
        with pytest.raises(HierarchyNotFoundError) as exc:
            locate(template, "", "", "")
        assert exc.value.level == "category"

    def test_first_duplicate_sibling_wins(self):
        doc = _doc([
            {"Kategória": "A", "Podkategórie": [{"Podkategória": "S", "Zaradenia": [{"Zaradenie": "P"}]}]},
            {"Kategória": "A", "Podkategórie": [{"Podkategória": "S", "Zaradenia": [{"Zaradenie": "Q"}]}]},
        ])
        assert locate(doc, "A", "S", "P").category_index == 0
        # Only the first "A" is searched, so "Q" is not found
        with pytest.raises(HierarchyNotFoundError) as exc:
            locate(doc, "A", "S", "Q")
        assert exc.value.level == "placement"


class TestPathIndex:
    def test_path_key(self):
        assert path_key("a", "b", "c") == "a||b||c"

    def test_index_covers_all_placements(self, template):
        index = build_path_index(template)
        assert len(index) == len(list(iter_placements(template)))
        assert index["Pekáreň||Chlieb||Rozne druhy"].placement_index == 0

    def test_index_keeps_first_occurrence(self):
        doc = _doc([
            {"Kategória": "A", "Podkategórie": [{"Podkategória": "S", "Zaradenia": [{"Zaradenie": "P"}, {"Zaradenie": "P"}]}]},
        ])
        assert build_path_index(doc)["A||S||P"].placement_index == 0


class TestLoadTemplate:
    def test_products_are_emptied(self, tmp_path):
        path = tmp_path / "hierarchy.json"
        path.write_text(json.dumps([
            {"Kategória": "A", "Podkategórie": [{"Podkategória": "S", "Zaradenia": [
                {"Zaradenie": "P", "Produkty": [{"Názov": "x"}]},
            ]}]},
        ]), encoding="utf-8")
        template = load_template(path)
        assert template.product_count() == 0

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "hierarchy.json"
        path.write_text("[", encoding="utf-8")
        with pytest.raises(InvalidDocumentError):
            load_template(path)

    def test_packaged_template_loads(self, template):
        assert [c.name for c in template.categories] == ["Pekáreň", "Mliečne výrobky", "Nápoje"]
