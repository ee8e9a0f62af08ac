"""
End-to-end tests: load a library file, validate it, query it.

Covers:
    - the four-record sample library (one asymmetric grant warning)
    - a typo in a trait reference (one reference error)
    - fixing the back-link clears the warning
    - queries over a loaded library
"""

import json

from grpg_library.loader import load_library
from grpg_library.report import FindingKind, Severity


def _write(tmp_path, document, name="library.json"):
    path = tmp_path / name
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


class TestSampleLibrary:
    """The Tettari / Warden / Survivor / Mark Prey library."""

    def test_single_asymmetric_grant_warning(self, library_file):
        library = load_library(library_file)
        report = library.validate()

        assert report.errors == []
        assert len(report.warnings) == 1
        (warning,) = report.warnings
        assert warning.kind == FindingKind.CONSISTENCY_WARNING
        assert warning.severity == Severity.WARNING
        assert warning.record_id == "ability-mark-prey"
        assert warning.field == "grantedBy"
        assert report.passed

    def test_listing_the_ability_clears_the_warning(self, tmp_path, library_document):
        warden = library_document["classes"]["class-warden"]
        warden["mechanics"]["startingAbilities"] = ["ability-mark-prey"]
        report = load_library(_write(tmp_path, library_document)).validate()
        assert list(report) == []

    def test_misspelled_trait_reference(self, tmp_path, library_document):
        race = library_document["races"]["race-tettari"]
        race["mechanics"]["innateTraits"] = ["trait-tettari-survivr"]
        report = load_library(_write(tmp_path, library_document)).validate()

        refs = report.of_kind(FindingKind.REFERENCE_ERROR)
        assert len(refs) == 1
        (finding,) = refs
        assert finding.record_id == "race-tettari"
        assert finding.field == "mechanics.innateTraits"
        assert finding.referenced_id == "trait-tettari-survivr"
        # The now-unreferenced trait is not itself a defect.
        assert report.for_record("trait-tettari-survivor") == []
        assert len(report.errors) == 1

    def test_validation_is_repeatable(self, library_file):
        library = load_library(library_file)
        assert library.validate() == library.validate()


class TestLoadedQueries:
    """Queries over a library loaded from disk."""

    def test_lookup_and_filters(self, library_file):
        query = load_library(library_file).query()
        assert query.by_id("races", "race-tettari")["name"] == "Tettari"
        assert query.by_tag("role:martial").ids() == ["class-warden", "ability-mark-prey"]
        assert query.by_category_and_tag("abilities", "role:martial").ids() == [
            "ability-mark-prey",
        ]

    def test_graph_over_loaded_library(self, library_file):
        query = load_library(library_file).query()
        assert [r["id"] for r in query.references("race-tettari")] == ["trait-tettari-survivor"]
        assert query.referenced_by("class-warden") == [
            {"id": "ability-mark-prey", "field": "grantedBy.id", "category": "abilities"},
        ]

    def test_store_is_sealed_after_load(self, library_file):
        library = load_library(library_file)
        assert library.store.sealed
