"""Unit tests for the application directory."""

import pytest

from polarity_swimlane.directory import AppDirectory
from polarity_swimlane.errors import ConfigurationError


@pytest.fixture
def directory(sample_apps) -> AppDirectory:
    directory = AppDirectory()
    directory.begin_rebuild("https://swimlane.test")
    directory.load(sample_apps)
    directory.finish_rebuild(True)
    return directory


class TestDirectoryLoad:
    """Tests for populating the directory from /api/app."""

    def test_every_field_name_resolves(self, directory, sample_apps):
        for app in sample_apps:
            for raw_field in app["fields"]:
                assert directory.get_field_name(app["id"], raw_field["id"]) == raw_field["name"]

    @pytest.mark.parametrize("name", ["Incidents", "incidents", "INCIDENTS", "  InCiDeNtS "])
    def test_app_name_lookup_is_case_insensitive(self, directory, name):
        assert directory.get_app_id(name) == "a1"

    def test_app_metadata(self, directory):
        app = directory.get_app("a2")
        assert app.name == "Phishing Triage"
        assert app.acronym == "PHI"

    def test_layout_path_attached_to_field(self, directory):
        path = directory.get_layout_path("a1", "f2")
        assert [node.name for node in path] == ["Details", "Analysis", "Summary"]

    def test_field_reverse_lookup(self, directory):
        assert directory.find_field_id("a1", "source ip") == "f3"
        assert directory.find_field_id("a1", "missing") is None

    def test_misses_return_none(self, directory):
        assert directory.get_app("nope") is None
        assert directory.get_field("a1", "deleted") is None
        assert directory.get_field_name("nope", "f1") is None
        assert directory.get_layout_path("a1", "deleted") is None

    def test_field_without_layout_placement(self):
        directory = AppDirectory()
        directory.load([{"id": "a", "name": "A", "fields": [{"id": "x", "name": "X"}], "layout": []}])
        field = directory.get_field("a", "x")
        assert field.field_name == "X"
        assert field.layout_path is None

    def test_app_names_sorted(self, directory):
        assert directory.app_names == ["Incidents", "Phishing Triage"]
        assert directory.field_count == 4


class TestResolveAppIds:
    """Tests for mapping configured application names to ids."""

    def test_resolves_in_order(self, directory):
        assert directory.resolve_app_ids(["phishing triage", "Incidents"]) == ["a2", "a1"]

    def test_unknown_name_lists_known_apps(self, directory):
        with pytest.raises(ConfigurationError) as exc_info:
            directory.resolve_app_ids(["Incidents", "Vulnerabilities"])

        message = exc_info.value.detail
        assert "[Vulnerabilities]" in message
        assert "Incidents, Phishing Triage" in message

    def test_empty_list_rejected(self, directory):
        with pytest.raises(ConfigurationError, match="valid application name"):
            directory.resolve_app_ids([])


class TestRebuildLifecycle:
    """Tests for reload triggers and rebuild flags."""

    def test_needs_reload(self, directory):
        assert not directory.needs_reload("https://swimlane.test")
        assert directory.needs_reload("https://other.test")

    def test_fresh_directory_needs_reload(self):
        assert AppDirectory().needs_reload("https://swimlane.test")

    def test_failed_rebuild_needs_reload(self, directory):
        directory.begin_rebuild("https://swimlane.test")
        directory.finish_rebuild(False)

        assert directory.caching_failed
        assert directory.needs_reload("https://swimlane.test")

    def test_begin_rebuild_clears_state(self, directory):
        generation = directory.generation
        assert directory.begin_rebuild("https://other.test") == generation + 1

        assert directory.is_caching
        assert directory.apps == []
        assert directory.get_app_id("Incidents") is None
        assert directory.get_field("a1", "f1") is None
        assert directory.find_field_id("a1", "notes") is None
