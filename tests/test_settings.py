"""Tests for settings.py - environment settings and YAML collection profiles."""

from __future__ import annotations

import pytest

from typesense_search.domain.entities.multi_collection import CollectionSearchConfig
from typesense_search.shared.exceptions import ConfigurationError
from typesense_search.shared.settings import SearchDefaults, TypesenseSettings, load_collection_configs


class TestTypesenseSettings:
    """TypesenseSettings validation and environment loading."""

    def test_defaults(self):
        s = TypesenseSettings(api_key="k")
        assert s.base_url == "http://localhost:8108"
        assert s.connection_timeout_seconds == 10.0
        assert s.num_retries == 3
        assert s.retry_interval_seconds == 0.1

    def test_base_url_with_path(self):
        s = TypesenseSettings(api_key="k", host="ts.example.com", port=443, protocol="https", path="/typesense/")
        assert s.base_url == "https://ts.example.com:443/typesense"

    def test_string_port_coerced(self):
        assert TypesenseSettings(api_key="k", port="9000").port == 9000  # type: ignore[arg-type]

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError):
            TypesenseSettings(api_key="k", port="abc")  # type: ignore[arg-type]

    def test_missing_api_key(self):
        with pytest.raises(ConfigurationError):
            TypesenseSettings(api_key="")

    def test_invalid_protocol(self):
        with pytest.raises(ConfigurationError):
            TypesenseSettings(api_key="k", protocol="ftp")

    def test_negative_retries(self):
        with pytest.raises(ConfigurationError):
            TypesenseSettings(api_key="k", num_retries=-1)

    def test_from_env(self, clean_env):
        clean_env.setenv("TYPESENSE_API_KEY", "env-key")
        clean_env.setenv("TYPESENSE_HOST", "search.local")
        clean_env.setenv("TYPESENSE_PORT", "9108")
        clean_env.setenv("TYPESENSE_TIMEOUT", "2.5")
        clean_env.setenv("TYPESENSE_NUM_RETRIES", "5")
        s = TypesenseSettings.from_env()
        assert s.api_key == "env-key"
        assert s.host == "search.local"
        assert s.port == 9108
        assert s.connection_timeout_seconds == 2.5
        assert s.num_retries == 5

    def test_from_env_overrides_win(self, clean_env):
        clean_env.setenv("TYPESENSE_API_KEY", "env-key")
        s = TypesenseSettings.from_env(api_key="explicit", host=None)
        assert s.api_key == "explicit"
        assert s.host == "localhost"

    def test_from_env_bad_number(self, clean_env):
        clean_env.setenv("TYPESENSE_API_KEY", "k")
        clean_env.setenv("TYPESENSE_PORT", "eighty")
        with pytest.raises(ConfigurationError, match="TYPESENSE_PORT"):
            TypesenseSettings.from_env()

    def test_from_env_missing_key(self, clean_env):
        with pytest.raises(ConfigurationError):
            TypesenseSettings.from_env()


class TestSearchDefaults:
    """SearchDefaults environment loading."""

    def test_defaults(self, clean_env):
        d = SearchDefaults.from_env()
        assert d.per_page == 20
        assert d.max_facet_values == 10000
        assert d.enable_disjunctive_facet_queries is True

    def test_disable_disjunctive_toggle(self, clean_env):
        clean_env.setenv("TYPESENSE_DISJUNCTIVE_FACETS", "false")
        assert SearchDefaults.from_env().enable_disjunctive_facet_queries is False

    def test_enable_disjunctive_toggle(self, clean_env):
        clean_env.setenv("TYPESENSE_DISJUNCTIVE_FACETS", "yes")
        assert SearchDefaults.from_env().enable_disjunctive_facet_queries is True

    def test_per_page(self, clean_env):
        clean_env.setenv("TYPESENSE_PER_PAGE", "48")
        assert SearchDefaults.from_env().per_page == 48


class TestLoadCollectionConfigs:
    """YAML collection profiles."""

    def test_load_mapping_form(self, tmp_path):
        path = tmp_path / "collections.yaml"
        path.write_text(
            "collections:\n"
            "  - collection: products\n"
            "    weight: 2.0\n"
            "    query_by: name,description\n"
            "    max_results: 10\n"
            "  - collection: categories\n"
            "    query_by: name\n",
            encoding="utf-8",
        )
        configs = load_collection_configs(path)
        assert configs == [
            CollectionSearchConfig("products", query_by="name,description", weight=2.0, max_results=10),
            CollectionSearchConfig("categories", query_by="name"),
        ]

    def test_load_list_form(self, tmp_path):
        path = tmp_path / "collections.yaml"
        path.write_text("- collection: brands\n  namespace: catalog\n", encoding="utf-8")
        configs = load_collection_configs(path)
        assert configs[0].collection == "brands"
        assert configs[0].namespace == "catalog"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            load_collection_configs(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("collections: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_collection_configs(path)

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("collections: products\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="expected a list"):
            load_collection_configs(path)

    def test_entry_without_collection(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- weight: 1.0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="entry 0"):
            load_collection_configs(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- collection: products\n  boost: 3\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_collection_configs(path)

    def test_negative_weight(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- collection: products\n  weight: -1\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_collection_configs(path)
