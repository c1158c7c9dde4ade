# tests/test_catalog.py
"""
Catalog ingestion, index, and source tests.

Tests for:
- Payload validation at the ingestion boundary (aliases, bad rows skipped)
- CatalogIndex.load success / CatalogUnavailable
- find_brands_with_variant
- Stub, lab API, and Supabase sources
- Provider selection from CATALOG_PROVIDER

Run with: pytest tests/test_catalog.py -v
"""

import json
import os
from unittest.mock import MagicMock, patch

import pytest

from caseconfig.catalog.models import CatalogBrand, CatalogVariant, ShadeFamily, parse_brands
from caseconfig.catalog.index import CatalogIndex, CatalogUnavailable
from caseconfig.catalog.source import (
    HttpCatalogSource,
    LabIdMissing,
    StubCatalogSource,
    SupabaseCatalogSource,
    get_catalog_source,
)
from caseconfig.configuration.models import CallerContext


# ============================================================
# Ingestion
# ============================================================

class TestIngestion:

    def test_lab_api_keys_are_accepted(self, teeth_rows):
        brands = parse_brands(teeth_rows)

        assert [b.id for b in brands] == [7, 8, 9]
        assert brands[0].system_name == "VITA"
        assert [v.name for v in brands[0].variants] == ["A1", "A2"]
        assert isinstance(brands[0].variants[0], CatalogVariant)

    def test_python_field_names_are_accepted(self):
        brand = CatalogBrand(id=1, name="X", variants=[{"id": 2, "name": "Y"}])

        assert brand.variants[0].id == 2

    def test_invalid_brand_rows_are_skipped(self):
        rows = [
            {"id": 1, "name": "Good"},
            {"name": "missing id"},
            "not a dict",
            {"id": 3, "name": ""},
        ]

        brands = parse_brands(rows)

        assert [b.id for b in brands] == [1]

    def test_invalid_variant_rows_are_skipped(self):
        brand = CatalogBrand.model_validate({
            "id": 1,
            "name": "Brand",
            "shades": [{"id": 1, "name": "ok"}, {"id": "x", "name": "bad id"}, {"name": "no id"}],
        })

        assert [v.id for v in brand.variants] == [1]

    def test_null_shades_mean_no_variants(self):
        brand = CatalogBrand.model_validate({"id": 1, "name": "Brand", "shades": None})

        assert brand.variants == ()

    def test_models_are_frozen(self, teeth_rows):
        brand = parse_brands(teeth_rows)[0]

        with pytest.raises(Exception):
            brand.name = "renamed"

    def test_variant_matching(self):
        variant = CatalogVariant(id=42, name="A1")

        assert variant.matches("A1")
        assert variant.matches("42")
        assert variant.matches(42)
        assert not variant.matches("a1")
        assert not variant.matches(None)


# ============================================================
# Index
# ============================================================

class TestCatalogIndex:

    def test_load_validates_rows(self, stub_source):
        index = CatalogIndex.load(stub_source, 1, ShadeFamily.TEETH)

        assert len(index) == 3
        assert index.subject_id == 1
        assert index.family is ShadeFamily.TEETH

    def test_load_wraps_source_errors(self):
        source = MagicMock()
        source.fetch_catalog.side_effect = ConnectionError("lab API down")

        with pytest.raises(CatalogUnavailable) as exc:
            CatalogIndex.load(source, 5, ShadeFamily.GUM)

        assert exc.value.subject_id == 5
        assert exc.value.family is ShadeFamily.GUM
        assert "lab API down" in str(exc.value)

    def test_load_rejects_non_list_payload(self):
        source = MagicMock()
        source.fetch_catalog.return_value = None

        with pytest.raises(CatalogUnavailable):
            CatalogIndex.load(source, 5, ShadeFamily.TEETH)

    def test_find_brands_with_variant(self, teeth_index):
        assert [b.id for b in teeth_index.find_brands_with_variant("A1")] == [7, 9]
        assert [b.id for b in teeth_index.find_brands_with_variant("50")] == [8]
        assert teeth_index.find_brands_with_variant("Z9") == []

    def test_brand_by_id(self, teeth_index):
        assert teeth_index.brand_by_id(8).name == "VITA 3D-Master"
        assert teeth_index.brand_by_id(999) is None
        assert teeth_index.brand_by_id(None) is None

    def test_empty_index(self):
        index = CatalogIndex.empty(3, ShadeFamily.TEETH)

        assert len(index) == 0
        assert index.find_brands_with_variant("A1") == []


# ============================================================
# Sources
# ============================================================

class TestStubCatalogSource:

    def test_subject_specific_rows_win_over_shared(self, teeth_rows):
        source = StubCatalogSource({(None, ShadeFamily.TEETH): teeth_rows})
        source.set_catalog(4, ShadeFamily.TEETH, [{"id": 1, "name": "Only"}])

        assert source.fetch_catalog(4, ShadeFamily.TEETH) == [{"id": 1, "name": "Only"}]
        assert len(source.fetch_catalog(5, ShadeFamily.TEETH)) == 3
        assert source.fetch_catalog(5, ShadeFamily.GUM) == []

    def test_from_json_file(self, tmp_path, teeth_rows, gum_rows):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({
            "teeth-shade": teeth_rows,
            "12": {"gum-shade": gum_rows},
        }), encoding="utf-8")

        source = StubCatalogSource.from_json_file(str(path))

        assert len(source.fetch_catalog(1, ShadeFamily.TEETH)) == 3
        assert len(source.fetch_catalog(12, ShadeFamily.GUM)) == 2
        assert source.fetch_catalog(1, ShadeFamily.GUM) == []


class TestHttpCatalogSource:

    @patch("caseconfig.catalog.source.httpx.get")
    def test_fetches_lab_scoped_endpoint(self, mock_get, teeth_rows):
        response = MagicMock()
        response.json.return_value = {"success": True, "message": "ok", "data": teeth_rows}
        mock_get.return_value = response
        ctx = CallerContext(role="lab_admin", tenant_id="77")

        rows = HttpCatalogSource(base_url="https://lab.test", timeout=3).fetch_catalog(
            12, ShadeFamily.TEETH, ctx
        )

        assert rows == teeth_rows
        url = mock_get.call_args[0][0]
        assert url == "https://lab.test/slip/lab/77/products/12/teeth-shades"
        assert mock_get.call_args[1]["timeout"] == 3
        response.raise_for_status.assert_called_once()

    @patch("caseconfig.catalog.source.httpx.get")
    def test_gum_shades_path(self, mock_get):
        response = MagicMock()
        response.json.return_value = {"data": []}
        mock_get.return_value = response
        ctx = CallerContext(role="doctor", selected_lab_id="5")

        HttpCatalogSource(base_url="https://lab.test").fetch_catalog(3, ShadeFamily.GUM, ctx)

        assert mock_get.call_args[0][0].endswith("/slip/lab/5/products/3/gum-shades")

    def test_missing_lab_id_raises(self):
        source = HttpCatalogSource(base_url="https://lab.test")

        with pytest.raises(LabIdMissing):
            source.fetch_catalog(1, ShadeFamily.TEETH, CallerContext(role="office_admin", tenant_id="9"))

    @patch("caseconfig.catalog.source.httpx.get")
    def test_missing_data_list_is_unavailable(self, mock_get):
        response = MagicMock()
        response.json.return_value = {"success": False, "message": "nope", "data": None}
        mock_get.return_value = response
        source = HttpCatalogSource(base_url="https://lab.test")

        with pytest.raises(CatalogUnavailable):
            CatalogIndex.load(source, 1, ShadeFamily.TEETH, CallerContext(tenant_id="1"))


class TestSupabaseCatalogSource:

    @patch("caseconfig.catalog.source.get_supabase_client")
    def test_queries_brand_table_with_embedded_shades(self, mock_get_client, gum_rows):
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client
        query = mock_client.table.return_value.select.return_value.eq.return_value
        query.eq.return_value.execute.return_value.data = gum_rows

        rows = SupabaseCatalogSource().fetch_catalog(3, ShadeFamily.GUM, CallerContext(tenant_id="77"))

        assert rows == gum_rows
        mock_client.table.assert_called_once_with("gum_shade_brands")
        select_arg = mock_client.table.return_value.select.call_args[0][0]
        assert "shades:gum_shades" in select_arg
        query.eq.assert_called_once_with("lab_id", "77")

    @patch("caseconfig.catalog.source.get_supabase_client", return_value=None)
    def test_no_client_is_unavailable(self, _):
        with pytest.raises(CatalogUnavailable):
            CatalogIndex.load(SupabaseCatalogSource(), 1, ShadeFamily.TEETH)


class TestProviderSelection:

    def test_default_is_stub(self):
        with patch.dict(os.environ, {"CATALOG_PROVIDER": "", "CATALOG_STUB_PATH": ""}):
            assert get_catalog_source().get_provider_name() == "stub"

    def test_http_provider(self):
        with patch.dict(os.environ, {"CATALOG_PROVIDER": "http", "LAB_API_BASE_URL": "https://lab.test"}):
            assert isinstance(get_catalog_source(), HttpCatalogSource)

    def test_supabase_provider(self):
        with patch.dict(os.environ, {"CATALOG_PROVIDER": "supabase"}):
            assert isinstance(get_catalog_source(), SupabaseCatalogSource)

    def test_unknown_provider_falls_back_to_stub(self):
        with patch.dict(os.environ, {"CATALOG_PROVIDER": "carrier-pigeon", "CATALOG_STUB_PATH": ""}):
            assert get_catalog_source().get_provider_name() == "stub"
