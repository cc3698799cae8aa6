"""Tests for datasheet loading, attribute typing and product identifiers."""

import threading

import pytest

from product_assistant.catalog import (
    Attribute,
    AttributeType,
    Catalog,
    CatalogLoader,
    Product,
    ProductIdentifier,
    classify_attribute,
    record_to_product,
    split_value_and_unit,
    stringify_value,
)
from product_assistant.errors import InvalidIdentifierError
from tests.fakes import BEARINGS, write_catalog


class TestProductIdentifier:

    def test_trims_whitespace(self):
        assert ProductIdentifier("  6205 ").value == "6205"

    @pytest.mark.parametrize("raw", ["", "   ", "\t\n"])
    def test_rejects_blank(self, raw):
        with pytest.raises(InvalidIdentifierError, match="cannot be empty"):
            ProductIdentifier(raw)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidIdentifierError, match="must be a string"):
            ProductIdentifier(6205)

    def test_equality_ignores_case(self):
        assert ProductIdentifier("6205-2rs1") == ProductIdentifier("6205-2RS1")
        assert hash(ProductIdentifier("nu 205")) == hash(ProductIdentifier("NU 205"))

    def test_parse_returns_none_for_blank(self):
        assert ProductIdentifier.parse(None) is None
        assert ProductIdentifier.parse("  ") is None
        assert ProductIdentifier.parse(" 6206 ") == ProductIdentifier("6206")

    def test_invalid_identifier_is_value_error(self):
        with pytest.raises(ValueError):
            ProductIdentifier("")


class TestRecordParsing:

    def test_splits_value_and_unit(self):
        product = record_to_product({"ProductName": "6205", "Width": "15 mm"})
        width = product.get_attribute("width")
        assert width == Attribute(name="width", value="15", unit="mm", type=AttributeType.DIMENSION)

    def test_product_id_is_upper_case_name(self):
        product = record_to_product({"name": "6205-2rs1"})
        assert product.id == "6205-2RS1"
        assert product.name == "6205-2rs1"

    @pytest.mark.parametrize("key", ["ProductName", "product", "NAME"])
    def test_accepts_name_field_synonyms(self, key):
        assert record_to_product({key: "6206"}).name == "6206"

    def test_missing_or_blank_name_is_skipped(self):
        assert record_to_product({"width": "15 mm"}) is None
        assert record_to_product({"ProductName": "  "}) is None
        assert record_to_product({"ProductName": 6205}) is None
        assert record_to_product(["6205"]) is None

    def test_null_values_are_dropped(self):
        product = record_to_product({"ProductName": "6205", "mass": None, "width": "15"})
        assert product.available_attributes() == ["width"]

    def test_attribute_keys_are_lower_cased(self):
        product = record_to_product({"ProductName": "6205", "Limiting_Speed": "18000 rpm"})
        assert product.available_attributes() == ["limiting_speed"]
        assert product.get_attribute("LIMITING SPEED").unit == "rpm"

    def test_non_numeric_text_keeps_whole_value(self):
        assert split_value_and_unit("Deep groove ball bearing") == ("Deep groove ball bearing", "")
        assert split_value_and_unit("14.8kN") == ("14.8", "kN")

    def test_stringify_scalars(self):
        assert stringify_value(None) == ""
        assert stringify_value(True) == "true"
        assert stringify_value(25) == "25"
        assert stringify_value({"a": 1}) == '{"a":1}'


class TestClassifyAttribute:

    @pytest.mark.parametrize(
        "name,value,expected",
        [
            ("Outer Diameter", "52", AttributeType.DIMENSION),
            ("dynamic_load_rating", "14.8", AttributeType.LOAD),
            ("Limiting speed", "18000", AttributeType.SPEED),
            ("weight", "0.13", AttributeType.MASS),
            ("tolerance_class", "6", AttributeType.NUMERIC),
            ("seal", "2RS1", AttributeType.TEXT),
        ],
    )
    def test_classifies_by_name_then_value(self, name, value, expected):
        assert classify_attribute(name, value) is expected


class TestProduct:

    def test_formatted_attributes_include_units(self):
        product = record_to_product(BEARINGS[0])
        formatted = product.formatted_attributes()
        assert formatted["width"] == "15 mm"
        assert formatted["mass"] == "0.13"

    def test_update_attribute_stamps_time(self):
        product = Product(id="6205", name="6205")
        product.update_attribute("Width", Attribute(name="width", value="15", unit="mm"))
        assert product.has_attribute("width")
        assert product.updated_at is not None


class TestCatalogLoader:

    def test_loads_items_and_plain_lists(self, tmp_path):
        write_catalog(tmp_path, BEARINGS[:2], name="a.json")
        (tmp_path / "b.json").write_text('[{"Product": "NU 205 ECP", "width": "15 mm"}]', encoding="utf-8")
        catalog = CatalogLoader(tmp_path).load()
        assert catalog.names() == ["6205", "6205-2RS1", "NU 205 ECP"]
        assert [source.product_count for source in catalog.sources] == [2, 1]

    def test_skips_undecodable_files(self, tmp_path, caplog):
        write_catalog(tmp_path, BEARINGS)
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        catalog = CatalogLoader(tmp_path).load()
        assert len(catalog) == 3
        assert "broken.json" in caplog.text

    def test_missing_directory_gives_empty_catalog(self, tmp_path):
        catalog = CatalogLoader(tmp_path / "nope").load()
        assert len(catalog) == 0

    def test_handles_byte_order_mark(self, tmp_path):
        (tmp_path / "bom.json").write_text('[{"ProductName": "6207"}]', encoding="utf-8-sig")
        assert CatalogLoader(tmp_path).load().names() == ["6207"]

    def test_find_exact_ignores_case(self, catalog_dir):
        catalog = CatalogLoader(catalog_dir).load()
        assert catalog.find_exact(ProductIdentifier("6205-2rs1")).name == "6205-2RS1"
        assert catalog.find_exact(ProductIdentifier("6299")) is None

    def test_loads_once_under_concurrency(self, catalog_dir, monkeypatch):
        loader = CatalogLoader(catalog_dir)
        original = loader._read_catalog
        calls = []
        barrier = threading.Barrier(8)

        def counting_read():
            calls.append(1)
            return original()

        monkeypatch.setattr(loader, "_read_catalog", counting_read)
        results = []

        def worker():
            barrier.wait()
            results.append(loader.load())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert all(result is results[0] for result in results)
        assert loader.is_loaded

    def test_module_is_documented(self):
        import product_assistant.catalog as catalog_module

        assert catalog_module.__doc__.startswith("Catalog loading")

    def test_empty_catalog_iterates_nothing(self):
        assert list(Catalog()) == []
