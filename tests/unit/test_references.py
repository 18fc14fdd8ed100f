"""Unit tests for handle reference encoding and parsing."""
import pytest

from metaobject_migrator.migration.references import (
    RefKind,
    SymbolicRef,
    format_handle_ref,
    is_gid,
    is_handle_ref,
    metaobject_ref,
    normalize_type,
    parse_symbolic_ref,
    to_symbolic_ref,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("app--258161311745--ComponentGroup", "$app:ComponentGroup"),
        ("$app:ComponentGroup", "$app:ComponentGroup"),
        ("author", "author"),
        ("my--type", "my--type"),
    ],
)
def test_normalize_type(raw, expected):
    assert normalize_type(raw) == expected


@pytest.mark.parametrize("raw", ["app--1--thing", "app--1--a--2--b", "shop--7--x--9--y--3--z"])
def test_normalize_type_is_idempotent(raw):
    once = normalize_type(raw)
    assert normalize_type(once) == once


def test_normalize_type_keeps_nested_app_suffix():
    assert normalize_type("app--1--a--2--b") == "$app:a--2--b"


def test_metaobject_resource_to_ref_normalizes_type():
    resource = {
        "__typename": "Metaobject",
        "id": "gid://shopify/Metaobject/1",
        "handle": "red",
        "type": "app--42--Swatch",
    }
    assert to_symbolic_ref(resource) == "handle://shopify/Metaobject/$app:Swatch/red"


@pytest.mark.parametrize("typename", ["Product", "Page", "Collection"])
def test_handle_kinds_to_ref(typename):
    resource = {"__typename": typename, "id": "gid://shopify/X/1", "handle": "summer"}
    assert to_symbolic_ref(resource) == f"handle://shopify/{typename}/summer"


def test_variant_needs_product_handle_and_sku():
    variant = {
        "__typename": "ProductVariant",
        "id": "gid://shopify/ProductVariant/5",
        "sku": "SKU-1",
        "product": {"handle": "shirt"},
    }
    assert to_symbolic_ref(variant) == "handle://shopify/ProductVariant/shirt/SKU-1"

    assert to_symbolic_ref({**variant, "sku": None}) is None
    assert to_symbolic_ref({**variant, "product": None}) is None


def test_media_image_to_ref_keeps_url():
    resource = {
        "__typename": "MediaImage",
        "id": "gid://shopify/MediaImage/9",
        "image": {"url": "https://cdn.shopify.com/s/files/a/b.png?v=1"},
    }
    assert (
        to_symbolic_ref(resource)
        == "handle://shopify/MediaImage/https://cdn.shopify.com/s/files/a/b.png?v=1"
    )


def test_unsupported_or_empty_resource_yields_none():
    assert to_symbolic_ref(None) is None
    assert to_symbolic_ref({"__typename": "GenericFile", "id": "gid://shopify/GenericFile/1"}) is None
    assert to_symbolic_ref({"__typename": "Product", "id": "gid://shopify/Product/1"}) is None


def test_parse_metaobject_ref():
    parsed = parse_symbolic_ref("handle://shopify/Metaobject/$app:Swatch/red")
    assert parsed == SymbolicRef(RefKind.METAOBJECT, ("$app:Swatch", "red"))
    assert parsed.metaobject_type == "$app:Swatch"
    assert parsed.handle == "red"


def test_parse_variant_ref():
    parsed = parse_symbolic_ref("handle://shopify/ProductVariant/shirt/SKU/1")
    assert parsed.kind is RefKind.PRODUCT_VARIANT
    assert parsed.handle == "shirt"
    # everything after the product handle is the sku
    assert parsed.sku == "SKU/1"


def test_parse_media_image_ref_keeps_slashes():
    parsed = parse_symbolic_ref("handle://shopify/MediaImage/https://x.test/a/b.png")
    assert parsed.key_parts == ("https://x.test/a/b.png",)


@pytest.mark.parametrize(
    "ref",
    [
        "gid://shopify/Product/1",
        "handle://shopify/Unknown/x",
        "handle://shopify/Product/",
        "handle://shopify/Metaobject/only-type",
        "handle://shopify/ProductVariant/shirt/",
        "plain text",
        None,
        42,
    ],
)
def test_parse_rejects_malformed(ref):
    assert parse_symbolic_ref(ref) is None


def test_str_of_parsed_ref_round_trips():
    ref = "handle://shopify/Collection/summer-sale"
    assert str(parse_symbolic_ref(ref)) == ref


def test_metaobject_ref_and_format():
    assert metaobject_ref("app--7--Item", "x") == "handle://shopify/Metaobject/$app:Item/x"
    assert format_handle_ref(RefKind.PAGE, "about") == "handle://shopify/Page/about"


def test_prefix_predicates():
    assert is_gid("gid://shopify/Product/1")
    assert not is_gid("handle://shopify/Product/a")
    assert is_handle_ref("handle://shopify/Product/a")
    assert not is_handle_ref(["handle://shopify/Product/a"])
