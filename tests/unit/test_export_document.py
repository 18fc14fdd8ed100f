"""Unit tests for export document parsing and serialization."""
import json

import pytest

from metaobject_migrator.schemas.export_document import (
    BackReference,
    ExportDocument,
    ExportEntry,
    parse_export_document,
)


def test_parse_normalizes_and_drops_incomplete_back_references():
    text = json.dumps(
        {
            "environment": "prod",
            "count": 99,
            "entries": [
                {
                    "handle": "red",
                    "type": "app--123--Swatch",
                    "fields": {"hex": "#f00"},
                    "backReferences": [
                        {"ownerType": "Product", "owner": "handle://shopify/Product/shirt", "namespace": "app--123--ui", "key": "swatch"},
                        {"ownerType": "Product", "owner": "", "namespace": "custom", "key": "k"},
                        {"ownerType": "Metaobject", "owner": "handle://shopify/Metaobject/a/b", "namespace": "custom", "key": "k"},
                        "garbage",
                    ],
                },
                {"handle": "blue", "type": "$app:Swatch", "fields": "not-a-map"},
                {"handle": "ann", "type": "author"},
                "garbage",
            ],
        }
    )

    document, stats = parse_export_document(text)

    assert document.environment == "prod"
    assert document.count == 3
    first = document.entries[0]
    assert first.type == "$app:Swatch"
    assert first.back_references == [
        BackReference(
            owner_type="Product",
            owner="handle://shopify/Product/shirt",
            namespace="$app:ui",
            key="swatch",
        )
    ]
    assert document.entries[1].fields == {}
    assert document.entries[2].back_references is None
    assert stats.total == 3
    assert stats.by_type == {"$app:Swatch": 2, "author": 1}


def test_parse_tolerates_non_object_root():
    document, stats = parse_export_document("[]")
    assert document.entries == []
    assert stats.total == 0


def test_parse_rejects_invalid_json():
    with pytest.raises(json.JSONDecodeError):
        parse_export_document("{not json")


def test_to_json_uses_wire_names_and_recounts():
    document = ExportDocument(
        environment="prod",
        entries=[
            ExportEntry(
                handle="red",
                type="$app:Swatch",
                fields={"hex": "#f00"},
                back_references=[
                    BackReference(owner_type="Page", owner="handle://shopify/Page/about", namespace="custom", key="swatch")
                ],
            ),
            ExportEntry(handle="blue", type="$app:Swatch"),
        ],
    )

    data = json.loads(document.to_json())

    assert data["count"] == 2
    assert data["entries"][0]["backReferences"] == [
        {"ownerType": "Page", "owner": "handle://shopify/Page/about", "namespace": "custom", "key": "swatch"}
    ]
    assert "backReferences" not in data["entries"][1]
    assert document.entries[0].key == "$app:Swatch/red"
