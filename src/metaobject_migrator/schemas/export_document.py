"""Pydantic models for the metaobject export document."""
import json
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..migration.references import normalize_type


OwnerType = Literal["Product", "ProductVariant", "Collection", "Page"]


class BackReference(BaseModel):
    """Metafield on another resource that points at an exported metaobject."""

    model_config = ConfigDict(populate_by_name=True)

    owner_type: OwnerType = Field(..., alias="ownerType")
    owner: str = Field(..., description="handle://shopify/... or gid://shopify/...")
    namespace: str = Field(..., description="Metafield namespace (sigil form)")
    key: str = Field(..., description="Metafield key")


class ExportEntry(BaseModel):
    """One exported metaobject."""

    model_config = ConfigDict(populate_by_name=True)

    handle: str
    type: str = Field(..., description="Normalized metaobject type")
    fields: dict[str, Any] = Field(default_factory=dict)
    back_references: Optional[list[BackReference]] = Field(
        None, alias="backReferences"
    )

    @property
    def key(self) -> str:
        """``type/handle`` key identifying this entry within a run."""
        return f"{self.type}/{self.handle}"


class ExportDocument(BaseModel):
    """Export file contents: environment label plus ordered entries."""

    environment: Optional[str] = None
    count: int = 0
    entries: list[ExportEntry] = Field(default_factory=list)

    def model_post_init(self, __context: Any) -> None:
        self.count = len(self.entries)

    def to_json(self) -> str:
        payload = self.model_dump(by_alias=True, exclude_none=True)
        payload["count"] = len(self.entries)
        return json.dumps(payload, indent=2, ensure_ascii=False)


class ExportStats(BaseModel):
    """Summary counts for an export document."""

    total: int
    by_type: dict[str, int] = Field(default_factory=dict)


def _parse_back_references(raw: Any) -> Optional[list[BackReference]]:
    if not isinstance(raw, list):
        return None
    parsed: list[BackReference] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        owner = str(item.get("owner") or "")
        namespace = str(item.get("namespace") or "")
        key = str(item.get("key") or "")
        owner_type = item.get("ownerType")
        if not owner or not namespace or not key:
            continue
        if owner_type not in ("Product", "ProductVariant", "Collection", "Page"):
            continue
        parsed.append(
            BackReference(
                owner_type=owner_type,
                owner=owner,
                namespace=normalize_type(namespace),
                key=key,
            )
        )
    return parsed


def parse_export_document(text: str) -> tuple[ExportDocument, ExportStats]:
    """Parse export file text into a document and its stats.

    Loosely shaped input is tolerated: types and namespaces are normalized,
    incomplete back-references are dropped and ``count`` is recomputed.

    Raises:
        json.JSONDecodeError: If ``text`` is not JSON
    """
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raw = {}

    entries: list[ExportEntry] = []
    for item in raw.get("entries") or []:
        if not isinstance(item, dict):
            continue
        fields = item.get("fields")
        entries.append(
            ExportEntry(
                handle=str(item.get("handle") or ""),
                type=normalize_type(str(item.get("type") or "unknown")),
                fields=fields if isinstance(fields, dict) else {},
                back_references=_parse_back_references(item.get("backReferences")),
            )
        )

    environment = raw.get("environment")
    document = ExportDocument(
        environment=environment if isinstance(environment, str) else None,
        entries=entries,
    )

    by_type: dict[str, int] = {}
    for entry in entries:
        by_type[entry.type or "unknown"] = by_type.get(entry.type or "unknown", 0) + 1

    return document, ExportStats(total=len(entries), by_type=by_type)
