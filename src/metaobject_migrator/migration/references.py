"""Portable handle references for Shopify resources.

A handle reference names a resource by its natural key instead of its
store-scoped GID, so it can be resolved against any store::

    handle://shopify/Metaobject/<normalized-type>/<handle>
    handle://shopify/Product/<handle>
    handle://shopify/Page/<handle>
    handle://shopify/Collection/<handle>
    handle://shopify/ProductVariant/<product-handle>/<sku>
    handle://shopify/MediaImage/<source-url>
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


HANDLE_REF_PREFIX = "handle://shopify/"
GID_PREFIX = "gid://shopify/"

# app--<numeric app id>--<suffix>, e.g. app--258161311745--ComponentGroup
_APP_NAMESPACED_TYPE = re.compile(r"^([^$].*?)--\d+--(.+)$")


class RefKind(str, Enum):
    """Resource kinds a handle reference can point at."""

    METAOBJECT = "Metaobject"
    PRODUCT = "Product"
    PAGE = "Page"
    COLLECTION = "Collection"
    PRODUCT_VARIANT = "ProductVariant"
    MEDIA_IMAGE = "MediaImage"


# Kinds allowed to own back-references (never Metaobject)
OWNER_KINDS = frozenset(
    {RefKind.PRODUCT, RefKind.PRODUCT_VARIANT, RefKind.COLLECTION, RefKind.PAGE}
)


def normalize_type(raw_type: str) -> str:
    """Replace an embedded numeric app id with the ``$prefix:suffix`` sigil.

    >>> normalize_type("app--258161311745--ComponentGroup")
    '$app:ComponentGroup'
    >>> normalize_type("$app:ComponentGroup")
    '$app:ComponentGroup'
    """
    # Already normalized; a second pass must not rewrite the suffix
    if raw_type.startswith("$"):
        return raw_type
    match = _APP_NAMESPACED_TYPE.match(raw_type)
    if not match:
        return raw_type
    return f"${match.group(1)}:{match.group(2)}"


def is_gid(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(GID_PREFIX)


def is_handle_ref(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(HANDLE_REF_PREFIX)


@dataclass(frozen=True)
class SymbolicRef:
    """Parsed handle reference: a kind plus its natural-key components."""

    kind: RefKind
    key_parts: tuple[str, ...]

    @property
    def handle(self) -> str:
        """Handle of the resource (product handle for variants)."""
        if self.kind is RefKind.METAOBJECT:
            return self.key_parts[1]
        return self.key_parts[0]

    @property
    def metaobject_type(self) -> Optional[str]:
        if self.kind is RefKind.METAOBJECT:
            return self.key_parts[0]
        return None

    @property
    def sku(self) -> Optional[str]:
        if self.kind is RefKind.PRODUCT_VARIANT:
            return self.key_parts[1]
        return None

    def __str__(self) -> str:
        return format_handle_ref(self.kind, *self.key_parts)


def format_handle_ref(kind: RefKind, *key_parts: str) -> str:
    return HANDLE_REF_PREFIX + "/".join((RefKind(kind).value, *key_parts))


def metaobject_ref(metaobject_type: str, handle: str) -> str:
    """Handle reference of a metaobject, with its type normalized."""
    return format_handle_ref(RefKind.METAOBJECT, normalize_type(metaobject_type), handle)


def to_symbolic_ref(resource: Optional[dict]) -> Optional[str]:
    """Build the handle reference for a GraphQL resource node.

    ``resource`` is a node carrying ``__typename`` plus its natural-key
    fields. Returns None when the kind is unsupported or a required key
    field is absent. Variants need both the parent product handle and the
    SKU; a SKU alone is not portable.
    """
    if not resource:
        return None

    typename = resource.get("__typename")
    if typename == RefKind.METAOBJECT.value:
        handle = resource.get("handle")
        raw_type = resource.get("type")
        if handle and raw_type:
            return metaobject_ref(raw_type, handle)
        return None

    if typename in (RefKind.PRODUCT.value, RefKind.PAGE.value, RefKind.COLLECTION.value):
        handle = resource.get("handle")
        if handle:
            return format_handle_ref(RefKind(typename), handle)
        return None

    if typename == RefKind.PRODUCT_VARIANT.value:
        product_handle = (resource.get("product") or {}).get("handle")
        sku = resource.get("sku")
        if product_handle and sku:
            return format_handle_ref(RefKind.PRODUCT_VARIANT, product_handle, sku)
        return None

    if typename == RefKind.MEDIA_IMAGE.value:
        url = (resource.get("image") or {}).get("url")
        if url:
            return format_handle_ref(RefKind.MEDIA_IMAGE, url)
        return None

    return None


def parse_symbolic_ref(ref: Any) -> Optional[SymbolicRef]:
    """Parse a handle reference.

    Returns None for anything that is not a well-formed handle reference;
    callers treat such strings as literal values.
    """
    if not is_handle_ref(ref):
        return None

    body = ref[len(HANDLE_REF_PREFIX):]
    kind_name, sep, rest = body.partition("/")
    if not sep or not rest:
        return None

    try:
        kind = RefKind(kind_name)
    except ValueError:
        return None

    if kind is RefKind.MEDIA_IMAGE:
        # URL kept verbatim, slashes included
        return SymbolicRef(kind, (rest,))

    if kind in (RefKind.METAOBJECT, RefKind.PRODUCT_VARIANT):
        first, sep, remainder = rest.partition("/")
        if not sep or not first or not remainder:
            return None
        return SymbolicRef(kind, (first, remainder))

    return SymbolicRef(kind, (rest,))
