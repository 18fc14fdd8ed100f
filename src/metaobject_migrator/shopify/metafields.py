"""Chunked metafieldsSet writes for metaobject back-references."""
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .client import ShopifyGraphQLClient, require_data, user_error_messages
from .graphql_strings import MUTATION_METAFIELDS_SET


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 25


class MetafieldSetItem(BaseModel):
    """One metafield write on a back-reference owner.

    Exactly one of ``id`` (single reference) or ``ids`` (list of references)
    is set; the shape selects the metafield type.
    """

    owner_id: str
    namespace: str
    key: str
    id: Optional[str] = Field(None, description="Target for metaobject_reference")
    ids: Optional[list[str]] = Field(
        None, description="Targets for list.metaobject_reference"
    )

    @model_validator(mode="after")
    def _one_shape(self) -> "MetafieldSetItem":
        if (self.id is None) == (self.ids is None):
            raise ValueError("exactly one of id or ids must be set")
        return self

    @property
    def is_list(self) -> bool:
        return self.ids is not None

    def to_input(self) -> dict[str, str]:
        """Convert to a ``MetafieldsSetInput`` dict."""
        if self.is_list:
            value = json.dumps(self.ids, separators=(",", ":"))
            metafield_type = "list.metaobject_reference"
        else:
            value = self.id
            metafield_type = "metaobject_reference"
        return {
            "ownerId": self.owner_id,
            "namespace": self.namespace,
            "key": self.key,
            "value": value,
            "type": metafield_type,
        }


def build_set_item(
    owner_id: str, namespace: str, key: str, target_ids: list[str]
) -> MetafieldSetItem:
    """Pick the write shape for a group of targets.

    Duplicate targets are removed (first occurrence wins) before the
    single-vs-list decision.
    """
    unique = list(dict.fromkeys(target_ids))
    if not unique:
        raise ValueError("target_ids must be non-empty")
    if len(unique) == 1:
        return MetafieldSetItem(owner_id=owner_id, namespace=namespace, key=key, id=unique[0])
    return MetafieldSetItem(owner_id=owner_id, namespace=namespace, key=key, ids=unique)


@dataclass
class ChunkFailure:
    items: list[MetafieldSetItem]
    messages: list[str]


@dataclass
class MetafieldsSetOutcome:
    """Aggregate of all chunk results; every chunk is attempted."""

    written: list[MetafieldSetItem] = field(default_factory=list)
    failures: list[ChunkFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def messages(self) -> list[str]:
        return [message for failure in self.failures for message in failure.messages]


async def metafields_set_batch(
    client: ShopifyGraphQLClient,
    items: list[MetafieldSetItem],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> MetafieldsSetOutcome:
    """Write ``items`` in chunks of ``chunk_size`` per metafieldsSet call.

    A failing chunk (userErrors, root errors or transport failure) is
    recorded and the remaining chunks still run.
    """
    outcome = MetafieldsSetOutcome()
    for start in range(0, len(items), chunk_size):
        chunk = items[start:start + chunk_size]
        chunk_no = start // chunk_size + 1
        try:
            response = await client.request(
                MUTATION_METAFIELDS_SET,
                {"metafields": [item.to_input() for item in chunk]},
            )
            payload = require_data(response, "metafieldsSet") or {}
            messages = user_error_messages(payload.get("userErrors"))
        except Exception as exc:
            messages = [str(exc)]

        if messages:
            logger.warning(
                "metafieldsSet chunk %s failed (%s items): %s",
                chunk_no,
                len(chunk),
                "; ".join(messages),
            )
            outcome.failures.append(ChunkFailure(items=chunk, messages=messages))
        else:
            outcome.written.extend(chunk)

    return outcome
