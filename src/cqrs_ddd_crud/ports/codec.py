"""IIdCodec — external/internal ID conversion."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IIdCodec(Protocol):
    """
    Converts between the adapter-native ID type and the representation
    exposed to callers.

    Every ID received from a caller is decoded before it reaches the adapter;
    every ID emitted in a response is encoded.
    """

    def encode(self, entity_id: Any) -> Any: ...

    def decode(self, external_id: Any) -> Any: ...


class IdentityCodec:
    """Default codec: IDs pass through unchanged in both directions."""

    def encode(self, entity_id: Any) -> Any:
        return entity_id

    def decode(self, external_id: Any) -> Any:
        return external_id
