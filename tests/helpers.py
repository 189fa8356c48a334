"""Test helpers: item builders and payload resolvers."""

import asyncio

from flexol.models import GridItem, ItemKind, ItemPayload

CELL = 150


def make_payload(symbol: str = "BONK", value: str = "0.0000213", token: str = "TokenMint111") -> ItemPayload:
    return ItemPayload(symbol=symbol, value=value, image_url="https://example.com/icon.png", token_address=token)


def make_item(item_id: int, col: int, row: int, kind: ItemKind = ItemKind.WATCH_PRICE, pending: bool = False) -> GridItem:
    return GridItem(
        id=item_id,
        kind=kind,
        x=col * CELL,
        y=row * CELL,
        payload=None if pending else make_payload(),
    )


def resolves_to(payload: ItemPayload):
    """Payload resolver that succeeds immediately."""
    async def _resolve():
        return payload
    return _resolve


def fails_with(exc: Exception):
    async def _resolve():
        raise exc
    return _resolve


def blocked_until(event: asyncio.Event, payload: ItemPayload):
    """Payload resolver that waits for the event before succeeding."""
    async def _resolve():
        await event.wait()
        return payload
    return _resolve


def cells(items) -> list[tuple[int, int]]:
    return [(item.x // CELL, item.y // CELL) for item in items]
