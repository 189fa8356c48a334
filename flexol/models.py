"""
Data models for grid items and their resolved payloads.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ItemKind(str, Enum):
    WATCH_PRICE = "wl"
    TRADE_COUNT = "tc"
    PROFIT_AND_LOSS = "pnl"

    @property
    def requires_identity(self) -> bool:
        """tc / pnl 需要钱包地址才能查询。"""
        return self in (ItemKind.TRADE_COUNT, ItemKind.PROFIT_AND_LOSS)


class ItemPayload(BaseModel):
    """Resolved display data for one item."""
    symbol: str
    value: str
    image_url: Optional[str] = None
    token_address: str


class GridItem(BaseModel):
    """A single widget placed on the board grid."""
    id: int = Field(description="Monotonic id, never reused")
    kind: ItemKind
    x: int = Field(default=0, description="X position in pixels, multiple of cell size")
    y: int = Field(default=0, description="Y position in pixels, multiple of cell size")
    payload: Optional[ItemPayload] = Field(default=None, description="None while the payload is resolving")

    @property
    def pending(self) -> bool:
        return self.payload is None


class MoveStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"


class MoveDecision(BaseModel):
    """拖拽校验结果。accepted 时 x/y 为吸附后的新位置。"""
    item_id: int
    status: MoveStatus
    x: Optional[int] = None
    y: Optional[int] = None

    @property
    def accepted(self) -> bool:
        return self.status == MoveStatus.ACCEPTED
