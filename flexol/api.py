"""
FastAPI 路由：暴露 REST API 供前端网格渲染和拖拽调用。
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from flexol.board_state import BoardController, BoardState
from flexol.data_adapter import DataAcquisitionAdapter
from flexol.errors import InvalidTransition, NoIdentity
from flexol.grid import Viewport
from flexol.item_manager import ItemCollectionManager
from flexol.models import GridItem, ItemKind, MoveDecision, MoveStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# 这些全局引用会在 main.py 中注入
_manager: ItemCollectionManager | None = None
_board: BoardController | None = None
_adapter: DataAcquisitionAdapter | None = None
_viewport: Viewport | None = None


def init_api(manager, board, adapter, viewport):
    """注入全局依赖（由 main.py 调用）。"""
    global _manager, _board, _adapter, _viewport
    _manager = manager
    _board = board
    _adapter = adapter
    _viewport = viewport


# ── 请求体 ────────────────────────────────────────────

class CreateItemRequest(BaseModel):
    kind: ItemKind
    token_address: str
    owner: Optional[str] = None


class MoveItemRequest(BaseModel):
    dx: float
    dy: float
    container_width: Optional[float] = None


class ViewportRequest(BaseModel):
    width: float


class OpenFormRequest(BaseModel):
    kind: ItemKind
    owner: Optional[str] = None


class SubmitFormRequest(BaseModel):
    token_address: str
    owner: Optional[str] = None


# ── Items ────────────────────────────────────────────

@router.get("/items")
async def list_items(include_pending: bool = False) -> list[GridItem]:
    """按插入顺序返回 item，供渲染层绘制。"""
    return _manager.list_items(include_pending=include_pending)


@router.post("/items")
async def create_item(req: CreateItemRequest) -> dict[str, Any]:
    """预留格子并在后台解析数据，立即返回 item id 和位置。"""
    token = req.token_address.strip()
    if not token:
        raise HTTPException(400, "Token address is required")
    try:
        _board.require_identity(req.kind, req.owner)
    except NoIdentity as e:
        raise HTTPException(400, e.message)

    item_id = _manager.create_item(req.kind, lambda: _adapter.resolve(token, req.kind, req.owner))
    item = _manager.get_item(item_id, include_pending=True)
    return {"item_id": item_id, "x": item.x, "y": item.y}


@router.post("/items/{item_id}/move")
async def move_item(item_id: int, req: MoveItemRequest) -> MoveDecision:
    """拖拽结束：按像素位移校验并提交。被拒绝的移动不是错误。"""
    if req.container_width is not None:
        if req.container_width <= 0:
            raise HTTPException(400, "Viewport width must be positive")
        _viewport.width = req.container_width
    decision = _manager.move_item(item_id, req.dx, req.dy)
    if decision.status == MoveStatus.NOT_FOUND:
        raise HTTPException(404, f"Item {item_id} not found")
    return decision


@router.put("/viewport")
async def update_viewport(req: ViewportRequest) -> dict[str, float]:
    if req.width <= 0:
        raise HTTPException(400, "Viewport width must be positive")
    _viewport.width = req.width
    return {"width": _viewport.width}


# ── 表单流程 ──────────────────────────────────────────

@router.get("/board")
async def get_board() -> BoardState:
    return _board.snapshot()


@router.post("/form/open")
async def open_form(req: OpenFormRequest) -> BoardState:
    try:
        return _board.open_form(req.kind, req.owner)
    except NoIdentity as e:
        raise HTTPException(400, e.message)
    except InvalidTransition as e:
        raise HTTPException(409, str(e))


@router.post("/form/close")
async def close_form() -> BoardState:
    try:
        return _board.close_form()
    except InvalidTransition as e:
        raise HTTPException(409, str(e))


@router.post("/form/submit")
async def submit_form(req: SubmitFormRequest) -> dict[str, Any]:
    """提交表单并等待数据解析完成。"""
    try:
        item = await _board.submit(
            req.token_address,
            lambda token, kind: _adapter.resolve(token, kind, req.owner),
            owner=req.owner,
        )
    except NoIdentity as e:
        raise HTTPException(400, e.message)
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    return {
        "item": item.model_dump(mode="json") if item else None,
        "board": _board.snapshot().model_dump(mode="json"),
    }


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
