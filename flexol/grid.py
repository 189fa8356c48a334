"""
网格布局引擎：占用索引、空位分配、拖拽吸附与碰撞校验。

所有计算都是同步的纯函数，占用状态每次查询时从实时的 item 列表推导，
不单独存储，因此不会与 item 列表产生偏差。
"""

import logging
import math
from typing import Callable, Iterable, Optional

from flexol.config_loader import GridConfig
from flexol.errors import PlacementExhausted
from flexol.models import GridItem, MoveDecision, MoveStatus

logger = logging.getLogger(__name__)

Cell = tuple[int, int]
ItemProvider = Callable[[], Iterable[GridItem]]


# ── 坐标换算 ──────────────────────────────────────────

def snap(value: float, cell_size: int) -> int:
    """Round a pixel value to the nearest multiple of cell_size, halves away from zero."""
    q = value / cell_size
    steps = math.floor(abs(q) + 0.5)
    if q < 0:
        steps = -steps
    return steps * cell_size


def to_cell(x: int, y: int, cell_size: int) -> Cell:
    return (x // cell_size, y // cell_size)


def cell_origin(col: int, row: int, cell_size: int) -> tuple[int, int]:
    return (col * cell_size, row * cell_size)


# ── 占用索引 ──────────────────────────────────────────

class OccupancyIndex:
    """
    每次查询都从 item 提供者重新推导被占用的格子。
    包含尚未完成数据解析的预留项。
    """

    def __init__(self, items: ItemProvider, cell_size: int):
        self._items = items
        self.cell_size = cell_size

    def occupied_set(self, exclude: Optional[int] = None) -> set[Cell]:
        return {
            to_cell(item.x, item.y, self.cell_size)
            for item in self._items()
            if item.id != exclude
        }

    def is_occupied(self, col: int, row: int, exclude: Optional[int] = None) -> bool:
        return (col, row) in self.occupied_set(exclude=exclude)


# ── 空位分配 ──────────────────────────────────────────

class PlacementAllocator:
    """按行优先顺序找到第一个空闲格子。"""

    def __init__(self, occupancy: OccupancyIndex, config: GridConfig):
        self._occupancy = occupancy
        self._config = config

    def allocate(self) -> tuple[int, int]:
        """
        返回第一个空格子的像素原点。

        max_row_scan 为 None 时行数不设上限，总能找到空位；
        设置了上限且全部占满时记录 PlacementExhausted 并退回原点 (0, 0)。
        """
        occupied = self._occupancy.occupied_set()
        cell_size = self._config.cell_size
        max_rows = self._config.max_row_scan

        row = 0
        while max_rows is None or row < max_rows:
            for col in range(self._config.max_cols):
                if (col, row) not in occupied:
                    return cell_origin(col, row, cell_size)
            row += 1

        logger.warning(f"{PlacementExhausted(max_rows, self._config.max_cols)}, falling back to origin")
        return (0, 0)


# ── 拖拽校验 ──────────────────────────────────────────

class DragRelocationValidator:
    """Snap a drag delta to the grid, clamp it to the viewport and reject collisions."""

    def __init__(self, items: ItemProvider, occupancy: OccupancyIndex, config: GridConfig):
        self._items = items
        self._occupancy = occupancy
        self._config = config

    def _find(self, item_id: int) -> GridItem | None:
        for item in self._items():
            if item.id == item_id and not item.pending:
                return item
        return None

    def max_x(self, container_width: float) -> int:
        """Right-most grid-aligned x that keeps a whole cell inside the container."""
        cell_size = self._config.cell_size
        return max(0, int((container_width - cell_size) // cell_size) * cell_size)

    def propose_move(self, item_id: int, dx: float, dy: float, container_width: float) -> MoveDecision:
        item = self._find(item_id)
        if item is None:
            return MoveDecision(item_id=item_id, status=MoveStatus.NOT_FOUND)

        cell_size = self._config.cell_size
        new_x = snap(item.x + dx, cell_size)
        new_y = snap(item.y + dy, cell_size)

        # 吸附回原格子时保持不动，即使视口已缩小到该列之外
        if (new_x, new_y) == (item.x, item.y):
            return MoveDecision(item_id=item_id, status=MoveStatus.ACCEPTED, x=item.x, y=item.y)

        new_x = min(max(new_x, 0), self.max_x(container_width))
        new_y = max(new_y, 0)

        col, row = to_cell(new_x, new_y, cell_size)
        if self._occupancy.is_occupied(col, row, exclude=item.id):
            logger.debug(f"[{item_id}] Position {new_x}, {new_y} is occupied, canceling move")
            return MoveDecision(item_id=item_id, status=MoveStatus.REJECTED)

        return MoveDecision(item_id=item_id, status=MoveStatus.ACCEPTED, x=new_x, y=new_y)


class Viewport:
    """当前网格容器的像素宽度，由前端在 resize 时更新。"""

    def __init__(self, width: float):
        self.width = width

    def __call__(self) -> float:
        return self.width
