"""
Item 集合管理器：唯一允许修改 item 状态的组件。

创建分两个阶段：同步预留格子和 id，异步解析 payload 后提交或释放预留。
预留项在 create_item 返回前就已计入占用索引，因此连续快速创建不会抢到同一个格子。
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from flexol.config_loader import GridConfig
from flexol.errors import DataUnavailable, NoIdentity
from flexol.grid import DragRelocationValidator, OccupancyIndex, PlacementAllocator, to_cell
from flexol.models import GridItem, ItemKind, ItemPayload, MoveDecision

logger = logging.getLogger(__name__)

PayloadResolver = Callable[[], Awaitable[ItemPayload]]
ItemsObserver = Callable[[list[GridItem]], None]


class ItemCollectionManager:
    """
    维护 item 列表（按提交顺序）和尚未完成解析的预留项。
    """

    def __init__(self, config: GridConfig, viewport_width: Callable[[], float] | None = None):
        self._config = config
        self._viewport_width = viewport_width
        self._items: list[GridItem] = []
        # item_id -> 预留中的 item（payload 为 None）
        self._pending: dict[int, GridItem] = {}
        self._tasks: dict[int, asyncio.Task] = {}
        self._observers: list[ItemsObserver] = []
        self._next_id = 1

        self.occupancy = OccupancyIndex(self._live_items, config.cell_size)
        self.allocator = PlacementAllocator(self.occupancy, config)
        self.validator = DragRelocationValidator(self._live_items, self.occupancy, config)

    def _live_items(self) -> list[GridItem]:
        return [*self._items, *self._pending.values()]

    # ── 查询 ──────────────────────────────────────────

    def list_items(self, include_pending: bool = False) -> list[GridItem]:
        """已提交的 item，按插入顺序。"""
        if include_pending:
            return self._live_items()
        return list(self._items)

    def get_item(self, item_id: int, include_pending: bool = False) -> Optional[GridItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        if include_pending:
            return self._pending.get(item_id)
        return None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ── 观察者 ────────────────────────────────────────

    def subscribe(self, observer: ItemsObserver):
        self._observers.append(observer)

    def _notify(self):
        snapshot = self.list_items()
        for observer in self._observers:
            try:
                observer(snapshot)
            except Exception as e:
                logger.error(f"Observer {observer!r} failed: {e}", exc_info=True)

    # ── 创建 ──────────────────────────────────────────

    def reserve(self, kind: ItemKind) -> GridItem:
        """同步分配 id 和格子，预留立即对占用索引可见。"""
        x, y = self.allocator.allocate()
        item = GridItem(id=self._next_id, kind=kind, x=x, y=y)
        self._next_id += 1
        self._pending[item.id] = item
        logger.info(f"[{item.id}] 预留格子 {to_cell(x, y, self._config.cell_size)} ({kind.value})")
        return item

    def create_item(self, kind: ItemKind, resolve_payload: PayloadResolver) -> int:
        """
        预留格子并在当前事件循环中调度 payload 解析，立即返回 item id。
        必须在运行中的事件循环内调用。
        """
        loop = asyncio.get_running_loop()
        item = self.reserve(kind)
        task = loop.create_task(self._fulfil(item.id, resolve_payload))
        self._tasks[item.id] = task
        task.add_done_callback(lambda _t, item_id=item.id: self._tasks.pop(item_id, None))
        return item.id

    async def _fulfil(self, item_id: int, resolve_payload: PayloadResolver):
        try:
            payload = await resolve_payload()
        except NoIdentity as e:
            # 表单流程在预留前已检查 owner，只有直接调用 create_item 的代码会走到这里
            logger.warning(f"[{item_id}] {e.message} ({e.kind})")
            self._release(item_id)
            return
        except DataUnavailable as e:
            logger.error(f"[{item_id}] 数据获取失败: {e}")
            self._release(item_id)
            return
        except asyncio.CancelledError:
            self._release(item_id)
            raise
        except Exception as e:
            logger.error(f"[{item_id}] Payload resolution failed: {e}", exc_info=True)
            self._release(item_id)
            return

        item = self._pending.pop(item_id, None)
        if item is None:
            return
        item.payload = payload
        self._items.append(item)
        logger.info(f"[{item_id}] Item 已添加: {payload.symbol} @ ({item.x}, {item.y})")
        self._notify()

    def _release(self, item_id: int):
        if self._pending.pop(item_id, None) is not None:
            logger.info(f"[{item_id}] 预留已释放")

    async def wait(self, item_id: int) -> Optional[GridItem]:
        """等待指定 item 的解析完成，返回已提交的 item，失败时返回 None。"""
        task = self._tasks.get(item_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.get_item(item_id)

    async def wait_pending(self):
        """等待所有进行中的解析。"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    # ── 拖拽 ──────────────────────────────────────────

    def move_item(self, item_id: int, dx: float, dy: float, container_width: float | None = None) -> MoveDecision:
        """校验拖拽位移，通过时提交新位置。被拒绝的移动不改变任何状态。"""
        if container_width is None:
            if self._viewport_width is None:
                raise ValueError("container_width is required when no viewport provider is set")
            container_width = self._viewport_width()

        decision = self.validator.propose_move(item_id, dx, dy, container_width)
        if not decision.accepted:
            return decision

        item = self.get_item(item_id)
        item.x = decision.x
        item.y = decision.y
        logger.info(f"[{item_id}] Moved to ({item.x}, {item.y})")
        self._notify()
        return decision

    # ── 恢复 ──────────────────────────────────────────

    def restore(self, items: Iterable[GridItem]) -> int:
        """
        载入持久化的布局。未对齐或重叠的 item 会被跳过。
        之后新建的 id 从已有最大 id 之后继续。
        """
        cell_size = self._config.cell_size
        restored = 0
        for item in items:
            self._next_id = max(self._next_id, item.id + 1)
            if item.pending:
                continue
            if item.x % cell_size or item.y % cell_size or item.x < 0 or item.y < 0:
                logger.warning(f"[{item.id}] Stored position ({item.x}, {item.y}) not grid aligned, skipped")
                continue
            if self.get_item(item.id) is not None or self.occupancy.is_occupied(*to_cell(item.x, item.y, cell_size)):
                logger.warning(f"[{item.id}] Stored cell already taken, skipped")
                continue
            self._items.append(item)
            restored += 1
        return restored
