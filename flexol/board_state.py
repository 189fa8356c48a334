"""
面板运行时状态定义。
包含表单状态机（Idle -> FormOpen(kind) -> Submitting -> Idle）、提示消息模型等。
"""

import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from flexol.errors import InvalidTransition, NoIdentity
from flexol.item_manager import ItemCollectionManager
from flexol.models import GridItem, ItemKind

logger = logging.getLogger(__name__)


class FormStatus(str, Enum):
    IDLE = "idle"
    FORM_OPEN = "form_open"  # 已选择指标类型，等待输入 token 地址
    SUBMITTING = "submitting"  # 正在解析数据


class NoticeLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


class Notice(BaseModel):
    """短暂显示、到期自动消失的提示。"""
    message: str
    level: NoticeLevel = NoticeLevel.ERROR
    created_at: float
    expires_at: float

    def active(self, now: float) -> bool:
        return now < self.expires_at


class BoardState(BaseModel):
    """面板的 UI 状态快照。"""
    status: FormStatus = FormStatus.IDLE
    kind: Optional[ItemKind] = None  # 仅在 FORM_OPEN / SUBMITTING 时有值
    loading: bool = False
    notices: List[Notice] = Field(default_factory=list)


class BoardController:
    """
    表单流程状态机，并维护提示消息。
    只有 FORM_OPEN 状态可以提交，提交期间不能再打开或关闭表单。
    """

    def __init__(
        self,
        manager: ItemCollectionManager,
        notice_ttl: float = 3.0,
        clock: Callable[[], float] = time.time,
    ):
        self._manager = manager
        self._notice_ttl = notice_ttl
        self._clock = clock
        self._status = FormStatus.IDLE
        self._kind: Optional[ItemKind] = None
        self._notices: list[Notice] = []

    @property
    def status(self) -> FormStatus:
        return self._status

    @property
    def kind(self) -> Optional[ItemKind]:
        return self._kind

    # ── 提示 ──────────────────────────────────────────

    def notify(self, message: str, level: NoticeLevel = NoticeLevel.ERROR) -> Notice:
        now = self._clock()
        notice = Notice(message=message, level=level, created_at=now, expires_at=now + self._notice_ttl)
        self._notices.append(notice)
        return notice

    def active_notices(self) -> list[Notice]:
        now = self._clock()
        self._notices = [n for n in self._notices if n.active(now)]
        return list(self._notices)

    def snapshot(self) -> BoardState:
        return BoardState(
            status=self._status,
            kind=self._kind,
            loading=self._manager.pending_count > 0,
            notices=self.active_notices(),
        )

    # ── 状态迁移 ──────────────────────────────────────

    def _set(self, status: FormStatus, kind: Optional[ItemKind] = None):
        logger.debug(f"Form {self._status.value} -> {status.value}")
        self._status = status
        self._kind = kind

    def require_identity(self, kind: ItemKind, owner: Optional[str]):
        """需要钱包地址的指标在未连接时抛出 NoIdentity，并记录提示。"""
        if kind.requires_identity and not owner:
            err = NoIdentity(kind.value)
            self.notify(err.message)
            raise err

    def open_form(self, kind: ItemKind, owner: Optional[str] = None) -> BoardState:
        """
        点击指标按钮：IDLE 时打开表单；已打开时再次点击关闭，与按钮的切换行为一致。
        """
        if self._status == FormStatus.SUBMITTING:
            raise InvalidTransition(self._status.value, "open form")
        self.require_identity(kind, owner)
        if self._status == FormStatus.FORM_OPEN:
            self._set(FormStatus.IDLE)
        else:
            self._set(FormStatus.FORM_OPEN, kind)
        return self.snapshot()

    def close_form(self) -> BoardState:
        if self._status == FormStatus.SUBMITTING:
            raise InvalidTransition(self._status.value, "close form")
        self._set(FormStatus.IDLE)
        return self.snapshot()

    async def submit(
        self,
        token_address: str,
        resolve: Callable[[str, ItemKind], object],
        owner: Optional[str] = None,
    ) -> Optional[GridItem]:
        """
        提交 token 地址：FORM_OPEN -> SUBMITTING，等待解析完成后回到 IDLE。

        resolve(token, kind) 返回 payload 的 awaitable。
        地址为空时不做任何事，保持表单打开。解析失败时返回 None。
        需要钱包的指标在提交时再次检查 owner，缺失时记录提示、抛出 NoIdentity，表单保持打开。
        """
        if self._status != FormStatus.FORM_OPEN:
            raise InvalidTransition(self._status.value, "submit")

        token = token_address.strip()
        if not token:
            return None

        kind = self._kind
        self.require_identity(kind, owner)
        self._set(FormStatus.SUBMITTING, kind)
        try:
            item_id = self._manager.create_item(kind, lambda: resolve(token, kind))
            item = await self._manager.wait(item_id)
        finally:
            self._set(FormStatus.IDLE)

        return item
