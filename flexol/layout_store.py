"""
布局存储：基于 TinyDB 持久化已提交的 item 列表。
作为 ItemCollectionManager 的观察者，在每次成功创建或移动后写入快照。
"""

import logging
import os
import time
from pathlib import Path

from pydantic import ValidationError
from tinydb import Query, TinyDB

from flexol.models import GridItem

logger = logging.getLogger(__name__)

_DATA_DIR = Path(os.getenv("FLEXOL_ROOT", ".")) / "data"


class LayoutStore:
    """TinyDB 数据操作封装。"""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            db_path = _DATA_DIR / "layout.json"
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db = TinyDB(str(db_path), indent=2, ensure_ascii=False)
        self.items_table = self.db.table("items")
        self.meta_table = self.db.table("meta")
        logger.info(f"TinyDB 数据库已打开: {db_path}")

    # ── 写入 ──────────────────────────────────────────

    def save_items(self, items: list[GridItem]):
        """用当前快照整体替换存储的 item 列表，保留插入顺序。"""
        self.items_table.truncate()
        self.items_table.insert_multiple(
            {"order": i, **item.model_dump(mode="json")} for i, item in enumerate(items)
        )
        Meta = Query()
        self.meta_table.upsert({"key": "layout", "updated_at": time.time()}, Meta.key == "layout")
        logger.debug(f"布局已保存 ({len(items)} items)")

    # ── 查询 ──────────────────────────────────────────

    def load_items(self) -> list[GridItem]:
        """按保存时的顺序读取 item，无法解析的记录会被跳过。"""
        records = sorted(self.items_table.all(), key=lambda r: r.get("order", 0))
        items = []
        for record in records:
            data = {k: v for k, v in record.items() if k != "order"}
            try:
                items.append(GridItem.model_validate(data))
            except ValidationError as e:
                logger.warning(f"跳过无效的布局记录 {data.get('id')}: {e}")
        return items

    def updated_at(self) -> float | None:
        Meta = Query()
        results = self.meta_table.search(Meta.key == "layout")
        return results[0]["updated_at"] if results else None

    # ── 管理 ──────────────────────────────────────────

    def clear(self):
        self.items_table.truncate()
        self.meta_table.truncate()

    def close(self):
        """关闭数据库。"""
        self.db.close()
