"""
Flexol Board 主入口：启动 FastAPI 后端服务。
"""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flexol.config_loader import AppConfig, load_config
from flexol.board_state import BoardController
from flexol.data_adapter import DataAcquisitionAdapter
from flexol.grid import Viewport
from flexol.item_manager import ItemCollectionManager
from flexol.layout_store import LayoutStore
from flexol import api

# 日志配置
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan 事件处理：启动时恢复布局，关闭时释放连接。"""
    manager = app.state.manager
    store = app.state.layout_store

    restored = manager.restore(store.load_items())
    if restored:
        logger.info(f"启动时恢复了 {restored} 个 item")
    else:
        logger.info("没有存储的布局，从空网格开始")
    manager.subscribe(store.save_items)

    yield  # 应用运行中

    logger.info("正在关闭...")
    await manager.wait_pending()
    await app.state.adapter.close()
    store.close()


def create_app(
    config: AppConfig | None = None,
    layout_store: LayoutStore | None = None,
    adapter: DataAcquisitionAdapter | None = None,
) -> FastAPI:
    """创建并配置 FastAPI 应用。"""
    if config is None:
        logger.info("正在加载配置...")
        config = load_config()

    app = FastAPI(
        title="Flexol Board API",
        description="Grid layout and placement API for token metric widgets",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── 初始化核心组件 ────────────────────────────────────────
    viewport = Viewport(config.board.container_width)
    manager = ItemCollectionManager(config.grid, viewport_width=viewport)
    board = BoardController(manager, notice_ttl=config.board.notice_ttl_seconds)
    if adapter is None:
        adapter = DataAcquisitionAdapter(config.sources)

    # 布局持久化 (TinyDB)
    if layout_store is None:
        layout_store = LayoutStore()

    # 注入依赖到 API 模块
    api.init_api(manager=manager, board=board, adapter=adapter, viewport=viewport)

    # 注册 API 路由
    app.include_router(api.router)

    # 将组件存到 app.state，供 lifespan 访问
    app.state.config = config
    app.state.manager = manager
    app.state.board = board
    app.state.adapter = adapter
    app.state.layout_store = layout_store

    return app


def main():
    """主入口。"""
    config = load_config()
    port = int(sys.argv[1]) if len(sys.argv) > 1 else config.server.port

    logger.info(f"🚀 启动 Flexol Board 后端 (port={port})...")

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
