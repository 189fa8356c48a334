"""
配置加载器：将 YAML 配置文件解析为 Pydantic 模型。
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


# ── 网格配置 ──────────────────────────────────────────

class GridConfig(BaseModel):
    cell_size: int = 150  # 每个格子的像素边长
    max_cols: int = 6  # 每行最多 6 个 item
    # None: 行扫描无上限；整数: 只扫描前 N 行，占满后退回原点
    max_row_scan: Optional[int] = None

    @field_validator("cell_size", "max_cols")
    @classmethod
    def check_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("max_row_scan")
    @classmethod
    def check_scan_window(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("max_row_scan must be >= 1 or null")
        return v


# ── 数据源配置 ────────────────────────────────────────

class SourcesConfig(BaseModel):
    search_url: str = "https://api.dexscreener.com/latest/dex/search"
    trade_count_url: str = "http://localhost:3000/api/tradecount"
    pnl_url: str = "http://localhost:3000/api/pnl"
    timeout: float = 30.0


# ── 面板配置 ──────────────────────────────────────────

class BoardConfig(BaseModel):
    notice_ttl_seconds: float = 3.0
    container_width: float = 900.0  # 视口宽度初始值，前端 resize 后通过 API 更新


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8400
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"])


# ── 顶层配置 ──────────────────────────────────────────

class AppConfig(BaseModel):
    grid: GridConfig = Field(default_factory=GridConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    board: BoardConfig = Field(default_factory=BoardConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


# ── Loading ───────────────────────────────────────────

_CONFIG_SEARCH_PATHS = [
    "config/config.yaml",
    "config.yaml",
]


def find_config_root() -> Path:
    """Find the root config file or directory."""
    base = Path(os.getenv("FLEXOL_ROOT", "."))
    config_dir = base / "config"
    if config_dir.is_dir():
        return config_dir

    for p in _CONFIG_SEARCH_PATHS:
        path = base / p
        if path.exists():
            return path

    # 不存在时 load_all_yamls 返回空配置
    return config_dir


def deep_merge_dict(base: dict, update: dict) -> dict:
    """Deep merge two dictionaries, later values win."""
    for k, v in update.items():
        if isinstance(v, dict) and k in base and isinstance(base[k], dict):
            base[k] = deep_merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def load_all_yamls(root: Path) -> dict:
    """Load and merge all YAML files under root (or root itself if it is a file)."""
    combined: dict = {}

    files = []
    if root.is_file():
        files.append(root)
    elif root.is_dir():
        files.extend(root.glob("*.yaml"))
        files.extend(root.glob("*.yml"))
        files.sort()

    for f in files:
        try:
            with open(f, "r", encoding="utf-8") as fp:
                content = yaml.safe_load(fp)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"读取配置文件失败 {f}: {e}")
            continue
        if not content:
            continue
        if not isinstance(content, dict):
            logger.warning(f"配置文件 {f} 顶层不是映射，已忽略")
            continue
        deep_merge_dict(combined, content)

    return combined


def load_config(path: Optional[str | Path] = None) -> AppConfig:
    """
    Load and merge configuration from YAML files.
    缺少配置文件时使用默认值。
    """
    if path is None:
        path = find_config_root()
    path = Path(path)

    raw = load_all_yamls(path)
    return AppConfig.model_validate(raw)
