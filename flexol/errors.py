"""
异常定义：数据获取失败、缺少钱包身份、布局扫描耗尽、非法状态迁移。
"""


class FlexolError(Exception):
    """Base class for board errors."""


class NoIdentity(FlexolError):
    """自定义异常：指标需要钱包地址，但当前未连接。"""

    def __init__(self, kind: str, message: str = "No wallet connected"):
        self.kind = kind
        self.message = message
        super().__init__(message)


class DataUnavailable(FlexolError):
    """数据源无法解析出 payload（网络错误、无行情、响应格式错误）。"""

    def __init__(self, token_address: str, message: str):
        self.token_address = token_address
        self.message = message
        super().__init__(f"[{token_address}] {message}")


class PlacementExhausted(FlexolError):
    """Bounded scan window has no free cell left."""

    def __init__(self, rows: int, cols: int):
        self.rows = rows
        self.cols = cols
        super().__init__(f"No free cell within {rows} rows x {cols} cols")


class InvalidTransition(FlexolError):
    """Board form flow received an action that is not valid in its current status."""

    def __init__(self, status: str, action: str):
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} while {status}")
