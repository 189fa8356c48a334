"""
数据解析器：用 JSONPath 从数据源响应中提取字段。
"""

import logging
from typing import Any

from jsonpath_ng.ext import parse as jp_parse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class FieldMapping(BaseModel):
    name: str
    expr: str  # JSONPath 表达式
    type: str = "str"  # str / int / float / bool / object


def _cast_value(value: Any, type_hint: str) -> Any:
    """将提取的值按类型转换。"""
    if value is None:
        return None
    try:
        if type_hint == "int":
            return int(float(str(value)))
        elif type_hint == "float":
            return float(str(value))
        elif type_hint == "bool":
            return str(value).lower() in ("true", "1", "yes")
        elif type_hint in ("object", "json", "list", "dict"):
            return value
        return str(value)
    except (ValueError, TypeError):
        logger.warning(f"类型转换失败: {value!r} -> {type_hint}")
        return value


def extract_fields(data: dict | list, fields: list[FieldMapping]) -> dict[str, Any]:
    """
    按 FieldMapping 列表提取字段，未匹配的字段为 None。

    Args:
        data: 已解析的 JSON 响应
        fields: 字段映射
    Returns:
        字段名 -> 转换后的值
    """
    result = {}
    for field in fields:
        try:
            matches = jp_parse(field.expr).find(data)
        except Exception as e:
            logger.warning(f"JSONPath 解析错误 [{field.name}]: {e}")
            result[field.name] = None
            continue
        if matches:
            result[field.name] = _cast_value(matches[0].value, field.type)
        else:
            result[field.name] = None
            logger.debug(f"JSONPath '{field.expr}' 无匹配")
    return result
