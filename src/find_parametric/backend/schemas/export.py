# src/find_parametric/backend/schemas/export.py

"""
[职责] Export 契约层：导出格式枚举、导出请求与结果行结构。
[边界] 不包含写出逻辑（pipelines/export 负责）。
[上游关系] api/routers/export.py 解析请求后构造 ExportRequest。
[下游关系] export_service / ExportPager。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .restrictions import QueryRestrictions


class ExportFormat(str, Enum):
    """支持的导出格式（每种格式对应一个 ExportStrategy）。"""

    CSV = "csv"
    JSON = "json"


class ExportRequest(BaseModel):
    """
    [职责] 一次导出：restrictions + 选中字段 + 结果总数（决定分页数）。
    [边界] total_results 由调用方提供（通常来自前一次搜索结果计数），不在导出中重新计算。
    """

    model_config = ConfigDict(extra="forbid")

    restrictions: QueryRestrictions = Field(default_factory=QueryRestrictions)
    selected_fields: List[str] = Field(default_factory=list)  # docstring: 选中字段（空表示全部元数据列）
    total_results: int = Field(..., ge=0)
    page_size: Optional[int] = Field(default=None, ge=1)  # docstring: 覆盖默认分页大小


class ResultDocument(BaseModel):
    """engine 返回的一条结果（export 行的来源）。"""

    reference: str
    database: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None
    date: Optional[str] = None  # docstring: ISO 字符串
    weight: Optional[float] = None
    fields: Dict[str, List[Any]] = Field(default_factory=dict)  # docstring: 自定义字段（可多值）
