# src/find_parametric/backend/api/schemas_http/export.py

"""
[职责] export 路由请求体（camelCase）。
[边界] 仅做结构校验；转换为 backend/schemas/export.ExportRequest 后交给 export_service。
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import ConfigDict, Field

from find_parametric.backend.schemas.export import ExportRequest
from find_parametric.backend.schemas.restrictions import QueryRestrictions

from find_parametric.backend.api.schemas_http._common import CamelModel


class ExportBody(CamelModel):
    model_config = ConfigDict(extra="forbid")

    restrictions: QueryRestrictions = Field(default_factory=QueryRestrictions)
    selected_fields: List[str] = Field(default_factory=list)
    total_results: int = Field(..., ge=0)
    page_size: Optional[int] = Field(default=None, ge=1)

    def to_request(self) -> ExportRequest:
        return ExportRequest(
            restrictions=self.restrictions,
            selected_fields=list(self.selected_fields),
            total_results=self.total_results,
            page_size=self.page_size,
        )
