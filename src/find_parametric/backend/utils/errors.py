# src/find_parametric/backend/utils/errors.py

"""
[职责] 统一领域错误合同（error_code/message/detail/cause）与最小 HTTP 映射策略（http_status/retryable）。
[边界] 不依赖 FastAPI/HTTPException；仅提供错误壳、facet 领域错误分类与校验。
[上游关系] pipelines/services/engine 适配器抛出 DomainError 或其子类。
[下游关系] api/errors.py 使用本模块将异常映射为 ErrorResponse 与 HTTP status。
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from .constants import LAST_GOOD_KEY


ErrorDetail = Dict[str, Any]  # docstring: 错误细节类型（必须 JSON-safe）

ERROR_CODE_PATTERN_AREA = re.compile(r"^[A-Z][A-Z0-9]*(?:__[A-Z0-9]+)+$")  # docstring: AREA__REASON 规范
ERROR_CODE_PATTERN_DOT = re.compile(r"^[a-z][a-z0-9]*(?:\.[a-z0-9_]+)+$")  # docstring: area.reason 规范

STANDARD_ERROR_CODES = {  # docstring: HTTP 层通用错误码集合
    "bad_request",
    "not_found",
    "external_dependency",
    "internal_error",
}

ERROR_HTTP_STATUS_BY_CODE = {  # docstring: 错误码 -> HTTP status
    "bad_request": 400,
    "not_found": 404,
    "external_dependency": 503,
    "internal_error": 500,
    "RESTRICTION__INVALID": 400,
    "ENGINE__TIMEOUT": 504,
    "ENGINE__UNAVAILABLE": 503,
    "EXPORT__INCOMPLETE": 500,
}

ERROR_RETRYABLE_BY_CODE = {  # docstring: 错误码 -> retryable 默认值
    "bad_request": False,
    "not_found": False,
    "external_dependency": True,
    "internal_error": False,
    "RESTRICTION__INVALID": False,
    "ENGINE__TIMEOUT": True,
    "ENGINE__UNAVAILABLE": True,
    "EXPORT__INCOMPLETE": False,
}

INTERNAL_ERROR_CODE = "internal_error"  # docstring: 未知异常统一错误码
INTERNAL_ERROR_MESSAGE = "internal error"  # docstring: 未知异常统一消息


def is_valid_error_code(error_code: str) -> bool:
    """
    [职责] 校验错误码是否满足命名规范或通用错误码列表。
    [边界] 仅做格式校验，不保证全局唯一。
    """

    if not error_code:
        return False  # docstring: 空字符串直接视为无效
    if error_code in STANDARD_ERROR_CODES:
        return True  # docstring: 允许通用 HTTP 错误码
    return bool(
        ERROR_CODE_PATTERN_AREA.match(error_code) or ERROR_CODE_PATTERN_DOT.match(error_code)
    )  # docstring: 推荐格式校验（AREA__REASON / area.reason）


def ensure_json_safe_detail(detail: ErrorDetail) -> ErrorDetail:
    """
    [职责] 校验 detail 是否可 JSON 序列化。
    [边界] detail 必须是 dict；不做降级或裁剪；失败直接抛错由调用方处理。
    """

    if not isinstance(detail, dict):
        raise ValueError("detail must be a dict")  # docstring: 强制 detail 为 dict 结构
    try:
        json.dumps(detail)  # docstring: JSON 序列化校验
    except TypeError as exc:
        raise ValueError("detail must be JSON-serializable") from exc
    return detail


class DomainError(Exception):
    """
    [职责] 领域错误最小合同：统一 error_code/message/detail/cause，并提供 http_status/retryable 提示。
    [边界] 仅表达语义，不承担日志、告警、HTTP 输出。
    [上游关系] pipelines/services 抛出本错误；必要时携带 cause。
    [下游关系] api/errors.py 根据本错误映射 HTTP status 与 ErrorResponse。
    """

    def __init__(
        self,
        *,
        error_code: str,
        message: str,
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
        http_status: Optional[int] = None,
        retryable: Optional[bool] = None,
        allow_nonstandard_code: bool = False,
    ) -> None:
        if not is_valid_error_code(error_code) and not allow_nonstandard_code:
            raise ValueError(f"invalid error_code: {error_code}")  # docstring: 防止不规范错误码泄露
        normalized_detail = detail or {}  # docstring: 归一化 detail，确保 dict
        ensure_json_safe_detail(normalized_detail)

        resolved_http_status = (
            http_status if http_status is not None else ERROR_HTTP_STATUS_BY_CODE.get(error_code, 500)
        )
        resolved_retryable = (
            retryable if retryable is not None else ERROR_RETRYABLE_BY_CODE.get(error_code, False)
        )

        super().__init__(message)
        self.error_code = error_code  # docstring: 稳定错误码
        self.message = message  # docstring: 用户可读错误信息
        self.detail = normalized_detail  # docstring: JSON-safe 细节
        self.cause = cause  # docstring: 上游异常引用
        self.http_status = resolved_http_status  # docstring: HTTP 映射提示
        self.retryable = resolved_retryable  # docstring: 可重试提示

        if cause is not None:
            self.__cause__ = cause  # docstring: 保留异常链路

    def to_dict(self) -> Dict[str, Any]:
        """
        [职责] 输出 ErrorResponse.error 结构（不包含 trace_id）。
        [边界] 不做字段脱敏；不包含 cause。
        """

        return {
            "code": self.error_code,
            "message": self.message,
            "detail": self.detail,
            "retryable": self.retryable,
        }


class BadRequestError(DomainError):
    """表达 400 Bad Request 语义的标准错误（参数不合法）。"""

    def __init__(
        self,
        *,
        message: str = "bad request",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            error_code="bad_request",
            message=message,
            detail=detail,
            cause=cause,
            http_status=400,
            retryable=False,
        )


class NotFoundError(DomainError):
    """表达 404 Not Found 语义的标准错误（快照/标签/widget 缺失）。"""

    def __init__(
        self,
        *,
        message: str = "not found",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            error_code="not_found",
            message=message,
            detail=detail,
            cause=cause,
            http_status=404,
            retryable=False,
        )


class ExternalDependencyError(DomainError):
    """
    [职责] 表达外部依赖故障语义的标准错误（默认 503，可重试）。
    [边界] 不绑定具体引擎实现；仅表达依赖不可用。
    [上游关系] engine 适配器捕获第三方异常后抛出。
    [下游关系] api/errors.py 映射为 5xx + ErrorResponse。
    """

    def __init__(
        self,
        *,
        message: str = "external dependency error",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
        retryable: Optional[bool] = None,
        error_code: str = "external_dependency",
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(
            error_code=error_code,
            message=message,
            detail=detail,
            cause=cause,
            http_status=http_status,
            retryable=retryable if retryable is not None else True,
        )


class InternalError(DomainError):
    """
    [职责] 表达未知异常的内部错误（500）语义。
    [边界] 不暴露原始异常堆栈到 message/detail。
    """

    def __init__(
        self,
        *,
        message: str = INTERNAL_ERROR_MESSAGE,
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            error_code=INTERNAL_ERROR_CODE,
            message=message,
            detail=detail,
            cause=cause,
            http_status=500,
            retryable=False,
        )


class InvalidRestrictionError(DomainError):
    """
    [职责] restriction 组合/解析失败（minDate > maxDate、minScore < 0、非法 fieldText/快照）。
    [边界] 可恢复：调用方丢弃 delta 并保留原 restriction 状态。
    [上游关系] pipelines/restriction 在 compose/deserialize/field text 解析时抛出。
    [下游关系] sync controller 拒绝该交互；api 映射为 400。
    """

    def __init__(
        self,
        *,
        message: str = "invalid restriction",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            error_code="RESTRICTION__INVALID",
            message=message,
            detail=detail,
            cause=cause,
            http_status=400,
            retryable=False,
        )


class EngineError(ExternalDependencyError):
    """
    [职责] 引擎调用失败的公共父类：携带 last-known-good 状态，UI 可继续展示旧结果。
    [边界] last_good 必须 JSON-safe；仅在调用方持有旧状态时附带。
    [上游关系] engine 适配器抛出；sync controller 补充 last_good 后再抛出。
    [下游关系] api/errors.py 映射为 503/504。
    """

    def __init__(
        self,
        *,
        error_code: str,
        message: str,
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
        last_good: Optional[Mapping[str, Any]] = None,
    ) -> None:
        merged = dict(detail or {})
        if last_good is not None:
            merged[LAST_GOOD_KEY] = dict(last_good)  # docstring: 附带 last-known-good 状态
        super().__init__(
            error_code=error_code,
            message=message,
            detail=merged,
            cause=cause,
            retryable=True,
            http_status=ERROR_HTTP_STATUS_BY_CODE[error_code],
        )

    @property
    def last_good(self) -> Optional[Dict[str, Any]]:
        value = self.detail.get(LAST_GOOD_KEY)
        return dict(value) if isinstance(value, dict) else None

    def with_last_good(self, last_good: Mapping[str, Any]) -> "EngineError":
        """Return a copy of this error carrying the caller's last-known-good state."""
        detail = {k: v for k, v in self.detail.items() if k != LAST_GOOD_KEY}
        clone = type(self).__new__(type(self))
        EngineError.__init__(
            clone,
            error_code=self.error_code,
            message=self.message,
            detail=detail,
            cause=self.cause,
            last_good=last_good,
        )
        return clone


class EngineTimeoutError(EngineError):
    """引擎调用超过调用方给定的 timeout（可重试，绝不以空结果代替）。"""

    def __init__(
        self,
        *,
        message: str = "engine request timed out",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
        last_good: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(
            error_code="ENGINE__TIMEOUT",
            message=message,
            detail=detail,
            cause=cause,
            last_good=last_good,
        )


class EngineUnavailableError(EngineError):
    """引擎不可达或返回 5xx（可重试）。"""

    def __init__(
        self,
        *,
        message: str = "engine unavailable",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
        last_good: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(
            error_code="ENGINE__UNAVAILABLE",
            message=message,
            detail=detail,
            cause=cause,
            last_good=last_good,
        )


class ExportIncompleteError(DomainError):
    """
    [职责] 导出分页在重试后仍失败：当前导出作废（sink 已部分写入，调用方必须丢弃）。
    [边界] 不自动重试整个导出。
    [上游关系] pipelines/export/pager.py 抛出。
    [下游关系] export_service 丢弃缓冲并返回错误响应。
    """

    def __init__(
        self,
        *,
        message: str = "export incomplete",
        detail: Optional[ErrorDetail] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            error_code="EXPORT__INCOMPLETE",
            message=message,
            detail=detail,
            cause=cause,
            http_status=500,
            retryable=False,
        )


def to_http_error(
    error: Exception,
    *,
    trace_id: Optional[str] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    [职责] 将异常转换为 HTTP status + ErrorResponse payload（不耦合 FastAPI）。
    [边界] 不注入 request_id；不做日志记录。
    [上游关系] api/errors.py 捕获异常后调用。
    [下游关系] routers 返回统一 ErrorResponse。
    """

    if isinstance(error, DomainError):
        status_code = error.http_status
        payload = {"error": error.to_dict()}
    else:
        status_code = ERROR_HTTP_STATUS_BY_CODE[INTERNAL_ERROR_CODE]  # docstring: 未知异常统一 500
        payload = {
            "error": {
                "code": INTERNAL_ERROR_CODE,
                "message": INTERNAL_ERROR_MESSAGE,
                "detail": {},
                "retryable": False,
            }
        }

    if trace_id:
        payload["error"]["trace_id"] = trace_id  # docstring: API 层注入 trace_id

    return status_code, payload
