# src/find_parametric/backend/utils/logging_.py

"""
[职责] 定义结构化日志字段规范与统一 logger 获取方式，提供 JSON 格式化与安全输出 helper。
[边界] 不绑定具体日志后端；不强制 trace_id 注入，仅提供工具。
[上游关系] services/pipelines/api 通过 get_logger/log_event 组织日志上下文。
[下游关系] 日志后端（stdout/file）消费结构化字段做检索与排障。
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .constants import TRACE_FIELD_KEYS


DEFAULT_LOGGER_NAME = "find_parametric"  # docstring: 统一 logger 根名称
DEFAULT_LOG_LEVEL = logging.INFO  # docstring: 默认日志级别
DEFAULT_MAX_TEXT_LEN = 160  # docstring: 安全文本预览长度
_HANDLER_NAME = "structured_json"

_LOG_RECORD_RESERVED = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}  # docstring: LogRecord 内置字段（不作为结构化额外字段）


class StructuredLogFormatter(logging.Formatter):
    """
    [职责] 将 LogRecord 转换为 JSON 字符串（基础字段 + extra）。
    [边界] 不做敏感字段识别；由调用方避免记录原始查询全文。
    """

    def __init__(self, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self._ensure_ascii = ensure_ascii

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _LOG_RECORD_RESERVED or value is None:
                continue  # docstring: 仅保留非空 extra 字段
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info

        return json.dumps(payload, ensure_ascii=self._ensure_ascii, default=str)


def _coerce_level(level: Any) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else DEFAULT_LOG_LEVEL


def configure_logging(
    *,
    logger_name: str = DEFAULT_LOGGER_NAME,
    level: Any = None,
    ensure_ascii: bool = True,
) -> logging.Logger:
    """
    [职责] 配置统一的 base logger（JSON formatter）；级别默认取 settings.FIND_PARAMETRIC_LOG_LEVEL。
    [边界] 不触碰 root logger；重复调用不会重复挂载 handler。
    [上游关系] 进程入口（create_app / scripts）或 get_logger 调用。
    [下游关系] get_logger 复用已配置的 base logger。
    """

    if level is None:
        from find_parametric.config import settings

        level = settings.FIND_PARAMETRIC_LOG_LEVEL  # docstring: 环境驱动的默认级别
    resolved = _coerce_level(level)

    logger = logging.getLogger(logger_name)
    logger.setLevel(resolved)

    has_handler = any(getattr(h, "name", "") == _HANDLER_NAME for h in logger.handlers)
    if not has_handler:
        handler = logging.StreamHandler()
        handler.name = _HANDLER_NAME  # docstring: 标记 handler，避免重复挂载
        handler.setFormatter(StructuredLogFormatter(ensure_ascii=ensure_ascii))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None, *, level: Optional[int] = None) -> logging.Logger:
    """
    [职责] 获取项目统一 logger（自动确保 base logger 已配置）。
    [边界] 子 logger 统一挂载在 find_parametric 根下。
    """

    base = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not any(getattr(h, "name", "") == _HANDLER_NAME for h in base.handlers):
        configure_logging()  # docstring: 首次使用时初始化
    full_name = name or DEFAULT_LOGGER_NAME
    if name and not name.startswith(DEFAULT_LOGGER_NAME):
        full_name = f"{DEFAULT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(full_name)
    if level is not None:
        logger.setLevel(level)
    return logger


def build_log_fields(
    *,
    context: Optional[Any] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    [职责] 统一构建结构化日志字段（trace/request/generation/field 等）。
    [边界] 不生成缺失 trace_id；不校验字段合法性。
    [上游关系] services/pipelines 传入 ctx（FacetContext / TraceContext / dict）或显式字段。
    [下游关系] logger.extra 供 StructuredLogFormatter 输出。
    """

    fields: Dict[str, Any] = {}
    if context is not None:
        for key in TRACE_FIELD_KEYS:
            value = _read_context_value(context, key)
            if value is not None:
                fields[key] = value if isinstance(value, int) else str(value)  # docstring: generation 保持数值
    if extra:
        for key, value in extra.items():
            if value is not None:
                fields[key] = value
    return fields


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    context: Optional[Any] = None,
    fields: Optional[Mapping[str, Any]] = None,
    exc_info: Optional[Any] = None,
) -> None:
    """统一记录结构化日志（可自动附加 trace 字段）。"""

    extra = build_log_fields(context=context, extra=fields)
    logger.log(level, message, extra=extra, exc_info=exc_info)


def truncate_text(text: Optional[str], *, max_len: int = DEFAULT_MAX_TEXT_LEN) -> Optional[str]:
    """截断长文本（查询文本只记录预览）。"""

    if text is None:
        return None
    s = str(text)
    if len(s) <= max_len:
        return s
    return f"{s[:max_len]}...(truncated)"


def hash_text(text: Optional[str]) -> Optional[str]:
    """生成文本 sha256 摘要（日志中定位同一查询而不记录原文）。"""

    if text is None:
        return None
    s = str(text)
    if not s:
        return ""
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _read_context_value(context: Any, key: str) -> Optional[Any]:
    if isinstance(context, Mapping):
        return context.get(key)
    return getattr(context, key, None)
