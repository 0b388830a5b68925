# src/find_parametric/backend/utils/constants.py

"""
[职责] 集中定义默认常量与协议字段名（HTTP 参数名/日志字段/标签格式/导出默认值），降低跨模块硬编码。
[边界] 不包含运行时可变配置；不读取环境变量；运行时可调参数在 config.Settings 中。
[上游关系] services/pipelines/api 在构建请求、标签、日志与响应时引用这些稳定字段与默认值。
[下游关系] 前端与快照持久化依赖这些字段名保持稳定。
"""

from __future__ import annotations


PARAMETRIC_VALUES_PATH = "/api/public/parametric"  # docstring: parametric 路由前缀
RESTRICTED_VALUES_PATH = "/restricted"  # docstring: restricted-values 子路径
BUCKET_VALUES_PATH = "/buckets"  # docstring: bucketed-values 子路径
DEPENDENT_VALUES_PATH = "/dependent-values"  # docstring: dependent-values 子路径
EXPORT_PATH = "/api/bi/export"  # docstring: export 路由前缀
SAVED_SNAPSHOT_PATH = "/api/bi/saved-snapshot"  # docstring: saved snapshot 路由前缀

FIELD_NAMES_PARAM = "fieldNames"
QUERY_TEXT_PARAM = "queryText"
FIELD_TEXT_PARAM = "fieldText"
DATABASES_PARAM = "databases"
MIN_DATE_PARAM = "minDate"
MAX_DATE_PARAM = "maxDate"
MIN_SCORE_PARAM = "minScore"
STATE_TOKEN_PARAM = "stateTokens"
TARGET_NUMBER_OF_BUCKETS_PARAM = "targetNumberOfBuckets"
BUCKET_MIN_PARAM = "bucketMin"
BUCKET_MAX_PARAM = "bucketMax"

DEFAULT_QUERY_TEXT = "*"  # docstring: 未指定 queryText 时匹配全部
DEFAULT_FIELD_TEXT = ""  # docstring: 未指定 fieldText 时无字段约束
DEFAULT_MIN_SCORE = 0  # docstring: 默认最低相关度

DATE_LABEL_FORMAT = "%Y/%m/%d %H:%M"  # docstring: 日期标签格式（含 / 与 :）
RANGE_SEPARATOR = " – "  # docstring: 区间标签分隔符（en dash）
LABEL_SEPARATOR = ": "  # docstring: 标签标题与区间的分隔

DEFAULT_VALUES_PAGE_SIZE = 20  # docstring: parametric 值分页默认页大小
DEFAULT_SIGNIFICANT_FIGURES = 3  # docstring: 数值标签有效数字

TRACE_ID_KEY = "trace_id"  # docstring: trace_id 字段
REQUEST_ID_KEY = "request_id"  # docstring: request_id 字段
GENERATION_KEY = "generation"  # docstring: restriction generation 字段
FIELD_NAME_KEY = "field_name"  # docstring: 字段名字段
WIDGET_ID_KEY = "widget_id"  # docstring: widget_id 字段
SNAPSHOT_ID_KEY = "snapshot_id"  # docstring: snapshot_id 字段
EXPORT_FORMAT_KEY = "export_format"  # docstring: export_format 字段

TRACE_FIELD_KEYS = (  # docstring: 结构化日志推荐字段集合
    TRACE_ID_KEY,
    REQUEST_ID_KEY,
    GENERATION_KEY,
    FIELD_NAME_KEY,
    WIDGET_ID_KEY,
    SNAPSHOT_ID_KEY,
    EXPORT_FORMAT_KEY,
)

TIMING_MS_KEY = "timing_ms"  # docstring: timing_ms 字段
TIMING_TOTAL_KEY = "total"  # docstring: timing_ms 的总耗时 key（短形式）
TIMING_TOTAL_MS_KEY = "total_ms"  # docstring: timing_ms 的总耗时 key（含单位）

LAST_GOOD_KEY = "last_good"  # docstring: 引擎错误携带的 last-known-good 状态字段
