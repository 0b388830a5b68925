# src/find_parametric/backend/engine/memory.py
"""
[职责] InMemoryEngine：进程内参考引擎（本地运行与测试），对文档列表评估 restrictions 并返回字段统计/值计数/结果页。
[边界] 不做排名与语言学分析：queryText 为大小写不敏感的 concept 包含匹配；weight 作为 score。
[上游关系] services/app 在未配置 FIND_PARAMETRIC_ENGINE_URL 时装配；测试 fixture 直接构造。
[下游关系] FieldStatisticsEngine 合同（bucketing/values/export pipelines）。
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from find_parametric.backend.pipelines.restriction.fieldtext import FieldTextTerm, parse_field_text
from find_parametric.backend.pipelines.restriction.model import query_concepts
from find_parametric.backend.schemas.export import ResultDocument
from find_parametric.backend.schemas.parametric import FieldKind, FieldValueCount, TagValues
from find_parametric.backend.schemas.restrictions import ParametricRequest, QueryRestrictions, SortParam, normalize_datetime
from .base import FieldStatistics, FieldStatisticsEngine


def to_epoch_seconds(value: Any) -> float:
    """datetime / ISO string / number -> epoch seconds (naive treated as UTC)."""
    if isinstance(value, datetime):
        return normalize_datetime(value).timestamp()
    if isinstance(value, str):
        return normalize_datetime(datetime.fromisoformat(value.replace("Z", "+00:00"))).timestamp()
    return float(value)


@dataclass
class EngineDocument:
    """一条可检索文档；fields 为多值字段（field -> values）。"""

    reference: str
    database: str = "default"
    title: str = ""
    summary: str = ""
    date: Optional[datetime] = None
    weight: float = 100.0
    fields: Dict[str, List[Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.date, str):
            self.date = datetime.fromisoformat(self.date.replace("Z", "+00:00"))
        self.date = normalize_datetime(self.date)
        self.fields = {
            k: (list(v) if isinstance(v, (list, tuple)) else [v]) for k, v in self.fields.items()
        }  # docstring: 单值统一为列表

    def haystack(self) -> str:
        parts = [self.title, self.summary]
        for values in self.fields.values():
            parts.extend(str(v) for v in values)
        return " ".join(parts).lower()

    def to_result(self) -> ResultDocument:
        return ResultDocument(
            reference=self.reference,
            database=self.database,
            title=self.title,
            summary=self.summary,
            date=self.date.isoformat() if self.date else None,
            weight=self.weight,
            fields={k: list(v) for k, v in self.fields.items()},
        )


class InMemoryEngine(FieldStatisticsEngine):
    """
    [职责] 以文档列表为数据源的权威引擎实现。
    [边界] field_kinds 声明可分桶字段（Numeric/Date）；其余字段只参与值计数与 MATCH。
    """

    def __init__(
        self,
        documents: Iterable[EngineDocument],
        *,
        field_kinds: Optional[Mapping[str, FieldKind]] = None,
        states: Optional[Mapping[str, Iterable[str]]] = None,
        display_values: Optional[Mapping[str, Mapping[str, str]]] = None,
    ) -> None:
        self._documents: List[EngineDocument] = list(documents)
        self._field_kinds: Dict[str, FieldKind] = {k: FieldKind(v) for k, v in (field_kinds or {}).items()}
        self._states: Dict[str, Set[str]] = {k: set(v) for k, v in (states or {}).items()}
        self._display_values: Dict[str, Dict[str, str]] = {
            k: dict(v) for k, v in (display_values or {}).items()
        }

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryEngine":
        """Load {"fieldKinds": {...}, "states": {...}, "documents": [...]}."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_payload(payload)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InMemoryEngine":
        docs = [EngineDocument(**d) for d in payload.get("documents", [])]
        return cls(
            docs,
            field_kinds=payload.get("fieldKinds") or {},
            states=payload.get("states") or {},
            display_values=payload.get("displayValues") or {},
        )

    @property
    def documents(self) -> List[EngineDocument]:
        return list(self._documents)

    def field_kind(self, field_name: str) -> FieldKind:
        return self._field_kinds.get(field_name, FieldKind.NUMERIC)

    def add_state(self, token: str, references: Iterable[str]) -> None:
        self._states[token] = set(references)

    # --- restriction evaluation ---

    def _matches_term(self, doc: EngineDocument, term: FieldTextTerm) -> bool:
        values = doc.fields.get(term.field_name)
        if not values:
            return False
        if term.operator == "MATCH":
            wanted = {v.lower() for v in term.values}
            return any(str(v).lower() in wanted for v in values)
        lo, hi = term.range
        for v in values:
            try:
                x = to_epoch_seconds(v) if term.operator == "RANGE" else float(v)
            except (TypeError, ValueError):
                continue
            if lo <= x <= hi:
                return True
        return False

    def _matching(self, restrictions: QueryRestrictions) -> List[EngineDocument]:
        terms = parse_field_text(restrictions.field_text)
        concepts = [c.lower() for c in query_concepts(restrictions)]
        databases = set(restrictions.databases)
        allowed: Optional[Set[str]] = None
        if restrictions.state_match_ids:
            allowed = set()
            for token in restrictions.state_match_ids:
                allowed |= self._states.get(token, set())

        out: List[EngineDocument] = []
        for doc in self._documents:
            if databases and doc.database not in databases:
                continue
            if doc.weight < restrictions.min_score:
                continue
            if restrictions.min_date is not None and (doc.date is None or doc.date < restrictions.min_date):
                continue
            if restrictions.max_date is not None and (doc.date is None or doc.date > restrictions.max_date):
                continue
            if allowed is not None and doc.reference not in allowed:
                continue
            if concepts:
                hay = doc.haystack()
                if not all(c in hay for c in concepts):
                    continue
            if not all(self._matches_term(doc, t) for t in terms):
                continue
            out.append(doc)
        return out

    # --- FieldStatisticsEngine hooks ---

    async def _query_field_statistics(self, restrictions: QueryRestrictions, field_name: str) -> FieldStatistics:
        kind = self.field_kind(field_name)
        matching = self._matching(restrictions)
        values: List[float] = []
        for doc in matching:
            raw = doc.fields.get(field_name)
            if not raw:
                continue  # docstring: 缺字段文档不参与分桶
            try:
                values.append(to_epoch_seconds(raw[0]) if kind == FieldKind.DATE else float(raw[0]))
            except (TypeError, ValueError):
                continue
        return FieldStatistics(
            field_name=field_name,
            kind=kind,
            values=tuple(values),
            total_matching=len(matching),
        )

    def _sorted_counts(self, counts: Counter, sort: SortParam) -> List[Tuple[str, int]]:
        if sort == SortParam.NUMBER_INCREASING:

            def number_key(item: Tuple[str, int]) -> Tuple[int, float, str]:
                try:
                    return (0, float(item[0]), item[0])
                except ValueError:
                    return (1, 0.0, item[0])

            return sorted(counts.items(), key=number_key)
        return sorted(counts.items(), key=lambda item: (-item[1], item[0]))

    async def _query_tag_values(self, request: ParametricRequest) -> List[TagValues]:
        matching = self._matching(request.restrictions)
        results: List[TagValues] = []
        for name in request.field_names:
            counts: Counter = Counter()
            for doc in matching:
                for v in dict.fromkeys(str(x) for x in doc.fields.get(name, [])):
                    counts[v] += 1  # docstring: 同一文档同值只计一次
            ordered = self._sorted_counts(counts, request.sort)
            upper = request.max_values if request.max_values is not None else len(ordered)
            window = ordered[request.start - 1 : upper]  # docstring: start/max_values 为绝对位置
            display = self._display_values.get(name, {})
            results.append(
                TagValues(
                    field_name=name,
                    display_name=name,
                    values=[FieldValueCount(value=v, display_value=display.get(v, v), count=c) for v, c in window],
                    total_values=len(ordered),
                )
            )
        return results

    async def _query_documents(
        self,
        restrictions: QueryRestrictions,
        *,
        start: int,
        max_results: int,
        fields: Sequence[str],
    ) -> List[ResultDocument]:
        matching = sorted(self._matching(restrictions), key=lambda d: (-d.weight, d.reference))
        return [d.to_result() for d in matching[start : start + max_results]]
