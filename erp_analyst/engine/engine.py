"""Declarative query engine.

Translates a QuerySpec into ``read_group`` / ``search_read`` calls on an
OdooClient and post-processes the rows into AggregationResult or
ListResult. Every query goes through build_domain(), so flat totals,
grouped breakdowns and both sides of a comparison share one state filter.

Example usage:
    engine = QueryEngine(client, timezone="America/Argentina/Buenos_Aires")
    outcome = await engine.run(QuerySpec(
        model="sale.order", group_by=["partner_id"], period="this month", limit=10,
    ))
    if outcome.success:
        print(outcome.result.grouped)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from erp_analyst.config import DEFAULT_TIMEZONE
from erp_analyst.engine.aggregation import flat_total, rows_to_groups, sort_groups, summarize_groups
from erp_analyst.engine.comparisons import calculate_variation, compare_grouped
from erp_analyst.engine.domain import build_domain
from erp_analyst.engine.entities import get_profile
from erp_analyst.engine.insights import extract_insights
from erp_analyst.engine.models import (
    AggregationResult,
    Comparison,
    DateRange,
    GroupTotal,
    GroupVariation,
    ListResult,
    PeriodSummary,
    QueryEngineError,
    QueryOperation,
    QuerySpec,
)
from erp_analyst.engine.periods import previous_period, resolve_date_range, today_in
from erp_analyst.erp.client import OdooClient
from erp_analyst.erp.models import RpcResult
from erp_analyst.errors.registry import ErrorKind
from erp_analyst.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 80

# sale.order has no product; product breakdowns are answered from its lines
_ORDER_TO_LINE_FIELDS = {"partner_id": "order_partner_id"}


@dataclass(frozen=True)
class PreparedQuery:
    """A QuerySpec after model correction, period resolution and domain building."""

    model: str
    domain: list[Any]
    date_range: DateRange | None
    amount_field: str | None
    group_by: list[str]
    limit: int | None
    order: str | None
    fields: list[str] | None
    offset: int | None = None


@dataclass(frozen=True)
class _RawAggregate:
    total: float
    count: int
    groups: list[tuple[str, GroupTotal]] | None


@dataclass(frozen=True)
class EngineOutcome:
    """Non-raising outcome of QueryEngine.run()."""

    result: AggregationResult | ListResult | None = None
    error: QueryEngineError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def _rename_field(spec: str, mapping: dict[str, str]) -> str:
    field, sep, rest = spec.partition(":")
    return mapping.get(field, field) + sep + rest


def _raise_for(result: RpcResult, operation: str, model: str) -> None:
    """Convert a failed transport result into a typed engine error."""
    if result.success:
        return
    detail = result.error or "unknown error"
    if result.error_kind is ErrorKind.AUTH:
        raise QueryEngineError.from_code("E-2002", detail=detail)
    if result.error_kind is ErrorKind.VALIDATION:
        raise QueryEngineError.from_code("E-1005", model=model, detail=detail)
    raise QueryEngineError.from_code("E-3001", operation=operation, model=model, detail=detail)


class QueryEngine:
    """Runs QuerySpecs against one tenant's ERP.

    Attributes:
        client: Transport client bound to the tenant's credentials.
        timezone: IANA timezone used to resolve relative periods.
    """

    def __init__(
        self,
        client: OdooClient,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        today: date | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Transport client.
            timezone: IANA timezone for "today".
            today: Fixed reference date (tests and replays). Defaults to the
                current date in ``timezone``.
        """
        self.client = client
        self.timezone = timezone
        self._today = today

    def today(self) -> date:
        """Reference date for relative periods and filters."""
        return self._today or today_in(self.timezone)

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------

    def prepare(self, spec: QuerySpec, date_range: DateRange | None = None) -> PreparedQuery:
        """Resolve model, period and domain for a spec.

        Args:
            spec: The query description.
            date_range: Overrides the query's own period (used for the
                previous side of a comparison).

        Raises:
            QueryEngineError: On unresolvable periods or filter phrases.
        """
        model = spec.model
        group_by = list(spec.group_by)
        base = list(spec.domain)
        amount_field = spec.amount_field
        date_field = spec.date_field

        if model == "sale.order" and any(g.split(":", 1)[0] == "product_id" for g in group_by):
            logger.info("Rewriting sale.order product breakdown to sale.order.line")
            model = "sale.order.line"
            group_by = [_rename_field(g, _ORDER_TO_LINE_FIELDS) for g in group_by]
            base = [
                [_ORDER_TO_LINE_FIELDS.get(c[0], c[0]), c[1], c[2]] if isinstance(c, (list, tuple)) and len(c) == 3 else c
                for c in base
            ]
            if amount_field in ("amount_total", "amount_untaxed"):
                amount_field = None
            if date_field == "date_order":
                date_field = None

        profile = get_profile(model)
        today = self.today()
        resolved_range = date_range or resolve_date_range(spec.date_range, spec.period, today=today)
        domain = build_domain(
            model,
            base=base,
            filter_text=spec.filter,
            date_range=resolved_range,
            date_field=date_field,
            state=spec.state,
            today=today,
        )
        return PreparedQuery(
            model=model,
            domain=domain,
            date_range=resolved_range,
            amount_field=amount_field or profile.amount_field,
            group_by=group_by,
            limit=spec.limit,
            order=spec.order,
            fields=spec.fields,
            offset=spec.offset,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _fetch_aggregate(self, q: PreparedQuery) -> _RawAggregate:
        aggregates = [f"{q.amount_field}:sum"] if q.amount_field else []
        if q.group_by:
            result = await self.client.read_group(
                q.model, q.domain, aggregates, q.group_by, order_by=q.order, lazy=False,
            )
            _raise_for(result, "read_group", q.model)
            groups = rows_to_groups(result.data, q.group_by, q.amount_field)
            return _RawAggregate(
                total=sum(g.total for _, g in groups),
                count=sum(g.count for _, g in groups),
                groups=groups,
            )

        if not q.amount_field:
            result = await self.client.search_count(q.model, q.domain)
            _raise_for(result, "search_count", q.model)
            return _RawAggregate(total=0.0, count=result.data, groups=None)

        result = await self.client.read_group(q.model, q.domain, aggregates, [], lazy=False)
        _raise_for(result, "read_group", q.model)
        total, count = flat_total(result.data, q.amount_field)
        return _RawAggregate(total=total, count=count, groups=None)

    def _build_result(
        self,
        q: PreparedQuery,
        raw: _RawAggregate,
        *,
        comparison: Comparison | None = None,
        variations: list[GroupVariation] | None = None,
        with_insights: bool = True,
    ) -> AggregationResult:
        grouped = None
        truncated = False
        ranked = None
        total, count = raw.total, raw.count
        if raw.groups is not None:
            # Date groupings keep the server's chronological order
            keep_order = q.order is not None or any(":" in g for g in q.group_by)
            grouped, total, count, truncated = summarize_groups(raw.groups, limit=q.limit, keep_order=keep_order)
            ranked = raw.groups if keep_order else sort_groups(raw.groups)

        insights = None
        if with_insights:
            insights = extract_insights(ranked, total, comparison, variations) or None

        if variations is not None and q.limit is not None:
            variations = variations[:q.limit]

        return AggregationResult(
            model=q.model,
            total=round(total, 2),
            count=count,
            grouped=grouped,
            group_count=len(raw.groups) if raw.groups is not None else None,
            truncated=truncated,
            comparison=comparison,
            group_variations=variations,
            insights=insights,
            date_range=q.date_range,
            domain=q.domain,
        )

    async def aggregate(self, spec: QuerySpec) -> AggregationResult:
        """Total, count and optional grouped breakdown.

        Raises:
            QueryEngineError: On invalid specs or transport failures.
        """
        q = self.prepare(spec)
        raw = await self._fetch_aggregate(q)
        logger.info(
            "Aggregated %s: total=%.2f count=%d groups=%s",
            q.model, raw.total, raw.count, len(raw.groups) if raw.groups is not None else "-",
        )
        return self._build_result(q, raw)

    async def compare(self, spec: QuerySpec) -> AggregationResult:
        """Aggregate the query's period and the immediately preceding one.

        Both queries run concurrently with identical entity and filters. If
        only the previous-period query fails, the current result is
        returned without comparison or insights.

        Raises:
            QueryEngineError: When the query has no period, or the current
                period's query fails.
        """
        q = self.prepare(spec)
        if q.date_range is None:
            raise QueryEngineError.from_code(
                "E-1004", detail="a comparison needs a period or explicit date range",
            )
        prev_q = self.prepare(spec, date_range=previous_period(q.date_range))

        current, previous = await asyncio.gather(
            self._fetch_aggregate(q), self._fetch_aggregate(prev_q), return_exceptions=True,
        )
        if isinstance(current, BaseException):
            raise current
        if isinstance(previous, QueryEngineError):
            logger.warning("Comparison query failed, returning current period only: %s", previous)
            return self._build_result(q, current, with_insights=False)
        if isinstance(previous, BaseException):
            raise previous

        comparison = Comparison(
            current=PeriodSummary(
                label=q.date_range.describe(), date_range=q.date_range,
                total=round(current.total, 2), count=current.count,
            ),
            previous=PeriodSummary(
                label=prev_q.date_range.describe(), date_range=prev_q.date_range,
                total=round(previous.total, 2), count=previous.count,
            ),
            variation=calculate_variation(current.total, previous.total),
        )
        variations = None
        if current.groups is not None and previous.groups is not None:
            variations = compare_grouped(
                dict(sort_groups(current.groups)), dict(previous.groups),
            )
        return self._build_result(q, current, comparison=comparison, variations=variations)

    async def list_records(self, spec: QuerySpec) -> ListResult:
        """Matching records plus the true number of matches.

        Raises:
            QueryEngineError: On invalid specs or transport failures.
        """
        q = self.prepare(spec)
        records, counted = await asyncio.gather(
            self.client.search_read(
                q.model, q.domain, q.fields,
                limit=q.limit or DEFAULT_LIST_LIMIT, offset=q.offset, order=q.order,
            ),
            self.client.search_count(q.model, q.domain),
        )
        _raise_for(records, "search_read", q.model)
        if counted.success:
            count = counted.data
        else:
            logger.warning("search_count failed for %s, using page size: %s", q.model, counted.error)
            count = len(records.data)
        return ListResult(
            model=q.model, records=records.data, count=count, date_range=q.date_range, domain=q.domain,
        )

    async def run(self, spec: QuerySpec, *, compare: bool = False) -> EngineOutcome:
        """Execute a spec without raising.

        Args:
            spec: Query description.
            compare: Add a previous-period comparison (aggregate only).

        Returns:
            EngineOutcome carrying either the result or a QueryEngineError.
        """
        try:
            if spec.operation is QueryOperation.LIST:
                return EngineOutcome(result=await self.list_records(spec))
            if compare:
                return EngineOutcome(result=await self.compare(spec))
            return EngineOutcome(result=await self.aggregate(spec))
        except QueryEngineError as e:
            logger.warning("Query on %s failed: %s", spec.model, e)
            return EngineOutcome(error=e)
        except Exception as e:
            logger.exception("Unexpected query engine failure on %s", spec.model)
            return EngineOutcome(error=QueryEngineError.from_code(
                "E-4003", model=spec.model, detail=sanitize_error_message(str(e), 300),
            ))
