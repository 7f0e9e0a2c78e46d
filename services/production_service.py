"""
Production tracking and bottleneck analysis.

Bottleneck analysis looks at production_tracking rows from the trailing
window (settings.bottleneck_window_days) and compares each stage's
observed durations against its target. Detailed analysis also reads the
older rows needed for the weekly history, but severity is judged on the
window alone.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional
import structlog

from config import get_supabase_client, settings
from exceptions import DatabaseError, ProductionItemNotFoundError
from models.production import (
    Bottleneck,
    BottleneckAnalysis,
    BottleneckImpact,
    ProductionItemUpdate,
    Severity,
    StageHistoryPoint,
)

logger = structlog.get_logger(__name__)


DEFAULT_TARGET_DURATION = 3
HISTORY_WEEKS = 8
ANALYSIS_DEPTHS = ["standard", "detailed"]

STAGE_ROOT_CAUSES = {
    "design": ("variance", 25, "Complex design requirements or client revisions"),
    "cutting": ("delay", 1, "Material preparation delays or equipment issues"),
    "assembly": ("items", 4, "Limited assembly workspace or skilled labor"),
    "finishing": ("delay", 2, "Drying time, weather conditions, or quality requirements"),
    "qc": ("variance", 30, "Quality issues requiring rework"),
}

STAGE_RECOMMENDATIONS = {
    "design": "Consider design templates or standardization",
    "cutting": "Pre-cut materials during low-demand periods",
    "assembly": "Cross-train staff or consider sub-assembly processes",
    "finishing": "Optimize environmental conditions or batch similar items",
    "qc": "Implement upstream quality controls to reduce rework",
}


# ===================
# BOTTLENECK HELPERS
# ===================

def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _history_entry(item: dict, stage_name: str) -> Optional[dict]:
    history = item.get("stage_history")
    if not isinstance(history, list):
        return None
    for entry in history:
        if isinstance(entry, dict) and entry.get("stage") == stage_name:
            return entry
    return None


def stage_durations(stage: dict, items: list[dict]) -> list[float]:
    """
    Days each item spent in the stage.

    Uses the history entry's duration when present, otherwise whole days
    from stage_started_at (or created_at) to the entry timestamp (or
    updated_at). Non-positive durations are dropped.
    """
    durations = []
    for item in items:
        entry = _history_entry(item, stage.get("name"))
        if entry is None:
            continue

        if entry.get("duration"):
            duration = float(entry["duration"])
        else:
            start = _parse_timestamp(item.get("stage_started_at") or item.get("created_at"))
            end = _parse_timestamp(entry.get("timestamp") or item.get("updated_at"))
            if start is None or end is None:
                continue
            duration = math.ceil((end - start).total_seconds() / 86400)

        if duration > 0:
            durations.append(duration)
    return durations


def determine_severity(variance_percentage: float, current_items: int) -> Severity:
    if variance_percentage > 50 or current_items > 8:
        return Severity.CRITICAL
    if variance_percentage > 25 or current_items > 5:
        return Severity.WARNING
    if variance_percentage > 10 or current_items > 3:
        return Severity.MINOR
    return Severity.NONE


def determine_trend(variance_percentage: float) -> str:
    if variance_percentage > 30:
        return "worsening"
    if variance_percentage < 15:
        return "improving"
    return "stable"


def root_causes(stage_name: str, current_items: int, delay: float, variance: float) -> list[str]:
    causes = []
    if current_items > 6:
        causes.append("High volume of items queued in stage")
    if delay > 2:
        causes.append("Stage duration exceeds target by significant margin")
    if variance > 40:
        causes.append("High variability in processing time")

    specific = STAGE_ROOT_CAUSES.get((stage_name or "").lower())
    if specific:
        metric, threshold, cause = specific
        observed = {"variance": variance, "delay": delay, "items": current_items}[metric]
        if observed > threshold:
            causes.append(cause)

    return causes or ["Stage is performing within normal parameters"]


def recommendations(stage_name: str, severity: Severity, current_items: int, delay: float) -> list[str]:
    recs = []
    if severity == Severity.CRITICAL:
        recs.append("Immediate attention required - reallocate resources to this stage")
        if current_items > 8:
            recs.append("Consider parallel processing or additional workstations")
    if severity == Severity.WARNING:
        recs.append("Monitor closely and prepare contingency plans")
    if delay > 2:
        recs.append("Review stage processes for optimization opportunities")

    specific = STAGE_RECOMMENDATIONS.get((stage_name or "").lower())
    if specific:
        recs.append(specific)

    return recs or ["Continue current practices - stage is performing well"]


def analyze_stage(stage: dict, items: list[dict]) -> Bottleneck:
    """Severity, delay and advice for one stage."""
    target = float(stage.get("target_duration") or DEFAULT_TARGET_DURATION)
    current = [item for item in items if item.get("current_stage_id") == stage.get("id")]

    durations = stage_durations(stage, items)
    avg_duration = sum(durations) / len(durations) if durations else target

    delay = max(0.0, avg_duration - target)
    variance = delay / target * 100 if target > 0 else 0.0

    severity = determine_severity(variance, len(current))
    name = stage.get("name") or "Unknown Stage"

    return Bottleneck(
        stage_id=str(stage.get("id")),
        stage_name=name,
        severity=severity,
        current_items=len(current),
        avg_duration=round(avg_duration, 1),
        target_duration=target,
        delay_days=round(delay, 1),
        variance_percentage=round(variance, 1),
        trend=determine_trend(variance),
        root_causes=root_causes(name, len(current), delay, variance),
        recommendations=recommendations(name, severity, len(current), delay),
    )


def calculate_impact(
    bottlenecks: list[Bottleneck],
    items: list[dict],
    daily_cost_per_item: float
) -> BottleneckImpact:
    """
    Overall impact of the reported bottlenecks.

    Customer impact is the share of urgent orders sitting in a bottleneck
    stage plus five points per average delay day, capped at 100.
    """
    total_delayed = sum(b.current_items for b in bottlenecks)
    avg_delay = sum(b.delay_days for b in bottlenecks) / len(bottlenecks) if bottlenecks else 0.0

    bottleneck_stage_ids = {b.stage_id for b in bottlenecks}
    urgent = sum(
        1 for item in items
        if (item.get("orders") or {}).get("priority") == "urgent"
        and str(item.get("current_stage_id")) in bottleneck_stage_ids
    )
    customer_impact = min(100.0, urgent / max(1, len(items)) * 100 + avg_delay * 5)

    return BottleneckImpact(
        total_items_delayed=total_delayed,
        avg_delay_days=round(avg_delay, 1),
        cost_impact=round(total_delayed * avg_delay * daily_cost_per_item),
        customer_impact_score=round(customer_impact, 1),
    )


def stage_history(stage: dict, items: list[dict], today: date, weeks: int = HISTORY_WEEKS) -> list[StageHistoryPoint]:
    """
    Weekly average stage duration for items created in each week, oldest
    week first. Weeks without data report the target duration.
    """
    target = float(stage.get("target_duration") or DEFAULT_TARGET_DURATION)
    points = []

    for week in range(weeks - 1, -1, -1):
        week_start = today - timedelta(days=(week + 1) * 7)
        week_end = week_start + timedelta(days=7)

        week_items = []
        for item in items:
            created = _parse_timestamp(item.get("created_at"))
            if created and week_start <= created.date() < week_end:
                week_items.append(item)

        durations = stage_durations(stage, week_items)
        avg = sum(durations) / len(durations) if durations else target

        points.append(StageHistoryPoint(
            date=week_start,
            avg_duration=round(avg, 1),
            items_count=len(week_items),
        ))

    return points


def within_window(items: list[dict], since: datetime) -> list[dict]:
    """Items created at or after `since`. Rows without created_at are kept."""
    recent = []
    for item in items:
        created = _parse_timestamp(item.get("created_at"))
        if created is None or created >= since:
            recent.append(item)
    return recent


def _items_for_stage(stage: dict, items: list[dict]) -> list[dict]:
    return [
        item for item in items
        if item.get("current_stage_id") == stage.get("id")
        or _history_entry(item, stage.get("name")) is not None
    ]


def analyze_bottlenecks(
    stages: list[dict],
    items: list[dict],
    depth: str = "standard",
    now: Optional[datetime] = None,
    daily_cost_per_item: float = 50,
    window_days: Optional[int] = None
) -> BottleneckAnalysis:
    """
    Run the stage analysis over already-fetched rows.

    Severity and impact use the items created in the last `window_days`
    (all items when None). The detailed weekly history uses every item.
    """
    now = now or datetime.now(timezone.utc)
    recent = items if window_days is None else within_window(items, now - timedelta(days=window_days))

    bottlenecks = []
    for stage in stages:
        result = analyze_stage(stage, _items_for_stage(stage, recent))
        if result.severity == Severity.NONE:
            continue
        if depth == "detailed":
            result.historical_data = stage_history(stage, _items_for_stage(stage, items), now.date())
        bottlenecks.append(result)

    return BottleneckAnalysis(
        bottlenecks=bottlenecks,
        overall_impact=calculate_impact(bottlenecks, recent, daily_cost_per_item),
        analysis_depth=depth,
        generated_at=now.isoformat(),
    )


class ProductionService:
    """
    Production items and stage analytics.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "production_items"

    # ===================
    # TRACKING
    # ===================

    def get_items(
        self,
        status: Optional[str] = None,
        stage: Optional[str] = None,
        order_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> list[dict]:
        """List production items with order number and customer name."""
        logger.info("getting_production_items", status=status, stage=stage, order_id=order_id)

        try:
            query = self.db.table(self.table).select(
                "*, order:orders(order_number, customer:customers(name))"
            )

            if status and status != "all":
                query = query.eq("status", status)
            if stage and stage != "all":
                query = query.eq("current_stage", stage)
            if order_id:
                query = query.eq("order_id", order_id)

            result = (
                query.order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
            return result.data or []

        except Exception as e:
            logger.error("get_production_items_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def update_item(self, data: ProductionItemUpdate) -> dict:
        """
        Update only the fields present in the request.

        Raises:
            ProductionItemNotFoundError: No item with that id
        """
        updates = data.model_dump(exclude_unset=True, exclude={"id"}, mode="json")
        updates["updated_at"] = datetime.utcnow().isoformat()

        logger.info("updating_production_item", item_id=data.id, fields=sorted(updates))

        try:
            result = (
                self.db.table(self.table)
                .update(updates)
                .eq("id", data.id)
                .execute()
            )
        except Exception as e:
            logger.error("update_production_item_failed", item_id=data.id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise ProductionItemNotFoundError(data.id)

        logger.info("production_item_updated", item_id=data.id)
        return result.data[0]

    # ===================
    # BOTTLENECKS
    # ===================

    def get_bottlenecks(self, depth: str = "standard") -> BottleneckAnalysis:
        """
        Current bottlenecks over the configured window. Detailed depth
        reaches back far enough to fill every history week.
        """
        now = datetime.now(timezone.utc)
        window_days = settings.bottleneck_window_days
        fetch_days = max(window_days, HISTORY_WEEKS * 7) if depth == "detailed" else window_days
        fetch_start = now - timedelta(days=fetch_days)

        try:
            stages = (
                self.db.table("production_stages")
                .select("*")
                .order("stage_order")
                .execute()
            ).data or []

            items = (
                self.db.table("production_tracking")
                .select(
                    "*, production_stages(name, stage_order, target_duration), "
                    "orders(customer_name, priority, total_value, delivery_date)"
                )
                .gte("created_at", fetch_start.isoformat())
                .execute()
            ).data or []

        except Exception as e:
            logger.error("bottleneck_fetch_failed", error=str(e))
            raise DatabaseError("select", str(e))

        analysis = analyze_bottlenecks(
            stages,
            items,
            depth=depth,
            now=now,
            daily_cost_per_item=settings.bottleneck_daily_cost_per_item,
            window_days=window_days,
        )

        logger.info(
            "bottlenecks_analyzed",
            stages=len(stages),
            items=len(items),
            bottlenecks=len(analysis.bottlenecks),
            depth=depth
        )
        return analysis


# Singleton instance
_production_service: Optional[ProductionService] = None


def get_production_service() -> ProductionService:
    """Get or create ProductionService instance."""
    global _production_service
    if _production_service is None:
        _production_service = ProductionService()
    return _production_service
