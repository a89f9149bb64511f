"""Date windows and aggregations over order records.

Status names exist in both Spanish and English because the ordering frontends
have written both over time.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Literal

from .schemas import Order

DateRange = Literal["today", "week", "month", "last7days"]
DATE_RANGES: tuple[str, ...] = ("today", "week", "month", "last7days")

SALE_STATUSES: tuple[str, ...] = ("entregado", "delivered", "listo", "ready")
DELIVERED_STATUSES: tuple[str, ...] = ("entregado", "delivered")
CANCELLED_STATUSES: tuple[str, ...] = ("cancelado", "cancelled")
PENDING_STATUSES: tuple[str, ...] = ("pendiente", "pending")

HISTORY_STATUS_FILTERS: dict[str, tuple[str, ...] | None] = {
    "completed": DELIVERED_STATUSES,
    "cancelled": CANCELLED_STATUSES,
    "all": None,
}

NO_ITEMS_LABEL = "Sin productos"


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def range_window(range_name: str, now: datetime) -> tuple[datetime, datetime]:
    """Return the inclusive ``[start, end]`` window for a named range.

    Weeks start on Monday. Every window ends at the end of ``now``'s day, and an
    unrecognized name behaves like ``today``.
    """
    end = end_of_day(now)
    if range_name == "week":
        start = start_of_day(now - timedelta(days=now.weekday()))
    elif range_name == "month":
        start = start_of_day(now.replace(day=1))
    elif range_name == "last7days":
        start = start_of_day(now - timedelta(days=6))
    else:
        start = start_of_day(now)
    return start, end


def _days_between(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def _money(value: float) -> float:
    return round(value, 2)


def summarize_financials(
    orders: Sequence[Order],
    range_name: str,
    start: datetime,
    end: datetime,
    tz: tzinfo,
) -> dict[str, Any]:
    total_sales = sum(order.total for order in orders)
    order_count = len(orders)

    sales_by_method: dict[str, float] = {}
    for order in orders:
        method = order.payment_method or "unknown"
        sales_by_method[method] = sales_by_method.get(method, 0.0) + order.total

    local_times = [(order, order.created_at.astimezone(tz)) for order in orders]
    sales_over_time: list[dict[str, Any]] = []
    if range_name == "today":
        for hour in range(24):
            bucket = [order for order, local in local_times if local.hour == hour]
            sales_over_time.append(
                {"date": f"{hour}:00", "total": _money(sum(o.total for o in bucket)), "count": len(bucket)}
            )
    else:
        for day in _days_between(start.date(), end.date()):
            bucket = [order for order, local in local_times if local.date() == day]
            sales_over_time.append(
                {"date": day.isoformat(), "total": _money(sum(o.total for o in bucket)), "count": len(bucket)}
            )

    return {
        "range": range_name,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total_sales": _money(total_sales),
        "order_count": order_count,
        "average_ticket": _money(total_sales / order_count) if order_count else 0.0,
        "payment_methods": [
            {"name": method[:1].upper() + method[1:], "value": _money(value)}
            for method, value in sales_by_method.items()
        ],
        "sales_over_time": sales_over_time,
    }


def dashboard_stats(month_orders: Sequence[Order], now: datetime) -> dict[str, Any]:
    delivered = [order for order in month_orders if order.status in DELIVERED_STATUSES]
    total_sales = sum(order.total for order in delivered)
    all_count = len(month_orders)
    cancelled = sum(1 for order in month_orders if order.status in CANCELLED_STATUSES)
    today_start = start_of_day(now)

    return {
        "total_sales_month": _money(total_sales),
        "total_orders_month": len(delivered),
        "average_order_value": _money(total_sales / len(delivered)) if delivered else 0.0,
        "acceptance_rate": round((all_count - cancelled) / all_count * 100, 1) if all_count else 100.0,
        "pending_orders": sum(1 for order in month_orders if order.status in PENDING_STATUSES),
        "today_sales": _money(
            sum(
                order.total
                for order in month_orders
                if order.created_at >= today_start and order.status not in CANCELLED_STATUSES
            )
        ),
    }


def sales_trend(orders: Iterable[Order], now: datetime, days: int = 7) -> list[dict[str, Any]]:
    """Daily sales for the last ``days`` days including today, oldest first."""
    tz = now.tzinfo
    first_day = (now - timedelta(days=days - 1)).date()
    points = {day: {"date": day.isoformat(), "sales": 0.0, "orders": 0} for day in _days_between(first_day, now.date())}
    for order in orders:
        if order.status in CANCELLED_STATUSES:
            continue
        point = points.get(order.created_at.astimezone(tz).date())
        if point is None:
            continue
        point["sales"] = _money(point["sales"] + order.total)
        point["orders"] += 1
    return list(points.values())


def top_products(orders: Iterable[Order], limit: int = 5) -> list[dict[str, Any]]:
    """Best sellers by quantity across the items of non-cancelled orders."""
    products: dict[str, dict[str, Any]] = {}
    for order in orders:
        if order.status in CANCELLED_STATUSES:
            continue
        for item in order.items:
            key = item.product_id or "unknown"
            entry = products.setdefault(
                key,
                {
                    "product_id": key,
                    "product_name": item.product_name,
                    "total_quantity": 0,
                    "total_revenue": 0.0,
                    "order_count": 0,
                },
            )
            entry["total_quantity"] += item.quantity
            entry["total_revenue"] = _money(entry["total_revenue"] + item.subtotal)
            entry["order_count"] += 1
    ranked = sorted(products.values(), key=lambda entry: entry["total_quantity"], reverse=True)
    return ranked[:limit]


def summarize_order(order: Order) -> dict[str, Any]:
    items = ", ".join(f"{item.quantity}x {item.product_name}" for item in order.items)
    return {
        "id": order.id[:8],
        "total": order.total,
        "status": order.status,
        "payment": order.payment_method,
        "created_at": order.created_at.isoformat(),
        "items": items or NO_ITEMS_LABEL,
    }
