"""
Sales and inventory rollups over a time window.

Only orders that reached the kitchen pass (ready) or were served (completed)
count as sales. Everything here is read-only.
"""
import calendar
import csv
import io
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from ..db.menu import MenuItemModel
from ..db.orders import REVENUE_STATUSES, Order, OrderItem
from ..schemas.reports import (
    CategorySales,
    PeriodComparison,
    PeriodTotals,
    RecentOrder,
    SalesReport,
    SalesSummary,
    SalesTrendPoint,
    TopSellingItem,
)
from .money import to_money

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
PERIODS = ("today", "week", "month", "year")


def _in_window(query, start: datetime, end: datetime):
    return query.where(
        Order.status.in_(REVENUE_STATUSES),
        Order.created_at >= start,
        Order.created_at <= end,
    )


def _totals(session: Session, start: datetime, end: datetime) -> Tuple[Decimal, int]:
    revenue, count = session.exec(
        _in_window(select(func.coalesce(func.sum(Order.total_amount), 0), func.count(Order.id)), start, end)
    ).one()
    return to_money(revenue), count


def _units_sold(session: Session, start: datetime, end: datetime) -> int:
    units = session.exec(
        _in_window(select(func.coalesce(func.sum(OrderItem.quantity), 0))
                   .select_from(OrderItem)
                   .join(Order, OrderItem.order_id == Order.id),
                   start, end)
    ).one()
    return int(units)


def _growth(current, previous) -> float:
    if not previous:
        return 0.0
    return round(float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100), 2)


def _average(revenue: Decimal, count: int) -> Decimal:
    return to_money(revenue / count) if count else Decimal("0.00")


def summary(session: Session, start: datetime, end: datetime) -> SalesSummary:
    revenue, count = _totals(session, start, end)

    # Same-length window right before this one, bounds inclusive
    previous_start = start - (end - start)
    previous_revenue, previous_count = _totals(session, previous_start, start)

    return SalesSummary(
        total_revenue=float(revenue),
        total_orders=count,
        average_order_value=float(_average(revenue, count)),
        total_items_sold=_units_sold(session, start, end),
        revenue_growth=_growth(revenue, previous_revenue),
        orders_growth=_growth(count, previous_count),
    )


def _window_lines(session: Session, start: datetime, end: datetime) -> List[Tuple[OrderItem, MenuItemModel]]:
    return list(session.exec(
        _in_window(
            select(OrderItem, MenuItemModel)
            .select_from(OrderItem)
            .join(Order, OrderItem.order_id == Order.id)
            .join(MenuItemModel, OrderItem.meal_id == MenuItemModel.id),
            start, end,
        ).order_by(Order.created_at.asc(), OrderItem.id.asc())
    ).all())


def top_selling_items(session: Session, start: datetime, end: datetime, limit: int = 10) -> List[TopSellingItem]:
    sold: Dict[int, dict] = {}
    for item, menu_item in _window_lines(session, start, end):
        entry = sold.setdefault(menu_item.id, {
            "menu_item": menu_item,
            "quantity": 0,
            "revenue": Decimal("0.00"),
        })
        entry["quantity"] += item.quantity
        entry["revenue"] += to_money(menu_item.price) * item.quantity

    # sorted() is stable, ties keep first-sold order
    ranked = sorted(sold.values(), key=lambda entry: entry["revenue"], reverse=True)[:limit]
    return [
        TopSellingItem(
            id=entry["menu_item"].id,
            name=entry["menu_item"].name,
            category=entry["menu_item"].category or UNCATEGORIZED,
            quantity_sold=entry["quantity"],
            revenue=float(to_money(entry["revenue"])),
            image=entry["menu_item"].image,
        )
        for entry in ranked
    ]


def category_breakdown(session: Session, start: datetime, end: datetime) -> List[CategorySales]:
    categories: Dict[str, dict] = {}
    for item, menu_item in _window_lines(session, start, end):
        entry = categories.setdefault(menu_item.category or UNCATEGORIZED, {"items": 0, "revenue": Decimal("0.00")})
        entry["items"] += item.quantity
        entry["revenue"] += to_money(menu_item.price) * item.quantity

    grand_total = sum((entry["revenue"] for entry in categories.values()), Decimal("0"))
    result = [
        CategorySales(
            name=name,
            items_sold=entry["items"],
            revenue=float(to_money(entry["revenue"])),
            avg_price=float(_average(entry["revenue"], entry["items"])),
            percentage=round(float(entry["revenue"] / grand_total * 100), 2) if grand_total else 0.0,
        )
        for name, entry in categories.items()
    ]
    result.sort(key=lambda category: category.revenue, reverse=True)
    return result


def trend(session: Session, start: datetime, end: datetime, zero_fill: bool = False) -> List[SalesTrendPoint]:
    """Daily revenue and order count, oldest day first."""
    orders = session.exec(
        _in_window(select(Order.created_at, Order.total_amount), start, end)
    ).all()

    days: Dict[date, dict] = {}
    for created_at, total_amount in orders:
        entry = days.setdefault(created_at.date(), {"revenue": Decimal("0.00"), "orders": 0})
        entry["revenue"] += to_money(total_amount)
        entry["orders"] += 1

    if zero_fill:
        day = start.date()
        while day <= end.date():
            days.setdefault(day, {"revenue": Decimal("0.00"), "orders": 0})
            day += timedelta(days=1)

    return [
        SalesTrendPoint(date=day, revenue=float(to_money(entry["revenue"])), orders=entry["orders"])
        for day, entry in sorted(days.items())
    ]


def recent_orders(session: Session, limit: int = 20) -> List[RecentOrder]:
    orders = session.exec(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.status.in_(REVENUE_STATUSES))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
    ).all()
    return [
        RecentOrder(
            id=order.id,
            table_id=order.table_id,
            status=order.status,
            total_amount=float(to_money(order.total_amount)),
            created_at=order.created_at,
            item_count=sum(item.quantity for item in order.items),
        )
        for order in orders
    ]


def _period_totals(session: Session, start: datetime, end: datetime) -> PeriodTotals:
    revenue, count = _totals(session, start, end)
    return PeriodTotals(
        total_revenue=float(revenue),
        total_orders=count,
        average_order_value=float(_average(revenue, count)),
    )


def compare_periods(
    session: Session,
    period1_start: datetime,
    period1_end: datetime,
    period2_start: datetime,
    period2_end: datetime,
) -> PeriodComparison:
    first = _period_totals(session, period1_start, period1_end)
    second = _period_totals(session, period2_start, period2_end)
    return PeriodComparison(
        period1=first,
        period2=second,
        revenue_diff=round(first.total_revenue - second.total_revenue, 2),
        orders_diff=first.total_orders - second.total_orders,
        avg_order_value_diff=round(first.average_order_value - second.average_order_value, 2),
    )


def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_range_for_period(period: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Window from midnight of the period's first day up to now."""
    if period not in PERIODS:
        raise ValueError(f"Unknown period {period!r}, expected one of {', '.join(PERIODS)}")
    end = now or datetime.now()
    if period == "today":
        start = end
    elif period == "week":
        start = end - timedelta(days=7)
    elif period == "month":
        start = _months_back(end, 1)
    else:
        start = _months_back(end, 12)
    return datetime.combine(start.date(), time.min), end


def custom_range(date_from: date, date_to: date) -> Tuple[datetime, datetime]:
    return datetime.combine(date_from, time.min), datetime.combine(date_to, time.max)


def sales_report(
    session: Session,
    start: datetime,
    end: datetime,
    period: str = "custom",
    top_limit: int = 10,
    recent_limit: int = 20,
    zero_fill: bool = False,
) -> SalesReport:
    logger.info(f"Building {period} sales report for {start.isoformat()} .. {end.isoformat()}")
    return SalesReport(
        period=period,
        start=start,
        end=end,
        summary=summary(session, start, end),
        top_selling_items=top_selling_items(session, start, end, limit=top_limit),
        category_sales=category_breakdown(session, start, end),
        trend=trend(session, start, end, zero_fill=zero_fill),
        recent_orders=recent_orders(session, limit=recent_limit),
    )


def export_sales_report_csv(report: SalesReport) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    s = report.summary

    writer.writerow(["Metric", "Value"])
    writer.writerow(["Period", report.period])
    writer.writerow(["Start Date", report.start.isoformat()])
    writer.writerow(["End Date", report.end.isoformat()])
    writer.writerow(["Total Revenue", f"{s.total_revenue:.2f}"])
    writer.writerow(["Total Orders", s.total_orders])
    writer.writerow(["Average Order Value", f"{s.average_order_value:.2f}"])
    writer.writerow(["Total Items Sold", s.total_items_sold])
    writer.writerow(["Revenue Growth %", f"{s.revenue_growth:.2f}"])
    writer.writerow(["Orders Growth %", f"{s.orders_growth:.2f}"])

    writer.writerow([])
    writer.writerow(["Top Selling Items"])
    writer.writerow(["Rank", "Name", "Category", "Quantity Sold", "Revenue"])
    for rank, item in enumerate(report.top_selling_items, start=1):
        writer.writerow([rank, item.name, item.category, item.quantity_sold, f"{item.revenue:.2f}"])

    writer.writerow([])
    writer.writerow(["Category Sales"])
    writer.writerow(["Category", "Items Sold", "Revenue", "Avg Price", "% of Total"])
    for category in report.category_sales:
        writer.writerow([
            category.name,
            category.items_sold,
            f"{category.revenue:.2f}",
            f"{category.avg_price:.2f}",
            f"{category.percentage:.2f}",
        ])

    return output.getvalue()
