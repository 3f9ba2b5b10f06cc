"""
Sales reports for the admin dashboard.

Either a named period (today, week, month, year) or an explicit date range;
an explicit range always covers the whole of its last day.
"""
import logging
from datetime import date, datetime
from typing import Literal, Optional, Tuple

from fastapi import APIRouter, HTTPException, Response

from table_ordering.dependencies import SessionDep, SettingsDep
from table_ordering.schemas.reports import PeriodComparison, SalesReport
from table_ordering.services import reports as report_service
from table_ordering.services.storage import public_image_url
from table_ordering.settings import Settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reports")

Period = Literal["today", "week", "month", "year"]


def _resolve_window(period: Optional[str], date_from: Optional[date], date_to: Optional[date]) -> Tuple[str, datetime, datetime]:
    if date_from or date_to:
        if not (date_from and date_to):
            raise HTTPException(status_code=422, detail="date_from and date_to must be given together")
        if date_from > date_to:
            raise HTTPException(status_code=422, detail="date_from must not be after date_to")
        start, end = report_service.custom_range(date_from, date_to)
        return "custom", start, end
    period = period or "today"
    start, end = report_service.date_range_for_period(period)
    return period, start, end


def _build_report(session, settings: Settings, period, date_from, date_to, zero_fill) -> SalesReport:
    name, start, end = _resolve_window(period, date_from, date_to)
    report = report_service.sales_report(
        session, start, end,
        period=name,
        recent_limit=settings.recent_orders_limit,
        zero_fill=zero_fill,
    )
    for item in report.top_selling_items:
        item.image = public_image_url(item.image, settings)
    return report


@router.get("/sales", response_model=SalesReport)
def sales_report(
    session: SessionDep,
    settings: SettingsDep,
    period: Optional[Period] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    zero_fill: bool = False,
):
    return _build_report(session, settings, period, date_from, date_to, zero_fill)


@router.get("/sales/export")
def export_sales_report(
    session: SessionDep,
    settings: SettingsDep,
    period: Optional[Period] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    report = _build_report(session, settings, period, date_from, date_to, False)
    filename = f"sales_report_{report.period}_{report.start.date().isoformat()}.csv"
    return Response(
        content=report_service.export_sales_report_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/compare", response_model=PeriodComparison)
def compare_periods(
    session: SessionDep,
    period1_from: date,
    period1_to: date,
    period2_from: date,
    period2_to: date,
):
    first = report_service.custom_range(period1_from, period1_to)
    second = report_service.custom_range(period2_from, period2_to)
    return report_service.compare_periods(session, first[0], first[1], second[0], second[1])
