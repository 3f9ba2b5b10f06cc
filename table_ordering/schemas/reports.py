from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from ..db.orders import OrderStatus


class SalesSummary(BaseModel):
    total_revenue: float = 0.0
    total_orders: int = 0
    average_order_value: float = 0.0
    total_items_sold: int = 0
    revenue_growth: float = 0.0
    orders_growth: float = 0.0


class TopSellingItem(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    quantity_sold: int
    revenue: float
    image: Optional[str] = None


class CategorySales(BaseModel):
    name: str
    items_sold: int
    revenue: float
    avg_price: float
    percentage: float


class SalesTrendPoint(BaseModel):
    date: date
    revenue: float
    orders: int


class RecentOrder(BaseModel):
    id: int
    table_id: int
    status: OrderStatus
    total_amount: float
    created_at: datetime
    item_count: int


class SalesReport(BaseModel):
    period: str
    start: datetime
    end: datetime
    summary: SalesSummary
    top_selling_items: List[TopSellingItem]
    category_sales: List[CategorySales]
    trend: List[SalesTrendPoint]
    recent_orders: List[RecentOrder]


class PeriodTotals(BaseModel):
    total_revenue: float
    total_orders: int
    average_order_value: float


class PeriodComparison(BaseModel):
    period1: PeriodTotals
    period2: PeriodTotals
    revenue_diff: float
    orders_diff: int
    avg_order_value_diff: float
