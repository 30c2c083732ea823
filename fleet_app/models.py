"""Record and result models for fleet finance"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

ZERO = Decimal("0")

DEFAULT_REVENUE_CATEGORY = "Rental Income"
DEFAULT_EXPENSE_CATEGORY = "Other"


class TransactionType(str, Enum):
    """Direction of a vehicle transaction"""
    REVENUE = "revenue"
    EXPENSE = "expense"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VehicleTransaction(CamelModel):
    """Dated revenue or expense attributed to one vehicle"""

    id: str = Field(..., description="Unique transaction ID")
    vehicle_id: str = Field(..., description="Vehicle the transaction belongs to")
    transaction_type: TransactionType
    category: Optional[str] = Field(None, description="Free-text category label")
    amount: Money = Field(..., ge=0)
    date: str = Field(..., description="Transaction date (YYYY-MM-DD)")
    month: str = Field("", description="Stored month bucket, not necessarily canonical")
    description: Optional[str] = None
    employee_id: Optional[str] = None
    invoice_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_revenue(self) -> bool:
        return self.transaction_type == TransactionType.REVENUE

    @property
    def resolved_category(self) -> str:
        if self.category:
            return self.category
        return DEFAULT_REVENUE_CATEGORY if self.is_revenue else DEFAULT_EXPENSE_CATEGORY


class Vehicle(CamelModel):
    id: str
    vehicle_number: str
    vehicle_type: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    status: str = "active"
    created_at: Optional[str] = None


class Customer(CamelModel):
    id: str
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None


class Invoice(CamelModel):
    id: str
    number: str
    date: str
    customer_id: Optional[str] = None
    total: Money = ZERO
    created_at: Optional[str] = None


class Employee(CamelModel):
    id: str
    name: str
    role: Optional[str] = None
    payment_type: Optional[str] = None
    salary: Optional[Money] = None
    created_at: Optional[str] = None


class ExpenseCategory(CamelModel):
    id: str
    name: str
    is_custom: bool = False
    created_at: Optional[str] = None


# Per-vehicle profitability

class MonthlyProfitability(CamelModel):
    vehicle_id: str
    month: str
    total_revenue: Money = ZERO
    total_expenses: Money = ZERO
    profit: Money = ZERO
    transaction_count: int = 0


class ProfitabilitySummary(CamelModel):
    vehicle_id: str
    current_month: MonthlyProfitability
    last_month: MonthlyProfitability
    all_time_revenue: Money
    all_time_expenses: Money
    all_time_profit: Money
    months: List[MonthlyProfitability]


# Dashboard

class PeriodTotals(CamelModel):
    revenue: Money = ZERO
    expenses: Money = ZERO
    profit: Money = ZERO


class TrendMonth(PeriodTotals):
    month: str


class OverallMetrics(CamelModel):
    total_revenue: Money = ZERO
    total_expenses: Money = ZERO
    net_profit: Money = ZERO
    profit_margin: Money = ZERO
    avg_revenue_per_vehicle: Money = ZERO
    avg_profit_per_vehicle: Money = ZERO
    total_transactions: int = 0
    avg_transaction_value: Money = ZERO


class TimeBasedMetrics(CamelModel):
    current_month: PeriodTotals = Field(default_factory=PeriodTotals)
    last_month: PeriodTotals = Field(default_factory=PeriodTotals)
    mom_growth: PeriodTotals = Field(default_factory=PeriodTotals)
    ytd: PeriodTotals = Field(default_factory=PeriodTotals)
    monthly_trend: List[TrendMonth] = Field(default_factory=list)


class VehicleRevenue(CamelModel):
    vehicle_id: str
    vehicle_number: str
    revenue: Money


class VehicleProfit(CamelModel):
    vehicle_id: str
    vehicle_number: str
    profit: Money


class VehicleBasedMetrics(CamelModel):
    total_active: int = 0
    profitable: int = 0
    loss_making: int = 0
    no_data: int = 0
    top_by_revenue: List[VehicleRevenue] = Field(default_factory=list)
    top_by_profit: List[VehicleProfit] = Field(default_factory=list)
    bottom_by_profit: List[VehicleProfit] = Field(default_factory=list)


class CustomerRevenue(CamelModel):
    customer_id: str
    customer_name: str
    revenue: Money


class CustomerBasedMetrics(CamelModel):
    total_unique: int = 0
    top_by_revenue: List[CustomerRevenue] = Field(default_factory=list)
    avg_revenue_per_customer: Money = ZERO


class CategoryBasedMetrics(CamelModel):
    revenue_by_category: Dict[str, Money] = Field(default_factory=dict)
    expenses_by_category: Dict[str, Money] = Field(default_factory=dict)
    top_expense_category: str = "N/A"


class MostActiveVehicle(CamelModel):
    vehicle_id: str = ""
    vehicle_number: str = "N/A"
    transaction_count: int = 0


class OperationalMetrics(CamelModel):
    revenue_per_vehicle_per_month: Money = ZERO
    expense_ratio: Money = ZERO
    most_active_vehicle: MostActiveVehicle = Field(default_factory=MostActiveVehicle)
    avg_transactions_per_vehicle: Money = ZERO


class DashboardMetrics(CamelModel):
    """Fleet-wide finance metrics; the defaults form the all-zero dashboard"""

    overall: OverallMetrics = Field(default_factory=OverallMetrics)
    time_based: TimeBasedMetrics = Field(default_factory=TimeBasedMetrics)
    vehicle_based: VehicleBasedMetrics = Field(default_factory=VehicleBasedMetrics)
    customer_based: CustomerBasedMetrics = Field(default_factory=CustomerBasedMetrics)
    category_based: CategoryBasedMetrics = Field(default_factory=CategoryBasedMetrics)
    operational: OperationalMetrics = Field(default_factory=OperationalMetrics)
