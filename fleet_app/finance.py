"""Vehicle finance aggregation.

Every call reads the records it needs from the stores it was given and
recomputes the result from scratch. Nothing is cached between calls and the
records are never modified, so concurrent calls need no coordination.
"""

import logging
from datetime import date
from decimal import Decimal

from .models import (
    ZERO,
    CategoryBasedMetrics,
    CustomerBasedMetrics,
    CustomerRevenue,
    DashboardMetrics,
    MonthlyProfitability,
    MostActiveVehicle,
    OperationalMetrics,
    OverallMetrics,
    PeriodTotals,
    ProfitabilitySummary,
    TimeBasedMetrics,
    TrendMonth,
    VehicleBasedMetrics,
    VehicleProfit,
    VehicleRevenue,
)
from .months import month_key, month_year, normalize_month, previous_month, rolling_month_keys

logger = logging.getLogger(__name__)

TOP_N = 5
TREND_MONTHS = 12
HUNDRED = Decimal("100")


def _divide(numerator, denominator):
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def _percentage(part, whole):
    if not whole:
        return ZERO
    return part / whole * HUNDRED


def _growth(current, previous):
    # Profit can be negative, so growth is measured against the magnitude.
    if previous == 0:
        return ZERO
    return (current - previous) / abs(previous) * HUNDRED


def _empty_bucket():
    return {"revenue": ZERO, "expenses": ZERO, "count": 0}


def _add_to_bucket(bucket, transaction):
    if transaction.is_revenue:
        bucket["revenue"] += transaction.amount
    else:
        bucket["expenses"] += transaction.amount
    bucket["count"] += 1


def _period_totals(bucket):
    return PeriodTotals(
        revenue=bucket["revenue"],
        expenses=bucket["expenses"],
        profit=bucket["revenue"] - bucket["expenses"],
    )


def empty_dashboard_metrics():
    """All-zero dashboard returned when the metrics cannot be computed."""
    return DashboardMetrics()


class FleetFinance:
    """Profitability and dashboard queries over the vehicle transaction stores.

    ``transactions`` must provide ``get_all()`` and ``get_by_vehicle_id()``,
    ``vehicles`` ``get_all()``, and ``invoices``/``customers`` ``get_by_id()``.
    ``today`` pins the reference date; it defaults to the current date on
    every call.
    """

    def __init__(self, transactions, vehicles, invoices, customers, today=None):
        self.transactions = transactions
        self.vehicles = vehicles
        self.invoices = invoices
        self.customers = customers
        self.today = today

    def _reference_date(self):
        return self.today or date.today()

    def profitability_by_vehicle(self, vehicle_id):
        transactions = self.transactions.get_by_vehicle_id(vehicle_id)
        today = self._reference_date()

        monthly_map = {}
        skipped = 0
        for transaction in transactions:
            key = normalize_month(transaction.month, transaction.date)
            if not key:
                skipped += 1
                logger.warning(
                    "Transaction %s of vehicle %s has no month or date, left out of monthly buckets",
                    transaction.id,
                    vehicle_id,
                )
                continue
            _add_to_bucket(monthly_map.setdefault(key, _empty_bucket()), transaction)

        # All-time totals come from the raw transactions, not the buckets, so
        # records without a usable month still count.
        all_time_revenue = sum((t.amount for t in transactions if t.is_revenue), ZERO)
        all_time_expenses = sum((t.amount for t in transactions if not t.is_revenue), ZERO)

        def monthly_entry(key):
            bucket = monthly_map.get(key) or _empty_bucket()
            return MonthlyProfitability(
                vehicle_id=vehicle_id,
                month=key,
                total_revenue=bucket["revenue"],
                total_expenses=bucket["expenses"],
                profit=bucket["revenue"] - bucket["expenses"],
                transaction_count=bucket["count"],
            )

        logger.debug(
            "Profitability for vehicle %s: %d transactions, %d months, %d skipped",
            vehicle_id,
            len(transactions),
            len(monthly_map),
            skipped,
        )

        return ProfitabilitySummary(
            vehicle_id=vehicle_id,
            current_month=monthly_entry(month_key(today)),
            last_month=monthly_entry(month_key(previous_month(today))),
            all_time_revenue=all_time_revenue,
            all_time_expenses=all_time_expenses,
            all_time_profit=all_time_revenue - all_time_expenses,
            months=[monthly_entry(key) for key in rolling_month_keys(today, TREND_MONTHS)],
        )

    def dashboard_metrics(self):
        transactions = self.transactions.get_all()
        vehicles = self.vehicles.get_all()
        today = self._reference_date()

        totals = _empty_bucket()
        monthly_map = {}
        vehicle_map = {}
        for transaction in transactions:
            _add_to_bucket(totals, transaction)
            _add_to_bucket(vehicle_map.setdefault(transaction.vehicle_id, _empty_bucket()), transaction)
            key = normalize_month(transaction.month, transaction.date)
            if key:
                _add_to_bucket(monthly_map.setdefault(key, _empty_bucket()), transaction)

        vehicle_rows = []
        for vehicle in vehicles:
            bucket = vehicle_map.get(vehicle.id) or _empty_bucket()
            vehicle_rows.append(
                {
                    "vehicle_id": vehicle.id,
                    "vehicle_number": vehicle.vehicle_number or "Unknown",
                    "revenue": bucket["revenue"],
                    "profit": bucket["revenue"] - bucket["expenses"],
                    "count": bucket["count"],
                }
            )
        active_vehicles = sum(1 for row in vehicle_rows if row["count"] > 0)

        overall = self._overall_metrics(totals, active_vehicles)
        time_based = self._time_based_metrics(monthly_map, today)
        metrics = DashboardMetrics(
            overall=overall,
            time_based=time_based,
            vehicle_based=self._vehicle_based_metrics(vehicle_rows, active_vehicles),
            customer_based=self._customer_based_metrics(transactions),
            category_based=self._category_based_metrics(transactions),
            operational=self._operational_metrics(
                totals, vehicle_rows, active_vehicles, time_based.monthly_trend
            ),
        )

        logger.debug(
            "Dashboard metrics: %d transactions, %d vehicles (%d active)",
            totals["count"],
            len(vehicles),
            active_vehicles,
        )
        return metrics

    def _overall_metrics(self, totals, active_vehicles):
        net_profit = totals["revenue"] - totals["expenses"]
        return OverallMetrics(
            total_revenue=totals["revenue"],
            total_expenses=totals["expenses"],
            net_profit=net_profit,
            profit_margin=_percentage(net_profit, totals["revenue"]),
            avg_revenue_per_vehicle=_divide(totals["revenue"], active_vehicles),
            avg_profit_per_vehicle=_divide(net_profit, active_vehicles),
            total_transactions=totals["count"],
            avg_transaction_value=_divide(totals["revenue"] + totals["expenses"], totals["count"]),
        )

    def _time_based_metrics(self, monthly_map, today):
        current = _period_totals(monthly_map.get(month_key(today)) or _empty_bucket())
        last = _period_totals(monthly_map.get(month_key(previous_month(today))) or _empty_bucket())

        ytd = _empty_bucket()
        for key, bucket in monthly_map.items():
            if month_year(key) == today.year:
                ytd["revenue"] += bucket["revenue"]
                ytd["expenses"] += bucket["expenses"]

        monthly_trend = []
        for key in rolling_month_keys(today, TREND_MONTHS):
            bucket = monthly_map.get(key) or _empty_bucket()
            monthly_trend.append(
                TrendMonth(
                    month=key,
                    revenue=bucket["revenue"],
                    expenses=bucket["expenses"],
                    profit=bucket["revenue"] - bucket["expenses"],
                )
            )

        return TimeBasedMetrics(
            current_month=current,
            last_month=last,
            mom_growth=PeriodTotals(
                revenue=_growth(current.revenue, last.revenue),
                expenses=_growth(current.expenses, last.expenses),
                profit=_growth(current.profit, last.profit),
            ),
            ytd=_period_totals(ytd),
            monthly_trend=monthly_trend,
        )

    def _vehicle_based_metrics(self, vehicle_rows, active_vehicles):
        by_revenue = sorted(vehicle_rows, key=lambda row: row["revenue"], reverse=True)
        by_profit = sorted(vehicle_rows, key=lambda row: row["profit"], reverse=True)
        by_loss = sorted(vehicle_rows, key=lambda row: row["profit"])

        def profit_entries(rows):
            return [
                VehicleProfit(
                    vehicle_id=row["vehicle_id"],
                    vehicle_number=row["vehicle_number"],
                    profit=row["profit"],
                )
                for row in rows[:TOP_N]
            ]

        return VehicleBasedMetrics(
            total_active=active_vehicles,
            profitable=sum(1 for row in vehicle_rows if row["profit"] > 0),
            loss_making=sum(1 for row in vehicle_rows if row["profit"] < 0),
            no_data=len(vehicle_rows) - active_vehicles,
            top_by_revenue=[
                VehicleRevenue(
                    vehicle_id=row["vehicle_id"],
                    vehicle_number=row["vehicle_number"],
                    revenue=row["revenue"],
                )
                for row in by_revenue[:TOP_N]
            ],
            top_by_profit=profit_entries(by_profit),
            bottom_by_profit=profit_entries(by_loss),
        )

    def _customer_based_metrics(self, transactions):
        invoice_revenue = {}
        for transaction in transactions:
            if transaction.is_revenue and transaction.invoice_id:
                invoice_revenue[transaction.invoice_id] = (
                    invoice_revenue.get(transaction.invoice_id, ZERO) + transaction.amount
                )

        customer_revenue = {}
        for invoice_id, revenue in invoice_revenue.items():
            invoice = self.invoices.get_by_id(invoice_id)
            if invoice is None or not invoice.customer_id:
                continue
            customer_revenue[invoice.customer_id] = (
                customer_revenue.get(invoice.customer_id, ZERO) + revenue
            )

        ranked = sorted(customer_revenue.items(), key=lambda item: item[1], reverse=True)
        top_customers = []
        for customer_id, revenue in ranked[:TOP_N]:
            customer = self.customers.get_by_id(customer_id)
            top_customers.append(
                CustomerRevenue(
                    customer_id=customer_id,
                    customer_name=customer.name if customer is not None and customer.name else "Unknown",
                    revenue=revenue,
                )
            )

        return CustomerBasedMetrics(
            total_unique=len(customer_revenue),
            top_by_revenue=top_customers,
            avg_revenue_per_customer=_divide(
                sum(customer_revenue.values(), ZERO), len(customer_revenue)
            ),
        )

    def _category_based_metrics(self, transactions):
        revenue_by_category = {}
        expenses_by_category = {}
        for transaction in transactions:
            target = revenue_by_category if transaction.is_revenue else expenses_by_category
            category = transaction.resolved_category
            target[category] = target.get(category, ZERO) + transaction.amount

        top_expense_category = "N/A"
        if expenses_by_category:
            top_expense_category = max(expenses_by_category, key=expenses_by_category.get)

        return CategoryBasedMetrics(
            revenue_by_category=revenue_by_category,
            expenses_by_category=expenses_by_category,
            top_expense_category=top_expense_category,
        )

    def _operational_metrics(self, totals, vehicle_rows, active_vehicles, monthly_trend):
        trend_revenue = sum((month.revenue for month in monthly_trend), ZERO)

        most_active = MostActiveVehicle()
        if vehicle_rows:
            busiest = max(vehicle_rows, key=lambda row: row["count"])
            most_active = MostActiveVehicle(
                vehicle_id=busiest["vehicle_id"],
                vehicle_number=busiest["vehicle_number"],
                transaction_count=busiest["count"],
            )

        return OperationalMetrics(
            revenue_per_vehicle_per_month=_divide(trend_revenue, active_vehicles * len(monthly_trend)),
            expense_ratio=_percentage(totals["expenses"], totals["revenue"]),
            most_active_vehicle=most_active,
            avg_transactions_per_vehicle=_divide(totals["count"], active_vehicles),
        )
