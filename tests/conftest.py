from datetime import date
from itertools import count

import pytest

from fleet_app import create_app
from fleet_app.finance import FleetFinance
from fleet_app.models import Customer, Invoice, Vehicle, VehicleTransaction


TODAY = date(2025, 3, 10)


class FakeTransactionStore:
    def __init__(self, transactions=()):
        self.transactions = list(transactions)

    def get_all(self):
        return list(self.transactions)

    def get_by_vehicle_id(self, vehicle_id):
        return [t for t in self.transactions if t.vehicle_id == vehicle_id]


class FakeRecordStore:
    def __init__(self, records=()):
        self.records = list(records)

    def get_all(self):
        return list(self.records)

    def get_by_id(self, record_id):
        return next((r for r in self.records if r.id == record_id), None)


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "fleet.sqlite"),
        }
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def tx():
    """Factory for transactions; ``month`` defaults to the date's month."""
    ids = count(1)

    def make(vehicle_id, transaction_type, amount, on, month=None, **fields):
        return VehicleTransaction(
            id=fields.pop("id", f"tx{next(ids)}"),
            vehicle_id=vehicle_id,
            transaction_type=transaction_type,
            amount=amount,
            date=on,
            month=on[:7] if month is None else month,
            **fields,
        )

    return make


@pytest.fixture
def fleet():
    """Builds a FleetFinance over in-memory stores pinned to TODAY."""

    def build(transactions=(), vehicles=(), invoices=(), customers=(), today=TODAY):
        return FleetFinance(
            transactions=FakeTransactionStore(transactions),
            vehicles=FakeRecordStore(vehicles),
            invoices=FakeRecordStore(invoices),
            customers=FakeRecordStore(customers),
            today=today,
        )

    return build


def vehicle(vehicle_id, number=None):
    return Vehicle(id=vehicle_id, vehicle_number=number or vehicle_id.upper())


def invoice(invoice_id, customer_id):
    return Invoice(id=invoice_id, number=invoice_id.upper(), date="2025-03-01", customer_id=customer_id)


def customer(customer_id, name):
    return Customer(id=customer_id, name=name)


@pytest.fixture
def records():
    """Constructors for vehicles, invoices and customers."""

    class Records:
        pass

    records = Records()
    records.vehicle = vehicle
    records.invoice = invoice
    records.customer = customer
    return records
