"""sqlite3-backed stores returning validated records.

Each store wraps an open connection (``get_db()`` inside a request) and maps
``sqlite3.Row`` objects into the models from ``fleet_app.models``. Database
errors are not caught here.
"""

import sqlite3
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pydantic.alias_generators import to_camel

from .errors import DeleteConflictError, ReferenceNotFoundError, ValidationError
from .models import (
    Customer,
    Employee,
    ExpenseCategory,
    Invoice,
    TransactionType,
    Vehicle,
    VehicleTransaction,
)


def _value(data, name, default=None):
    """Read ``name`` from a request payload in snake_case or camelCase."""
    if name in data:
        return data[name]
    return data.get(to_camel(name), default)


def _text_or_none(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _decimal(value):
    return Decimal(str(value or 0))


def _new_id(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def _one_year_before(day):
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        return day.replace(year=day.year - 1, day=28)


class TransactionStore:
    def __init__(self, db, today=None):
        self.db = db
        self.today = today

    @staticmethod
    def _from_row(row):
        return VehicleTransaction(
            id=row["id"],
            vehicle_id=row["vehicle_id"],
            transaction_type=row["transaction_type"],
            category=row["category"] or None,
            amount=_decimal(row["amount"]),
            date=row["transaction_date"],
            month=row["month"] or "",
            description=row["description"] or None,
            employee_id=row["employee_id"] or None,
            invoice_id=row["invoice_id"] or None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_all(self):
        rows = self.db.execute(
            """
            SELECT * FROM vehicle_transactions
            ORDER BY transaction_date DESC, created_at DESC
            """
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_id(self, transaction_id):
        row = self.db.execute(
            "SELECT * FROM vehicle_transactions WHERE id = ?", (transaction_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def get_by_vehicle_id(self, vehicle_id):
        rows = self.db.execute(
            """
            SELECT * FROM vehicle_transactions
            WHERE vehicle_id = ?
            ORDER BY transaction_date DESC, created_at DESC
            """,
            (vehicle_id,),
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_vehicle_id_and_month(self, vehicle_id, month):
        rows = self.db.execute(
            """
            SELECT * FROM vehicle_transactions
            WHERE vehicle_id = ? AND month = ?
            ORDER BY transaction_date DESC, created_at DESC
            """,
            (vehicle_id, month),
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def _validate_date(self, raw_date):
        try:
            transaction_date = date.fromisoformat(str(raw_date or "").strip())
        except ValueError:
            raise ValidationError("Transaction date must be a valid YYYY-MM-DD date")

        today = self.today or date.today()
        if transaction_date > today:
            raise ValidationError("Transaction date cannot be in the future")
        if transaction_date < _one_year_before(today):
            raise ValidationError("Transaction date cannot be more than 12 months in the past")
        return transaction_date.isoformat()

    @staticmethod
    def _validate_amount(raw_amount):
        try:
            amount = Decimal(str(raw_amount).strip())
        except InvalidOperation:
            raise ValidationError("Transaction amount must be greater than 0")
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("Transaction amount must be greater than 0")
        return amount

    @staticmethod
    def _validate_type(raw_type):
        try:
            return TransactionType(raw_type).value
        except ValueError:
            raise ValidationError("Transaction type must be 'revenue' or 'expense'")

    def _validate_references(self, vehicle_id, employee_id):
        vehicle = self.db.execute(
            "SELECT id FROM vehicles WHERE id = ?", (vehicle_id,)
        ).fetchone()
        if vehicle is None:
            raise ReferenceNotFoundError(f'Vehicle with ID "{vehicle_id}" does not exist')

        if employee_id:
            employee = self.db.execute(
                "SELECT id FROM employees WHERE id = ?", (employee_id,)
            ).fetchone()
            if employee is None:
                raise ReferenceNotFoundError(f'Employee with ID "{employee_id}" does not exist')

    def create(self, data):
        transaction_date = self._validate_date(_value(data, "date"))
        amount = self._validate_amount(_value(data, "amount"))
        transaction_type = self._validate_type(_value(data, "transaction_type"))
        vehicle_id = _text_or_none(_value(data, "vehicle_id"))
        employee_id = _text_or_none(_value(data, "employee_id"))
        self._validate_references(vehicle_id, employee_id)

        transaction_id = _text_or_none(_value(data, "id")) or _new_id("VTX")
        now = datetime.now().isoformat()
        self.db.execute(
            """
            INSERT INTO vehicle_transactions (
                id, vehicle_id, transaction_type, category, amount, transaction_date,
                month, description, employee_id, invoice_id, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                transaction_id,
                vehicle_id,
                transaction_type,
                _text_or_none(_value(data, "category")),
                float(amount),
                transaction_date,
                transaction_date[:7],
                _text_or_none(_value(data, "description")),
                employee_id,
                _text_or_none(_value(data, "invoice_id")),
                now,
                now,
            ),
        )
        self.db.commit()
        return self.get_by_id(transaction_id)

    def update(self, transaction_id, data):
        existing = self.get_by_id(transaction_id)
        if existing is None:
            raise ReferenceNotFoundError(f'Transaction with ID "{transaction_id}" does not exist')

        transaction_date = existing.date
        month = existing.month
        if _value(data, "date"):
            transaction_date = self._validate_date(_value(data, "date"))
            month = transaction_date[:7]

        amount = existing.amount
        if _value(data, "amount") is not None:
            amount = self._validate_amount(_value(data, "amount"))

        transaction_type = existing.transaction_type.value
        if _value(data, "transaction_type") is not None:
            transaction_type = self._validate_type(_value(data, "transaction_type"))

        def merged(name):
            if name in data or to_camel(name) in data:
                return _text_or_none(_value(data, name))
            return getattr(existing, name)

        vehicle_id = merged("vehicle_id")
        employee_id = merged("employee_id")
        self._validate_references(vehicle_id, employee_id)

        self.db.execute(
            """
            UPDATE vehicle_transactions
            SET vehicle_id = ?, transaction_type = ?, category = ?, amount = ?,
                transaction_date = ?, month = ?, description = ?, employee_id = ?,
                invoice_id = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                vehicle_id,
                transaction_type,
                merged("category"),
                float(amount),
                transaction_date,
                month,
                merged("description"),
                employee_id,
                merged("invoice_id"),
                datetime.now().isoformat(),
                transaction_id,
            ),
        )
        self.db.commit()
        return self.get_by_id(transaction_id)

    def delete(self, transaction_id):
        self.db.execute("DELETE FROM vehicle_transactions WHERE id = ?", (transaction_id,))
        self.db.commit()


class VehicleStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_row(row):
        return Vehicle(
            id=row["id"],
            vehicle_number=row["vehicle_number"] or "",
            vehicle_type=row["vehicle_type"],
            make=row["make"],
            model=row["model"],
            year=row["year"],
            status=row["status"] or "active",
            created_at=row["created_at"],
        )

    def get_all(self):
        rows = self.db.execute("SELECT * FROM vehicles ORDER BY created_at, rowid").fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_id(self, vehicle_id):
        row = self.db.execute("SELECT * FROM vehicles WHERE id = ?", (vehicle_id,)).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def create(self, data):
        vehicle_number = _text_or_none(_value(data, "vehicle_number"))
        if not vehicle_number:
            raise ValidationError("Vehicle number is required")

        existing = self.db.execute(
            "SELECT id FROM vehicles WHERE vehicle_number = ?", (vehicle_number,)
        ).fetchone()
        if existing is not None:
            raise ValidationError(f'Vehicle number "{vehicle_number}" already exists')

        year = _value(data, "year")
        try:
            year = int(year) if year not in (None, "") else None
        except (TypeError, ValueError):
            raise ValidationError("Vehicle year must be a number")

        vehicle_id = _text_or_none(_value(data, "id")) or _new_id("VEH")
        self.db.execute(
            """
            INSERT INTO vehicles (id, vehicle_number, vehicle_type, make, model, year, status)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                vehicle_id,
                vehicle_number,
                _text_or_none(_value(data, "vehicle_type")),
                _text_or_none(_value(data, "make")),
                _text_or_none(_value(data, "model")),
                year,
                _text_or_none(_value(data, "status")) or "active",
            ),
        )
        self.db.commit()
        return self.get_by_id(vehicle_id)

    def update(self, vehicle_id, data):
        existing = self.get_by_id(vehicle_id)
        if existing is None:
            raise ReferenceNotFoundError(f'Vehicle with ID "{vehicle_id}" does not exist')

        def merged(name):
            if name in data or to_camel(name) in data:
                return _value(data, name)
            return getattr(existing, name)

        vehicle_number = _text_or_none(merged("vehicle_number"))
        if not vehicle_number:
            raise ValidationError("Vehicle number is required")

        duplicate = self.db.execute(
            "SELECT id FROM vehicles WHERE vehicle_number = ? AND id != ?",
            (vehicle_number, vehicle_id),
        ).fetchone()
        if duplicate is not None:
            raise ValidationError(f'Vehicle number "{vehicle_number}" already exists')

        year = merged("year")
        try:
            year = int(year) if year not in (None, "") else None
        except (TypeError, ValueError):
            raise ValidationError("Vehicle year must be a number")

        self.db.execute(
            """
            UPDATE vehicles
            SET vehicle_number = ?, vehicle_type = ?, make = ?, model = ?, year = ?, status = ?
            WHERE id = ?
            """,
            (
                vehicle_number,
                _text_or_none(merged("vehicle_type")),
                _text_or_none(merged("make")),
                _text_or_none(merged("model")),
                year,
                _text_or_none(merged("status")) or "active",
                vehicle_id,
            ),
        )
        self.db.commit()
        return self.get_by_id(vehicle_id)

    def delete(self, vehicle_id):
        """Delete a vehicle; its transactions go with it (ON DELETE CASCADE)."""
        try:
            self.db.execute("DELETE FROM vehicles WHERE id = ?", (vehicle_id,))
            self.db.commit()
        except sqlite3.IntegrityError:
            self.db.rollback()
            raise DeleteConflictError("Cannot delete Vehicle as it is referenced in other records")


class EmployeeStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_row(row):
        salary = row["salary"]
        return Employee(
            id=row["id"],
            name=row["name"],
            role=row["role"],
            payment_type=row["payment_type"],
            salary=_decimal(salary) if salary is not None else None,
            created_at=row["created_at"],
        )

    def get_all(self):
        rows = self.db.execute("SELECT * FROM employees ORDER BY name").fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_id(self, employee_id):
        row = self.db.execute("SELECT * FROM employees WHERE id = ?", (employee_id,)).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def create(self, data):
        name = _text_or_none(_value(data, "name"))
        if not name:
            raise ValidationError("Employee name is required")

        salary = _value(data, "salary")
        if salary not in (None, ""):
            try:
                salary = Decimal(str(salary))
            except InvalidOperation:
                raise ValidationError("Employee salary must be a number")
            if not salary.is_finite() or salary < 0:
                raise ValidationError("Employee salary must be a number")
            salary = float(salary)
        else:
            salary = None

        employee_id = _text_or_none(_value(data, "id")) or _new_id("EMP")
        self.db.execute(
            """
            INSERT INTO employees (id, name, role, payment_type, salary)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                employee_id,
                name,
                _text_or_none(_value(data, "role")),
                _text_or_none(_value(data, "payment_type")),
                salary,
            ),
        )
        self.db.commit()
        return self.get_by_id(employee_id)


class CustomerStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_row(row):
        return Customer(
            id=row["id"],
            name=row["name"],
            company=row["company"],
            email=row["email"],
            phone=row["phone"],
            created_at=row["created_at"],
        )

    def get_all(self):
        rows = self.db.execute("SELECT * FROM customers ORDER BY name").fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_id(self, customer_id):
        row = self.db.execute("SELECT * FROM customers WHERE id = ?", (customer_id,)).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def create(self, data):
        name = _text_or_none(_value(data, "name"))
        if not name:
            raise ValidationError("Customer name is required")

        customer_id = _text_or_none(_value(data, "id")) or _new_id("CUS")
        self.db.execute(
            """
            INSERT INTO customers (id, name, company, email, phone)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                customer_id,
                name,
                _text_or_none(_value(data, "company")),
                _text_or_none(_value(data, "email")),
                _text_or_none(_value(data, "phone")),
            ),
        )
        self.db.commit()
        return self.get_by_id(customer_id)


class InvoiceStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_row(row):
        return Invoice(
            id=row["id"],
            number=row["number"],
            date=row["invoice_date"],
            customer_id=row["customer_id"] or None,
            total=_decimal(row["total"]),
            created_at=row["created_at"],
        )

    def get_all(self):
        rows = self.db.execute(
            "SELECT * FROM invoices ORDER BY invoice_date DESC, created_at DESC"
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_id(self, invoice_id):
        row = self.db.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def create(self, data):
        invoice_id = _text_or_none(_value(data, "id")) or _new_id("INV")
        invoice_date = _text_or_none(_value(data, "date")) or date.today().isoformat()
        try:
            total = Decimal(str(_value(data, "total", 0)))
        except InvalidOperation:
            raise ValidationError("Invoice total must be a number")

        self.db.execute(
            """
            INSERT INTO invoices (id, number, invoice_date, customer_id, total)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                invoice_id,
                _text_or_none(_value(data, "number")) or invoice_id,
                invoice_date,
                _text_or_none(_value(data, "customer_id")),
                float(total),
            ),
        )
        self.db.commit()
        return self.get_by_id(invoice_id)


class ExpenseCategoryStore:
    def __init__(self, db):
        self.db = db

    @staticmethod
    def _from_row(row):
        return ExpenseCategory(
            id=row["id"],
            name=row["name"],
            is_custom=bool(row["is_custom"]),
            created_at=row["created_at"],
        )

    def get_all(self):
        rows = self.db.execute(
            "SELECT * FROM expense_categories ORDER BY is_custom, name"
        ).fetchall()
        return [self._from_row(row) for row in rows]

    def get_by_id(self, category_id):
        row = self.db.execute(
            "SELECT * FROM expense_categories WHERE id = ?", (category_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def create(self, data):
        name = _text_or_none(_value(data, "name"))
        if not name:
            raise ValidationError("Category name is required")

        existing = self.db.execute(
            "SELECT id FROM expense_categories WHERE LOWER(name) = LOWER(?)", (name,)
        ).fetchone()
        if existing is not None:
            raise ValidationError("Category with this name already exists")

        category_id = _text_or_none(_value(data, "id")) or _new_id("CAT")
        self.db.execute(
            "INSERT INTO expense_categories (id, name, is_custom) VALUES (?, ?, 1)",
            (category_id, name),
        )
        self.db.commit()
        return self.get_by_id(category_id)

    def update(self, category_id, data):
        if self.get_by_id(category_id) is None:
            raise ReferenceNotFoundError(f'Expense category with ID "{category_id}" does not exist')

        name = _text_or_none(_value(data, "name"))
        if not name:
            raise ValidationError("Category name is required")

        existing = self.db.execute(
            "SELECT id FROM expense_categories WHERE LOWER(name) = LOWER(?) AND id != ?",
            (name, category_id),
        ).fetchone()
        if existing is not None:
            raise ValidationError("Category with this name already exists")

        self.db.execute(
            "UPDATE expense_categories SET name = ? WHERE id = ?", (name, category_id)
        )
        self.db.commit()
        return self.get_by_id(category_id)

    def delete(self, category_id):
        category = self.get_by_id(category_id)
        if category is None:
            return
        if not category.is_custom:
            raise DeleteConflictError("Cannot delete predefined expense category")

        used = self.db.execute(
            "SELECT COUNT(*) AS count FROM vehicle_transactions WHERE category = ?",
            (category.name,),
        ).fetchone()
        if used["count"] > 0:
            raise DeleteConflictError(
                "Cannot delete expense category that is used in transactions"
            )

        self.db.execute("DELETE FROM expense_categories WHERE id = ?", (category_id,))
        self.db.commit()
