import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import InternalServerError

from .db import get_db, init_app as init_db_app, init_db
from .errors import DeleteConflictError, ReferenceNotFoundError, ValidationError
from .finance import FleetFinance, empty_dashboard_metrics
from .stores import (
    CustomerStore,
    EmployeeStore,
    ExpenseCategoryStore,
    InvoiceStore,
    TransactionStore,
    VehicleStore,
)


def _dump(value):
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value.model_dump(mode="json", by_alias=True)


def _error(message, status_code):
    return jsonify({"error": message}), status_code


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {}
    return data


def _finance(db):
    return FleetFinance(
        transactions=TransactionStore(db),
        vehicles=VehicleStore(db),
        invoices=InvoiceStore(db),
        customers=CustomerStore(db),
    )


def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(
        SECRET_KEY="dev",
        DATABASE=os.path.join(app.instance_path, "fleet.sqlite"),
        LOG_LEVEL="INFO",
    )

    if test_config is None:
        app.config.from_pyfile("config.py", silent=True)
    else:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass

    init_db_app(app)

    with app.app_context():
        init_db()

    @app.errorhandler(InternalServerError)
    def internal_error(error):
        original = getattr(error, "original_exception", None)
        return _error(str(original or error.description), 500)

    # Vehicles

    @app.get("/api/vehicles")
    def list_vehicles():
        return jsonify(_dump(VehicleStore(get_db()).get_all()))

    @app.get("/api/vehicles/<vehicle_id>")
    def get_vehicle(vehicle_id):
        vehicle = VehicleStore(get_db()).get_by_id(vehicle_id)
        if vehicle is None:
            return _error("Vehicle not found", 404)
        return jsonify(_dump(vehicle))

    @app.post("/api/vehicles")
    def create_vehicle():
        try:
            vehicle = VehicleStore(get_db()).create(_payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(vehicle)), 201

    @app.put("/api/vehicles/<vehicle_id>")
    def update_vehicle(vehicle_id):
        try:
            vehicle = VehicleStore(get_db()).update(vehicle_id, _payload())
        except ReferenceNotFoundError:
            return _error("Vehicle not found", 404)
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(vehicle))

    @app.delete("/api/vehicles/<vehicle_id>")
    def delete_vehicle(vehicle_id):
        try:
            VehicleStore(get_db()).delete(vehicle_id)
        except DeleteConflictError as e:
            return _error(str(e), 409)
        return "", 204

    # Employees

    @app.get("/api/employees")
    def list_employees():
        return jsonify(_dump(EmployeeStore(get_db()).get_all()))

    @app.get("/api/employees/<employee_id>")
    def get_employee(employee_id):
        employee = EmployeeStore(get_db()).get_by_id(employee_id)
        if employee is None:
            return _error("Employee not found", 404)
        return jsonify(_dump(employee))

    @app.post("/api/employees")
    def create_employee():
        try:
            employee = EmployeeStore(get_db()).create(_payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(employee)), 201

    # Customers and invoices

    @app.get("/api/customers")
    def list_customers():
        return jsonify(_dump(CustomerStore(get_db()).get_all()))

    @app.post("/api/customers")
    def create_customer():
        try:
            customer = CustomerStore(get_db()).create(_payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(customer)), 201

    @app.get("/api/invoices")
    def list_invoices():
        return jsonify(_dump(InvoiceStore(get_db()).get_all()))

    @app.get("/api/invoices/<invoice_id>")
    def get_invoice(invoice_id):
        invoice = InvoiceStore(get_db()).get_by_id(invoice_id)
        if invoice is None:
            return _error("Invoice not found", 404)
        return jsonify(_dump(invoice))

    @app.post("/api/invoices")
    def create_invoice():
        try:
            invoice = InvoiceStore(get_db()).create(_payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(invoice)), 201

    # Expense categories

    @app.get("/api/expense-categories")
    def list_expense_categories():
        return jsonify(_dump(ExpenseCategoryStore(get_db()).get_all()))

    @app.post("/api/expense-categories")
    def create_expense_category():
        try:
            category = ExpenseCategoryStore(get_db()).create(_payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(category)), 201

    @app.get("/api/expense-categories/<category_id>")
    def get_expense_category(category_id):
        category = ExpenseCategoryStore(get_db()).get_by_id(category_id)
        if category is None:
            return _error("Expense category not found", 404)
        return jsonify(_dump(category))

    @app.put("/api/expense-categories/<category_id>")
    def update_expense_category(category_id):
        try:
            category = ExpenseCategoryStore(get_db()).update(category_id, _payload())
        except ReferenceNotFoundError:
            return _error("Expense category not found", 404)
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(category))

    @app.delete("/api/expense-categories/<category_id>")
    def delete_expense_category(category_id):
        try:
            ExpenseCategoryStore(get_db()).delete(category_id)
        except DeleteConflictError as e:
            return _error(str(e), 409)
        return "", 204

    # Vehicle transactions

    @app.get("/api/vehicle-transactions")
    def list_vehicle_transactions():
        store = TransactionStore(get_db())
        vehicle_id = request.args.get("vehicleId", "").strip()
        month = request.args.get("month", "").strip()

        if vehicle_id and month:
            transactions = store.get_by_vehicle_id_and_month(vehicle_id, month)
        elif vehicle_id:
            transactions = store.get_by_vehicle_id(vehicle_id)
        else:
            transactions = store.get_all()
        return jsonify(_dump(transactions))

    @app.get("/api/vehicle-transactions/<transaction_id>")
    def get_vehicle_transaction(transaction_id):
        transaction = TransactionStore(get_db()).get_by_id(transaction_id)
        if transaction is None:
            return _error("Transaction not found", 404)
        return jsonify(_dump(transaction))

    @app.post("/api/vehicle-transactions")
    def create_vehicle_transaction():
        try:
            transaction = TransactionStore(get_db()).create(_payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(transaction)), 201

    @app.put("/api/vehicle-transactions/<transaction_id>")
    def update_vehicle_transaction(transaction_id):
        store = TransactionStore(get_db())
        if store.get_by_id(transaction_id) is None:
            return _error("Transaction not found", 404)
        try:
            transaction = store.update(transaction_id, _payload())
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(_dump(transaction))

    @app.delete("/api/vehicle-transactions/<transaction_id>")
    def delete_vehicle_transaction(transaction_id):
        TransactionStore(get_db()).delete(transaction_id)
        return "", 204

    # Vehicle finances

    @app.get("/api/vehicle-finances/dashboard")
    def vehicle_finance_dashboard():
        try:
            metrics = _finance(get_db()).dashboard_metrics()
        except Exception:
            # The dashboard degrades to "no data" instead of failing the page.
            app.logger.exception("Error getting dashboard metrics")
            metrics = empty_dashboard_metrics()
        return jsonify(_dump(metrics))

    @app.get("/api/vehicle-finances/<vehicle_id>")
    def vehicle_profitability(vehicle_id):
        summary = _finance(get_db()).profitability_by_vehicle(vehicle_id)
        return jsonify(_dump(summary))

    return app
