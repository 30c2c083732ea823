import sqlite3

import click
from flask import current_app, g
from flask.cli import with_appcontext


PREDEFINED_EXPENSE_CATEGORIES = (
    "Fuel",
    "Maintenance",
    "Insurance",
    "Salik",
    "Salary",
    "Parking",
    "Fines",
    "Other",
)


def get_db():
    if "db" not in g:
        g.db = sqlite3.connect(current_app.config["DATABASE"])
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA foreign_keys = ON")
    return g.db


def close_db(e=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def ensure_vehicles_table():
    db = get_db()
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS vehicles (
          id TEXT PRIMARY KEY,
          vehicle_number TEXT NOT NULL UNIQUE,
          vehicle_type TEXT,
          make TEXT,
          model TEXT,
          year INTEGER,
          status TEXT NOT NULL DEFAULT 'active',
          created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    db.commit()


def ensure_customers_table():
    db = get_db()
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS customers (
          id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          company TEXT,
          email TEXT,
          phone TEXT,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    db.commit()


def ensure_employees_table():
    db = get_db()
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS employees (
          id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          role TEXT,
          payment_type TEXT,
          salary REAL,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    columns = db.execute("PRAGMA table_info(employees)").fetchall()
    column_names = {column[1] for column in columns}
    for column, column_type in (("role", "TEXT"), ("payment_type", "TEXT"), ("salary", "REAL")):
        if column not in column_names:
            db.execute(f"ALTER TABLE employees ADD COLUMN {column} {column_type}")
    db.commit()


def ensure_invoices_table():
    db = get_db()
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS invoices (
          id TEXT PRIMARY KEY,
          number TEXT NOT NULL,
          invoice_date TEXT NOT NULL,
          customer_id TEXT,
          total REAL NOT NULL DEFAULT 0,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    db.commit()


def ensure_expense_categories_table():
    db = get_db()
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS expense_categories (
          id TEXT PRIMARY KEY,
          name TEXT NOT NULL UNIQUE,
          is_custom INTEGER NOT NULL DEFAULT 0,
          created_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    for name in PREDEFINED_EXPENSE_CATEGORIES:
        db.execute(
            """
            INSERT OR IGNORE INTO expense_categories (id, name, is_custom)
            VALUES (?, ?, 0)
            """,
            (f"cat_{name.lower()}", name),
        )
    db.commit()


def ensure_vehicle_transactions_table():
    db = get_db()
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS vehicle_transactions (
          id TEXT PRIMARY KEY,
          vehicle_id TEXT NOT NULL REFERENCES vehicles(id) ON DELETE CASCADE,
          transaction_type TEXT NOT NULL,
          category TEXT,
          amount REAL NOT NULL,
          transaction_date TEXT NOT NULL,
          month TEXT NOT NULL,
          description TEXT,
          employee_id TEXT,
          invoice_id TEXT,
          created_at TEXT,
          updated_at TEXT
        )
        """
    )

    columns = db.execute("PRAGMA table_info(vehicle_transactions)").fetchall()
    column_names = {column[1] for column in columns}
    if "invoice_id" not in column_names:
        db.execute("ALTER TABLE vehicle_transactions ADD COLUMN invoice_id TEXT")
    if "employee_id" not in column_names:
        db.execute("ALTER TABLE vehicle_transactions ADD COLUMN employee_id TEXT")

    db.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_vehicle_transactions_vehicle
        ON vehicle_transactions(vehicle_id, month)
        """
    )
    db.commit()


def init_db():
    ensure_vehicles_table()
    ensure_customers_table()
    ensure_employees_table()
    ensure_invoices_table()
    ensure_expense_categories_table()
    ensure_vehicle_transactions_table()


@click.command("init-db")
@with_appcontext
def init_db_command():
    init_db()
    click.echo("Initialized the database.")


def init_app(app):
    app.teardown_appcontext(close_db)
    app.cli.add_command(init_db_command)
