import pytest
import os
import random
from datetime import date, datetime, timedelta
from decimal import Decimal
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing engine components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PROFESSIONAL_TAX_MODE"] = "flat"
os.environ["ATTENDANCE_ABSENCE_AS_DEFAULT"] = "false"

from payroll_engine.database import Base
from payroll_engine import models  # noqa: F401
from payroll_engine.models.attendance import Attendance, AttendanceStatus
from payroll_engine.models.salary_structure import ComputationType, WageType
from payroll_engine.schemas.attendance import AttendanceRecordSchema
from payroll_engine.schemas.salary import SalaryComponentSchema, SalaryStructureSchema
from payroll_engine.utils.dates import is_working_day, iter_days

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    # pysqlite's own BEGIN handling breaks SAVEPOINT; let SQLAlchemy emit it
    dbapi_connection.isolation_level = None

@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Session whose commits land in savepoints of an outer transaction rolled back after each test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()

@pytest.fixture(scope="function")
def rng():
    """Deterministic random source for generated fixtures."""
    return random.Random(20251001)

@pytest.fixture(scope="function")
def october():
    """Oct 2025: 31 days, 4 Sundays, 27 working days."""
    return date(2025, 10, 1), date(2025, 10, 31)

@pytest.fixture(scope="function")
def fixed_structure():
    """Monthly wage 50000: Basic 50%, HRA 50% of Basic, fixed allowance 2500, bonus 10%."""
    return SalaryStructureSchema(
        employee_id="EMP-001",
        wage_type=WageType.FIXED,
        wage=Decimal("50000"),
        pf_rate=Decimal("12"),
        professional_tax=Decimal("200"),
        components=[
            SalaryComponentSchema(name="Basic", computation_type=ComputationType.PERCENTAGE_OF_WAGE, value=Decimal("50"), order=1),
            SalaryComponentSchema(name="HRA", computation_type=ComputationType.PERCENTAGE_OF_BASIC, value=Decimal("50"), order=2),
            SalaryComponentSchema(name="Fixed Allowance", computation_type=ComputationType.FIXED_AMOUNT, value=Decimal("2500"), order=3),
            SalaryComponentSchema(name="Performance Bonus", computation_type=ComputationType.PERCENTAGE_OF_WAGE, value=Decimal("10"), order=4),
        ],
    )

@pytest.fixture(scope="function")
def hourly_structure():
    return SalaryStructureSchema(
        employee_id="EMP-002",
        wage_type=WageType.HOURLY,
        wage=Decimal("250"),
        pf_rate=Decimal("12"),
        professional_tax=Decimal("200"),
        components=[
            SalaryComponentSchema(name="Basic", computation_type=ComputationType.PERCENTAGE_OF_WAGE, value=Decimal("60"), order=1),
            SalaryComponentSchema(name="Hourly Allowance", computation_type=ComputationType.PERCENTAGE_OF_WAGE, value=Decimal("40"), order=2),
        ],
    )

@pytest.fixture(scope="function")
def make_month_records(rng):
    """
    Build one PRESENT record per working day of a period.

    Hours are drawn from the seeded rng when `hours` is not given.
    """
    def _make(period_start, period_end, hours=None, employee_id="EMP-001", skip=()):
        records = []
        for day in iter_days(period_start, period_end):
            if not is_working_day(day) or day in skip:
                continue
            worked = Decimal(hours) if hours is not None else Decimal(rng.choice(["8.00", "8.50", "9.00", "9.25"]))
            check_in = datetime(day.year, day.month, day.day, 9, 0)
            records.append(AttendanceRecordSchema(
                employee_id=employee_id,
                date=day,
                status=AttendanceStatus.PRESENT,
                check_in=check_in,
                check_out=check_in + timedelta(hours=float(worked)),
                working_hours=worked,
            ))
        return records
    return _make

@pytest.fixture(scope="function")
def seed_attendance(db_session, make_month_records):
    """Persist a full month of attendance for an employee."""
    def _seed(employee_id, period_start, period_end, hours="8"):
        for record in make_month_records(period_start, period_end, hours=hours, employee_id=employee_id):
            db_session.add(Attendance(
                employee_id=employee_id,
                date=record.date,
                status=record.status.value,
                check_in=record.check_in,
                check_out=record.check_out,
                working_hours=record.working_hours,
            ))
        db_session.commit()
    return _seed
