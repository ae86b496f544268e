import pytest
import logging
from datetime import date
from decimal import Decimal

from payroll_engine.core.exceptions import (
    IncompleteAttendanceError, InvalidTransitionError, MissingSalaryStructureError,
    NegativeWageError, NotFoundError, PayslipExistsError
)
from payroll_engine.core.logging import payrun_id_var
from payroll_engine.models.payslip import Payslip, PayslipComponent, PayslipStatus
from payroll_engine.models.salary_structure import SalaryStructure
from payroll_engine.schemas.payslip import PayslipResponse
from payroll_engine.services import payroll_service
from payroll_engine.services.data_source import SqlPayrollDataSource
from payroll_engine.services.professional_tax import SlabProfessionalTax
from payroll_engine.core.config import TaxSlab
from payroll_engine.services.salary_structure_service import create_with_components, list_employees_with_structure


@pytest.fixture
def employee(db_session, fixed_structure, seed_attendance, october):
    start, end = october
    create_with_components(db_session, "EMP-001", fixed_structure)
    seed_attendance("EMP-001", start, end)
    return "EMP-001"


def test_compute_payslip_persists_draft(db_session, employee, october):
    start, end = october

    payslip = payroll_service.compute_payslip(db_session, employee, start, end)

    assert payslip.id is not None
    assert payslip.status == PayslipStatus.DRAFT.value
    assert payslip.pay_period == "Oct 2025"
    assert payslip.working_days == 27
    assert payslip.worked_days == Decimal("27")
    assert payslip.total_hours == Decimal("216")
    assert payslip.gross_wage == Decimal("45000")
    assert payslip.net_wage == Decimal("39400")
    assert payslip.employee_cost == Decimal("50400")
    assert [c.name for c in payslip.components] == [
        "Basic", "HRA", "Fixed Allowance", "Performance Bonus", "Provident Fund", "Professional Tax"
    ]
    assert sum(c.amount for c in payslip.components if not c.is_deduction) == payslip.gross_wage


def test_response_schema_reads_orm_payslip(db_session, employee, october):
    start, end = october
    payslip = payroll_service.compute_payslip(db_session, employee, start, end)

    response = PayslipResponse.model_validate(payslip)

    assert response.status == PayslipStatus.DRAFT
    assert len(response.earnings) == 4
    assert len(response.deductions) == 2


def test_compute_monthly_payslip(db_session, employee):
    payslip = payroll_service.compute_monthly_payslip(db_session, employee, 2025, 10)

    assert payslip.period_start == date(2025, 10, 1)
    assert payslip.period_end == date(2025, 10, 31)


def test_duplicate_active_payslip_is_rejected(db_session, employee, october):
    start, end = october
    first = payroll_service.compute_payslip(db_session, employee, start, end)

    with pytest.raises(PayslipExistsError) as exc:
        payroll_service.compute_payslip(db_session, employee, start, end)

    assert exc.value.details["payslip_id"] == first.id


def test_cancelled_payslip_can_be_recomputed(db_session, employee, october):
    start, end = october
    first = payroll_service.compute_payslip(db_session, employee, start, end)
    payroll_service.cancel_payslip(db_session, first.id)

    second = payroll_service.compute_payslip(db_session, employee, start, end)

    assert second.id != first.id


def test_database_refuses_second_live_payslip(db_session, employee, october, monkeypatch):
    """A compute that got past the duplicate lookup still cannot store a second live payslip."""
    start, end = october
    first = payroll_service.compute_payslip(db_session, employee, start, end)
    monkeypatch.setattr(payroll_service, "_find_active_payslip", lambda *args: None)

    with pytest.raises(PayslipExistsError) as exc:
        payroll_service.compute_payslip(db_session, employee, start, end)

    assert exc.value.details["payslip_id"] == first.id
    assert db_session.query(Payslip).filter(Payslip.employee_id == employee).count() == 1


def test_incomplete_attendance_persists_nothing(db_session, fixed_structure, october):
    start, end = october
    create_with_components(db_session, "EMP-009", fixed_structure)

    with pytest.raises(IncompleteAttendanceError):
        payroll_service.compute_payslip(db_session, "EMP-009", start, end)

    assert db_session.query(Payslip).filter(Payslip.employee_id == "EMP-009").count() == 0
    assert db_session.query(PayslipComponent).count() == 0


def test_absence_as_default_allows_empty_month(db_session, fixed_structure, october):
    start, end = october
    create_with_components(db_session, "EMP-009", fixed_structure)

    payslip = payroll_service.compute_payslip(db_session, "EMP-009", start, end, absence_as_default=True)

    assert payslip.worked_days == Decimal("0")
    # A fixed wage does not depend on attendance
    assert payslip.gross_wage == Decimal("45000")


def test_missing_structure(db_session, october):
    start, end = october

    with pytest.raises(MissingSalaryStructureError):
        payroll_service.compute_payslip(db_session, "NOBODY", start, end)


def test_custom_tax_strategy(db_session, employee, october):
    start, end = october
    strategy = SlabProfessionalTax([TaxSlab(up_to=None, amount=Decimal("300"))])

    payslip = payroll_service.compute_payslip(db_session, employee, start, end, tax_strategy=strategy)

    assert payslip.professional_tax == Decimal("300")
    assert payslip.total_deductions == Decimal("5700")


def test_custom_data_source(db_session, fixed_structure, october, make_month_records):
    start, end = october

    class InMemorySource:
        def get_attendance(self, employee_id, period_start, period_end):
            return make_month_records(period_start, period_end, hours="8", employee_id=employee_id)

        def get_approved_leaves(self, employee_id, period_start, period_end):
            return []

        def get_salary_structure(self, employee_id):
            return fixed_structure

    payslip = payroll_service.compute_payslip(db_session, "EMP-001", start, end, data_source=InMemorySource())

    assert payslip.gross_wage == Decimal("45000")


def test_build_payslip_draft_is_repeatable(db_session, employee, october):
    start, end = october
    source = SqlPayrollDataSource(db_session)

    first = payroll_service.build_payslip_draft(source, employee, start, end)
    second = payroll_service.build_payslip_draft(source, employee, start, end)

    assert first == second
    assert db_session.query(Payslip).count() == 0


def test_delete_draft_payslip(db_session, employee, october):
    start, end = october
    payslip = payroll_service.compute_payslip(db_session, employee, start, end)
    payslip_id = payslip.id

    payroll_service.delete_payslip(db_session, payslip_id)

    with pytest.raises(NotFoundError):
        payroll_service.get_payslip(db_session, payslip_id)
    assert db_session.query(PayslipComponent).filter(PayslipComponent.payslip_id == payslip_id).count() == 0


def test_done_payslip_cannot_be_deleted(db_session, employee, october):
    start, end = october
    payslip = payroll_service.compute_payslip(db_session, employee, start, end)
    payroll_service.validate_payslip(db_session, payslip.id)

    with pytest.raises(InvalidTransitionError):
        payroll_service.delete_payslip(db_session, payslip.id)


def test_summary_excludes_cancelled(db_session, fixed_structure, seed_attendance, october):
    start, end = october
    for employee_id in ("EMP-101", "EMP-102", "EMP-103"):
        create_with_components(db_session, employee_id, fixed_structure)
        seed_attendance(employee_id, start, end)
    done = payroll_service.compute_payslip(db_session, "EMP-101", start, end)
    payroll_service.validate_payslip(db_session, done.id)
    payroll_service.compute_payslip(db_session, "EMP-102", start, end)
    cancelled = payroll_service.compute_payslip(db_session, "EMP-103", start, end)
    payroll_service.cancel_payslip(db_session, cancelled.id)

    summary = payroll_service.get_payroll_summary(db_session, period_start=start, period_end=end)

    assert summary.total_payslips == 2
    assert summary.done_count == 1
    assert summary.draft_count == 1
    assert summary.total_gross_wage == Decimal("90000")
    assert summary.total_net_wage == Decimal("78800")
    assert summary.total_employee_cost == Decimal("100800")
    assert summary.total_basic_wage == Decimal("50000")


def test_summary_for_one_employee(db_session, employee, october):
    start, end = october
    payroll_service.compute_payslip(db_session, employee, start, end)

    assert payroll_service.get_payroll_summary(db_session, employee_id=employee).total_payslips == 1
    assert payroll_service.get_payroll_summary(db_session, employee_id="EMP-404").total_payslips == 0


def test_employee_payslip_history(db_session, employee, october):
    start, end = october
    payroll_service.compute_payslip(db_session, employee, start, end)

    history = payroll_service.get_employee_payslip_history(db_session, employee)

    assert len(history) == 1
    assert history[0]["pay_period"] == "Oct 2025"
    assert history[0]["status"] == "DRAFT"


def test_new_structure_replaces_active_one(db_session, fixed_structure, hourly_structure):
    first = create_with_components(db_session, "EMP-001", fixed_structure)
    second = create_with_components(db_session, "EMP-001", hourly_structure)

    db_session.refresh(first)
    assert first.is_active is False
    assert second.is_active is True
    assert [c.name for c in second.components] == ["Basic", "Hourly Allowance"]
    assert SqlPayrollDataSource(db_session).get_salary_structure("EMP-001").wage_type == hourly_structure.wage_type
    assert list_employees_with_structure(db_session) == ["EMP-001"]


def test_invalid_structure_is_not_stored(db_session, fixed_structure):
    bad = fixed_structure.model_copy(update={"wage": Decimal("-5")})

    with pytest.raises(NegativeWageError):
        create_with_components(db_session, "EMP-001", bad)

    assert db_session.query(SalaryStructure).count() == 0


def test_payrun_collects_errors(db_session, fixed_structure, seed_attendance, october, caplog):
    start, end = october
    for employee_id in ("EMP-201", "EMP-202"):
        create_with_components(db_session, employee_id, fixed_structure)
    seed_attendance("EMP-201", start, end)
    # EMP-202 has no attendance at all

    with caplog.at_level(logging.WARNING):
        result = payroll_service.generate_payrun(db_session, 2025, 10)

    assert result.pay_period == "Oct 2025"
    assert result.total == 1
    assert result.payslips[0].employee_id == "EMP-201"
    assert [(e.employee_id, e.error_code) for e in result.errors] == [("EMP-202", "INCOMPLETE_ATTENDANCE")]
    assert "EMP-202" in caplog.text
    assert payrun_id_var.get() == ""


def test_payrun_for_selected_employees(db_session, employee):
    result = payroll_service.generate_payrun(db_session, 2025, 10, employee_ids=[employee, "NOBODY"])

    assert result.total == 1
    assert result.errors[0].error_code == "MISSING_SALARY_STRUCTURE"


def test_payrun_skips_existing_payslips(db_session, employee):
    payroll_service.generate_payrun(db_session, 2025, 10)

    rerun = payroll_service.generate_payrun(db_session, 2025, 10)

    assert rerun.total == 0
    assert rerun.errors[0].error_code == "PAYSLIP_EXISTS"
