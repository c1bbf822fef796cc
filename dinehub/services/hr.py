"""
HR: employees, attendance, leave requests and payroll.

All records are scoped to a restaurant through their employee.
"""

import logging
from collections import Counter
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import ConflictError, NotFoundError
from dinehub.database import utcnow
from dinehub.models import (
    Attendance,
    AttendanceStatus,
    Employee,
    LeaveRequest,
    LeaveStatus,
    Payroll,
    PayrollStatus,
)
from dinehub.schemas import (
    AttendanceCreate,
    AttendanceSummary,
    EmployeeCreate,
    EmployeeUpdate,
    LeaveCreate,
    PayrollCreate,
)

logger = logging.getLogger(__name__)


# =============================================================================
# EMPLOYEES
# =============================================================================

async def create_employee(db: AsyncSession, restaurant_id: int, data: EmployeeCreate) -> Employee:
    employee = Employee(restaurant_id=restaurant_id, **data.model_dump())
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    logger.info(f"🧑‍🍳 Employee {employee.id} ({employee.first_name} {employee.last_name}) hired")
    return employee


async def list_employees(db: AsyncSession, restaurant_id: int, include_inactive: bool = False) -> list[Employee]:
    query = (
        select(Employee)
        .where(Employee.restaurant_id == restaurant_id)
        .order_by(Employee.last_name, Employee.first_name)
    )
    if not include_inactive:
        query = query.where(Employee.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_employee(db: AsyncSession, restaurant_id: int, employee_id: int) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None or employee.restaurant_id != restaurant_id:
        raise NotFoundError("Employee", employee_id)
    return employee


async def update_employee(db: AsyncSession, restaurant_id: int, employee_id: int, data: EmployeeUpdate) -> Employee:
    employee = await get_employee(db, restaurant_id, employee_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(employee, field, value)
    await db.commit()
    await db.refresh(employee)
    return employee


async def deactivate_employee(db: AsyncSession, restaurant_id: int, employee_id: int) -> None:
    employee = await get_employee(db, restaurant_id, employee_id)
    employee.is_active = False
    await db.commit()
    logger.info(f"🧑‍🍳 Employee {employee_id} deactivated")


# =============================================================================
# ATTENDANCE
# =============================================================================

async def record_attendance(db: AsyncSession, restaurant_id: int, data: AttendanceCreate) -> Attendance:
    await get_employee(db, restaurant_id, data.employee_id)
    record = Attendance(**data.model_dump(), month=data.date.month, year=data.date.year)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def list_attendance(
    db: AsyncSession,
    restaurant_id: int,
    month: Optional[int] = None,
    year: Optional[int] = None,
    employee_id: Optional[int] = None,
) -> list[Attendance]:
    query = (
        select(Attendance)
        .join(Employee, Employee.id == Attendance.employee_id)
        .where(Employee.restaurant_id == restaurant_id)
        .order_by(Attendance.date.desc(), Attendance.id.desc())
    )
    if month is not None:
        query = query.where(Attendance.month == month)
    if year is not None:
        query = query.where(Attendance.year == year)
    if employee_id is not None:
        query = query.where(Attendance.employee_id == employee_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def delete_attendance(db: AsyncSession, restaurant_id: int, attendance_id: int) -> None:
    record = await db.get(Attendance, attendance_id)
    if record is None:
        raise NotFoundError("Attendance", attendance_id)
    await get_employee(db, restaurant_id, record.employee_id)
    await db.delete(record)
    await db.commit()


async def attendance_summary(db: AsyncSession, restaurant_id: int, month: int, year: int) -> list[AttendanceSummary]:
    """Day counts per status for every active employee in one month."""
    employees = await list_employees(db, restaurant_id)
    records = await list_attendance(db, restaurant_id, month=month, year=year)

    counts: dict[int, Counter] = {e.id: Counter() for e in employees}
    for record in records:
        if record.employee_id in counts:
            counts[record.employee_id][record.status] += 1

    return [
        AttendanceSummary(
            employee_id=e.id,
            employee_name=f"{e.first_name} {e.last_name}",
            present=counts[e.id][AttendanceStatus.PRESENT],
            absent=counts[e.id][AttendanceStatus.ABSENT],
            late=counts[e.id][AttendanceStatus.LATE],
            half_day=counts[e.id][AttendanceStatus.HALF_DAY],
            on_leave=counts[e.id][AttendanceStatus.ON_LEAVE],
            total=sum(counts[e.id].values()),
        )
        for e in employees
    ]


# =============================================================================
# LEAVE
# =============================================================================

async def request_leave(db: AsyncSession, restaurant_id: int, data: LeaveCreate) -> LeaveRequest:
    await get_employee(db, restaurant_id, data.employee_id)
    leave = LeaveRequest(**data.model_dump())
    db.add(leave)
    await db.commit()
    await db.refresh(leave)
    logger.info(f"🌴 Leave request {leave.id} for employee {leave.employee_id}")
    return leave


async def list_leave(
    db: AsyncSession,
    restaurant_id: int,
    status: Optional[LeaveStatus] = None,
    employee_id: Optional[int] = None,
) -> list[LeaveRequest]:
    query = (
        select(LeaveRequest)
        .join(Employee, Employee.id == LeaveRequest.employee_id)
        .where(Employee.restaurant_id == restaurant_id)
        .order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc())
    )
    if status is not None:
        query = query.where(LeaveRequest.status == status)
    if employee_id is not None:
        query = query.where(LeaveRequest.employee_id == employee_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def review_leave(db: AsyncSession, restaurant_id: int, leave_id: int, status: str, reviewer_id: int) -> LeaveRequest:
    leave = await db.get(LeaveRequest, leave_id)
    if leave is None:
        raise NotFoundError("Leave request", leave_id)
    await get_employee(db, restaurant_id, leave.employee_id)
    if leave.status != LeaveStatus.PENDING:
        raise ConflictError(f"Leave request is already {leave.status.value}")

    leave.status = LeaveStatus(status)
    leave.reviewed_by = reviewer_id
    leave.reviewed_at = utcnow()
    await db.commit()
    await db.refresh(leave)
    logger.info(f"🌴 Leave request {leave.id} {leave.status.value}")
    return leave


# =============================================================================
# PAYROLL
# =============================================================================

def net_salary(base: float, overtime: float, tips: float, deductions: float) -> float:
    return round(base + overtime + tips - deductions, 2)


async def create_payroll(db: AsyncSession, restaurant_id: int, data: PayrollCreate) -> Payroll:
    """
    One payroll per employee per month.

    Raises:
        ConflictError: Payroll already exists for that month
    """
    employee = await get_employee(db, restaurant_id, data.employee_id)
    base = data.base_salary if data.base_salary is not None else employee.base_salary

    payroll = Payroll(
        employee_id=employee.id,
        month=data.month,
        year=data.year,
        base_salary=base,
        overtime_pay=data.overtime_pay,
        tips_amount=data.tips_amount,
        deductions=data.deductions,
        net_salary=net_salary(base, data.overtime_pay, data.tips_amount, data.deductions),
        notes=data.notes,
    )
    db.add(payroll)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Payroll for employee {data.employee_id} already exists for {data.month}/{data.year}")
    await db.refresh(payroll)
    logger.info(f"💰 Payroll {payroll.id} created: {payroll.net_salary:.2f}")
    return payroll


async def list_payroll(
    db: AsyncSession,
    restaurant_id: int,
    month: Optional[int] = None,
    year: Optional[int] = None,
    status: Optional[PayrollStatus] = None,
) -> list[Payroll]:
    query = (
        select(Payroll)
        .join(Employee, Employee.id == Payroll.employee_id)
        .where(Employee.restaurant_id == restaurant_id)
        .order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.id)
    )
    if month is not None:
        query = query.where(Payroll.month == month)
    if year is not None:
        query = query.where(Payroll.year == year)
    if status is not None:
        query = query.where(Payroll.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def mark_paid(db: AsyncSession, restaurant_id: int, payroll_id: int) -> Payroll:
    payroll = await db.get(Payroll, payroll_id)
    if payroll is None:
        raise NotFoundError("Payroll", payroll_id)
    await get_employee(db, restaurant_id, payroll.employee_id)
    if payroll.status == PayrollStatus.PAID:
        raise ConflictError("Payroll is already paid")

    payroll.status = PayrollStatus.PAID
    payroll.payment_date = date.today()
    await db.commit()
    await db.refresh(payroll)
    logger.info(f"💰 Payroll {payroll.id} paid")
    return payroll
