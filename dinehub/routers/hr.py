"""HR endpoints: employees, attendance, leave and payroll."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, AuthContext, require_roles, resolve_restaurant_id
from dinehub.models import LeaveStatus, PayrollStatus
from dinehub.schemas import (
    AttendanceCreate,
    AttendanceResponse,
    AttendanceSummary,
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
    ErrorResponse,
    LeaveCreate,
    LeaveResponse,
    LeaveReview,
    MessageResponse,
    PayrollCreate,
    PayrollResponse,
)
from dinehub.services import hr as hr_service

router = APIRouter(prefix="/api/hr", tags=["HR"])

management = require_roles(*MANAGEMENT_ROLES)


# =============================================================================
# EMPLOYEES
# =============================================================================

@router.post("/employees", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> EmployeeResponse:
    employee = await hr_service.create_employee(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return EmployeeResponse.model_validate(employee)


@router.get("/employees", response_model=list[EmployeeResponse])
async def list_employees(
    restaurant_id: Optional[int] = Query(None),
    include_inactive: bool = Query(False),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[EmployeeResponse]:
    employees = await hr_service.list_employees(db, resolve_restaurant_id(ctx, restaurant_id), include_inactive)
    return [EmployeeResponse.model_validate(e) for e in employees]


@router.get("/employees/{employee_id}", response_model=EmployeeResponse, responses={404: {"model": ErrorResponse}})
async def get_employee(
    employee_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> EmployeeResponse:
    employee = await hr_service.get_employee(db, resolve_restaurant_id(ctx, restaurant_id), employee_id)
    return EmployeeResponse.model_validate(employee)


@router.patch("/employees/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> EmployeeResponse:
    employee = await hr_service.update_employee(db, resolve_restaurant_id(ctx, restaurant_id), employee_id, data)
    return EmployeeResponse.model_validate(employee)


@router.delete("/employees/{employee_id}", response_model=MessageResponse)
async def deactivate_employee(
    employee_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await hr_service.deactivate_employee(db, resolve_restaurant_id(ctx, restaurant_id), employee_id)
    return MessageResponse(message="Employee deactivated")


# =============================================================================
# ATTENDANCE
# =============================================================================

@router.post("/attendance", response_model=AttendanceResponse, status_code=status.HTTP_201_CREATED)
async def record_attendance(
    data: AttendanceCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> AttendanceResponse:
    record = await hr_service.record_attendance(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return AttendanceResponse.model_validate(record)


@router.get("/attendance", response_model=list[AttendanceResponse])
async def list_attendance(
    restaurant_id: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[AttendanceResponse]:
    records = await hr_service.list_attendance(
        db, resolve_restaurant_id(ctx, restaurant_id), month, year, employee_id
    )
    return [AttendanceResponse.model_validate(r) for r in records]


@router.get("/attendance/summary", response_model=list[AttendanceSummary], summary="Monthly attendance per employee")
async def attendance_summary(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[AttendanceSummary]:
    return await hr_service.attendance_summary(db, resolve_restaurant_id(ctx, restaurant_id), month, year)


@router.delete("/attendance/{attendance_id}", response_model=MessageResponse)
async def delete_attendance(
    attendance_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await hr_service.delete_attendance(db, resolve_restaurant_id(ctx, restaurant_id), attendance_id)
    return MessageResponse(message="Attendance record deleted")


# =============================================================================
# LEAVE
# =============================================================================

@router.post("/leave", response_model=LeaveResponse, status_code=status.HTTP_201_CREATED)
async def request_leave(
    data: LeaveCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> LeaveResponse:
    leave = await hr_service.request_leave(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return LeaveResponse.model_validate(leave)


@router.get("/leave", response_model=list[LeaveResponse])
async def list_leave(
    restaurant_id: Optional[int] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[LeaveResponse]:
    leaves = await hr_service.list_leave(db, resolve_restaurant_id(ctx, restaurant_id), status, employee_id)
    return [LeaveResponse.model_validate(l) for l in leaves]


@router.patch("/leave/{leave_id}", response_model=LeaveResponse, responses={409: {"model": ErrorResponse}})
async def review_leave(
    leave_id: int,
    data: LeaveReview,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> LeaveResponse:
    """Approve or reject a pending request."""
    leave = await hr_service.review_leave(
        db, resolve_restaurant_id(ctx, restaurant_id), leave_id, data.status, ctx.user.id
    )
    return LeaveResponse.model_validate(leave)


# =============================================================================
# PAYROLL
# =============================================================================

@router.post(
    "/payroll",
    response_model=PayrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_payroll(
    data: PayrollCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> PayrollResponse:
    payroll = await hr_service.create_payroll(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return PayrollResponse.model_validate(payroll)


@router.get("/payroll", response_model=list[PayrollResponse])
async def list_payroll(
    restaurant_id: Optional[int] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    status: Optional[PayrollStatus] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[PayrollResponse]:
    payrolls = await hr_service.list_payroll(db, resolve_restaurant_id(ctx, restaurant_id), month, year, status)
    return [PayrollResponse.model_validate(p) for p in payrolls]


@router.post("/payroll/{payroll_id}/pay", response_model=PayrollResponse, responses={409: {"model": ErrorResponse}})
async def mark_payroll_paid(
    payroll_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> PayrollResponse:
    payroll = await hr_service.mark_paid(db, resolve_restaurant_id(ctx, restaurant_id), payroll_id)
    return PayrollResponse.model_validate(payroll)
