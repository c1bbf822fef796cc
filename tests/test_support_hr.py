"""Complaints, in-app notifications, HR and payroll."""

from datetime import date

import pytest

from dinehub.core.exceptions import ConflictError, NotFoundError
from dinehub.models import ComplaintStatus, LeaveStatus, PayrollStatus
from dinehub.schemas import (
    AttendanceCreate,
    ComplaintCreate,
    ComplaintReplyCreate,
    ComplaintUpdate,
    EmployeeCreate,
    LeaveCreate,
    PayrollCreate,
)
from dinehub.services import hr as hr_service
from dinehub.services import support as support_service


def complaint_data(restaurant_id):
    return ComplaintCreate(
        type="food_quality",
        subject="Cold pizza",
        description="The pizza arrived cold.",
        restaurant_id=restaurant_id,
    )


# =============================================================================
# SUPPORT
# =============================================================================

async def test_new_complaint_notifies_admins(db, restaurant, customer, admin):
    complaint = await support_service.create_complaint(db, customer, complaint_data(restaurant.id))

    assert complaint.status == ComplaintStatus.OPEN
    notes = await support_service.list_notifications(db, admin.id)
    assert len(notes) == 1
    assert "Cold pizza" in notes[0].title

    note = await support_service.mark_read(db, admin.id, notes[0].id)
    assert note.is_read
    assert await support_service.list_notifications(db, admin.id, unread_only=True) == []


async def test_notifications_are_private(db, restaurant, customer, admin):
    await support_service.create_complaint(db, customer, complaint_data(restaurant.id))
    notes = await support_service.list_notifications(db, admin.id)

    with pytest.raises(NotFoundError):
        await support_service.mark_read(db, customer.id, notes[0].id)


async def test_staff_reply_moves_complaint_in_progress(db, restaurant, customer, manager):
    complaint = await support_service.create_complaint(db, customer, complaint_data(restaurant.id))

    await support_service.add_response(db, complaint, manager, ComplaintReplyCreate(message="Sorry!"))
    assert complaint.status == ComplaintStatus.IN_PROGRESS

    await support_service.add_response(
        db, complaint, manager, ComplaintReplyCreate(message="Refund approved", is_internal=True)
    )
    public = await support_service.complaint_detail(db, complaint, include_internal=False)
    everything = await support_service.complaint_detail(db, complaint, include_internal=True)
    assert [r.message for r in public.responses] == ["Sorry!"]
    assert len(everything.responses) == 2


async def test_resolving_stamps_resolved_at(db, restaurant, customer, manager):
    complaint = await support_service.create_complaint(db, customer, complaint_data(restaurant.id))

    complaint = await support_service.update_complaint(
        db, complaint, ComplaintUpdate(status=ComplaintStatus.RESOLVED, assigned_to=manager.id)
    )
    assert complaint.resolved_at is not None
    assert complaint.assigned_to == manager.id


async def test_customer_replies_are_never_internal(client, db, restaurant, customer, customer_headers):
    complaint = await support_service.create_complaint(db, customer, complaint_data(restaurant.id))

    response = await client.post(
        f"/api/support/complaints/{complaint.id}/responses",
        json={"message": "Any news?", "is_internal": True},
        headers=customer_headers,
    )
    assert response.status_code == 201
    assert response.json()["is_internal"] is False


async def test_customer_lists_only_own_complaints(client, db, restaurant, customer, customer_headers, manager):
    await support_service.create_complaint(db, customer, complaint_data(restaurant.id))
    await support_service.create_complaint(db, manager, complaint_data(restaurant.id))

    response = await client.get("/api/support/complaints", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1


# =============================================================================
# HR
# =============================================================================

@pytest.fixture
async def employee(db, restaurant):
    return await hr_service.create_employee(db, restaurant.id, EmployeeCreate(
        first_name="Marco",
        last_name="Rossi",
        position="Line Cook",
        hire_date=date(2024, 3, 1),
        base_salary=2500.0,
    ))


async def test_attendance_summary_counts_statuses(db, restaurant, employee):
    for day, status in ((3, "present"), (4, "present"), (5, "late"), (6, "absent")):
        await hr_service.record_attendance(db, restaurant.id, AttendanceCreate(
            employee_id=employee.id, date=date(2025, 6, day), status=status,
        ))
    await hr_service.record_attendance(db, restaurant.id, AttendanceCreate(
        employee_id=employee.id, date=date(2025, 7, 1),
    ))

    [summary] = await hr_service.attendance_summary(db, restaurant.id, 6, 2025)
    assert (summary.present, summary.late, summary.absent, summary.total) == (2, 1, 1, 4)
    assert summary.employee_name == "Marco Rossi"


async def test_employee_of_other_restaurant_is_hidden(db, restaurant, employee):
    with pytest.raises(NotFoundError):
        await hr_service.get_employee(db, restaurant.id + 1, employee.id)


async def test_leave_can_be_reviewed_once(db, restaurant, employee, manager):
    leave = await hr_service.request_leave(db, restaurant.id, LeaveCreate(
        employee_id=employee.id, leave_type="sick",
        start_date=date(2025, 6, 10), end_date=date(2025, 6, 12),
    ))

    leave = await hr_service.review_leave(db, restaurant.id, leave.id, "approved", manager.id)
    assert leave.status == LeaveStatus.APPROVED
    assert leave.reviewed_by == manager.id

    with pytest.raises(ConflictError):
        await hr_service.review_leave(db, restaurant.id, leave.id, "rejected", manager.id)


async def test_payroll_net_salary_and_default_base(db, restaurant, employee):
    payroll = await hr_service.create_payroll(db, restaurant.id, PayrollCreate(
        employee_id=employee.id, month=6, year=2025,
        overtime_pay=150.0, tips_amount=80.5, deductions=200.0,
    ))

    assert payroll.base_salary == 2500.0
    assert payroll.net_salary == 2530.5
    assert payroll.status == PayrollStatus.PENDING


async def test_duplicate_payroll_period_is_conflict(db, restaurant, employee):
    data = PayrollCreate(employee_id=employee.id, month=6, year=2025)
    await hr_service.create_payroll(db, restaurant.id, data)

    with pytest.raises(ConflictError):
        await hr_service.create_payroll(db, restaurant.id, data)


async def test_payroll_paid_once(db, restaurant, employee):
    payroll = await hr_service.create_payroll(
        db, restaurant.id, PayrollCreate(employee_id=employee.id, month=5, year=2025)
    )

    payroll = await hr_service.mark_paid(db, restaurant.id, payroll.id)
    assert payroll.status == PayrollStatus.PAID
    assert payroll.payment_date is not None

    with pytest.raises(ConflictError):
        await hr_service.mark_paid(db, restaurant.id, payroll.id)


async def test_hr_requires_management(client, cook_headers, manager_headers, employee):
    assert (await client.get("/api/hr/employees", headers=cook_headers)).status_code == 403

    response = await client.get("/api/hr/employees", headers=manager_headers)
    assert response.status_code == 200
    assert [e["last_name"] for e in response.json()] == ["Rossi"]
