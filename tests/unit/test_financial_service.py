"""Unit tests for financial transactions and alerts"""

import uuid
from datetime import date, datetime

import pytest

from studio.core.exceptions import InvalidRequest, NotFound
from studio.models import EnrollmentType, PaymentStatus, PlanType, StudentStatus, TransactionType
from studio.services import financial_service

TODAY = date(2025, 3, 5)


def _revenue(db, organization, **overrides):
    data = {
        "type": TransactionType.REVENUE,
        "description": "Mensalidade Março",
        "category": "Mensalidade",
        "amount": 260.0,
        "status": PaymentStatus.PENDING,
        "due_date": date(2025, 3, 10),
    }
    data.update(overrides)
    transaction = financial_service.create_transaction(db, organization_id=organization.id, data=data)
    db.commit()
    return transaction


@pytest.mark.parametrize(
    "overrides",
    [
        {"description": " "},
        {"category": ""},
        {"amount": -1},
        {"due_date": None},
    ],
)
def test_create_transaction_validation(db, organization, overrides):
    """Blank text, negative amounts and undated monthly fees are rejected"""
    with pytest.raises(InvalidRequest):
        _revenue(db, organization, **overrides)


def test_create_transaction_unknown_student(db, organization):
    """Linked students must exist in the organization"""
    with pytest.raises(NotFound):
        _revenue(db, organization, student_id=uuid.uuid4())


def test_expense_without_due_date_is_fine(db, organization):
    """Only monthly fee revenue needs a due date"""
    expense = financial_service.create_transaction(
        db,
        organization_id=organization.id,
        data={
            "type": TransactionType.EXPENSE,
            "description": "Aluguel",
            "category": "Aluguel",
            "amount": 1500.0,
            "status": PaymentStatus.PAID,
        },
    )

    assert expense.paid_at is not None


def test_update_transaction_tracks_paid_at(db, organization):
    """Leaving the paid status clears the payment timestamp"""
    transaction = _revenue(db, organization, status=PaymentStatus.PAID)
    assert transaction.paid_at is not None

    updated = financial_service.update_transaction(
        db,
        organization_id=organization.id,
        transaction_id=transaction.id,
        changes={"status": PaymentStatus.PENDING, "amount": 275.0},
    )

    assert updated.paid_at is None
    assert updated.amount == 275.0
    with pytest.raises(InvalidRequest):
        financial_service.update_transaction(
            db, organization_id=organization.id, transaction_id=transaction.id, changes={"due_date": None}
        )


def test_mark_paid_extends_validity(db, organization, make_student):
    """Paying with validity days renews the plan and reactivates the student"""
    student = make_student("Ana", status=StudentStatus.INACTIVE)
    transaction = _revenue(db, organization, student_id=student.id)

    paid = financial_service.mark_transaction_paid(
        db,
        organization_id=organization.id,
        transaction_id=transaction.id,
        validity_days=30,
        paid_at=datetime(2025, 3, 8, 14, 0),
    )
    db.commit()

    assert paid.status == PaymentStatus.PAID
    db.refresh(student)
    assert student.validity_date == date(2025, 4, 7)
    assert student.status == StudentStatus.ACTIVE


def test_mark_paid_validity_needs_student(db, organization):
    """Plan validity only applies to student payments"""
    transaction = _revenue(db, organization)

    with pytest.raises(InvalidRequest):
        financial_service.mark_transaction_paid(
            db, organization_id=organization.id, transaction_id=transaction.id, validity_days=30
        )


def test_list_overdue(db, organization):
    """Overdue means marked late, or pending past the due date"""
    late = _revenue(db, organization, due_date=date(2025, 3, 1))
    flagged = _revenue(db, organization, status=PaymentStatus.OVERDUE, due_date=date(2025, 3, 20))
    _revenue(db, organization, due_date=date(2025, 3, 10))
    _revenue(db, organization, status=PaymentStatus.PAID, due_date=date(2025, 2, 1))

    overdue = financial_service.list_overdue(db, organization_id=organization.id, today=TODAY)

    assert [transaction.id for transaction in overdue] == [late.id, flagged.id]


def test_upcoming_payments(db, organization, make_student):
    """Expiring private plans and pending revenue due soon are both listed"""
    expiring = make_student(
        "Ana",
        plan_type=PlanType.MONTHLY,
        plan_frequency="3x",
        monthly_fee=260.0,
        validity_date=date(2025, 3, 12),
    )
    make_student("Bruno", enrollment_type=EnrollmentType.WELLHUB, validity_date=date(2025, 3, 8))
    make_student("Carla", plan_type=PlanType.SINGLE, validity_date=date(2025, 3, 8))
    make_student("Davi", validity_date=date(2025, 4, 30))
    pending = _revenue(db, organization, description="Aula avulsa", category="Aula Avulsa", due_date=date(2025, 3, 7))
    _revenue(db, organization, due_date=date(2025, 3, 30))

    alerts = financial_service.upcoming_payments(db, organization_id=organization.id, today=TODAY)

    assert [(alert.kind, alert.due_date) for alert in alerts] == [
        ("transaction", date(2025, 3, 7)),
        ("validity", date(2025, 3, 12)),
    ]
    assert alerts[0].transaction_id == pending.id
    assert alerts[1].student_id == expiring.id
    assert alerts[1].description == "Mensalidade - Mensal 3x (validade vencendo)"
    assert alerts[1].amount == 260.0


def test_monthly_summary(db, organization):
    """Revenue counts when paid, expenses when paid or created"""
    revenue = _revenue(db, organization)
    financial_service.mark_transaction_paid(
        db, organization_id=organization.id, transaction_id=revenue.id, paid_at=datetime(2025, 3, 15)
    )
    _revenue(db, organization)
    expense = financial_service.create_transaction(
        db,
        organization_id=organization.id,
        data={"type": TransactionType.EXPENSE, "description": "Material", "category": "Material", "amount": 100.0},
    )
    financial_service.mark_transaction_paid(
        db, organization_id=organization.id, transaction_id=expense.id, paid_at=datetime(2025, 3, 20)
    )
    db.commit()

    months = financial_service.monthly_summary(db, organization_id=organization.id, year=2025)

    assert len(months) == 12
    march = months[2]
    assert (march.revenue, march.expense, march.balance) == (260.0, 100.0, 160.0)
    assert all(month.revenue == 0 and month.expense == 0 for month in months if month.month != 3)
