"""Installment plan rules: splitting, scheduling and payment progression"""

import uuid
from dataclasses import replace
from datetime import date
from typing import List, Optional
from cashflow_engine.domain.models import Installment, InstallmentSlot, InstallmentStatus
from cashflow_engine.domain.exceptions import InvalidStateError, ValidationError
from cashflow_engine.utils.date_utils import add_months

# 30 years of monthly payments
MAX_INSTALLMENTS = 360


def split_amount(total_cents: int, installments: int) -> List[int]:
    """
    Split a total into per-installment amounts.

    Last installment absorbs the rounding remainder so the parts always sum to
    the total exactly.

    Example:
        $1000.00 in 3 -> [$333.33, $333.33, $333.34]
        100000 cents // 3 = 33333 base, remainder 1
    """
    base_amount = total_cents // installments
    remainder = total_cents % installments
    return [base_amount] * (installments - 1) + [base_amount + remainder]


def generate_installment_schedule(
    total_cents: int,
    installments: int,
    start_date: date,
) -> List[InstallmentSlot]:
    """Monthly slots: slot n is due start_date + (n - 1) months, clamped to month end"""
    return [
        InstallmentSlot(number=i + 1, due_date=add_months(start_date, i), amount_cents=amount)
        for i, amount in enumerate(split_amount(total_cents, installments))
    ]


def create_plan(
    description: str,
    total_cents: int,
    installments: int,
    start_date: date,
    category_id: str,
    user_id: str,
    credit_card_id: Optional[str] = None,
) -> Installment:
    """
    Validate and build a new ACTIVE plan with nothing paid yet.

    Raises:
        ValidationError: installments outside 2..MAX_INSTALLMENTS, a last slot past
            the calendar's range, or total <= 0
    """
    if installments < 2:
        raise ValidationError("installments", "An installment plan needs at least 2 installments")
    if installments > MAX_INSTALLMENTS:
        raise ValidationError("installments", f"An installment plan allows at most {MAX_INSTALLMENTS} installments")
    try:
        add_months(start_date, installments - 1)
    except ValueError as e:
        raise ValidationError("installments", "Last installment falls past the supported date range") from e
    if total_cents <= 0:
        raise ValidationError("totalAmount", "Total amount must be positive")

    return Installment(
        id=str(uuid.uuid4()),
        description=description,
        total_cents=total_cents,
        installments=installments,
        current_installment=0,
        status=InstallmentStatus.ACTIVE,
        start_date=start_date,
        category_id=category_id,
        user_id=user_id,
        credit_card_id=credit_card_id,
    )


def record_payment(plan: Installment) -> Installment:
    """
    Advance the plan by one paid installment.

    Raises:
        InvalidStateError: plan is COMPLETED or CANCELLED
    """
    if plan.status != InstallmentStatus.ACTIVE:
        raise InvalidStateError(f"Installment plan {plan.id} is {plan.status.value}")

    current = plan.current_installment + 1
    status = InstallmentStatus.COMPLETED if current == plan.installments else InstallmentStatus.ACTIVE
    return replace(plan, current_installment=current, status=status)


def cancel_plan(plan: Installment) -> Installment:
    """
    Raises:
        InvalidStateError: plan is already COMPLETED or CANCELLED
    """
    if plan.status != InstallmentStatus.ACTIVE:
        raise InvalidStateError(f"Installment plan {plan.id} is {plan.status.value}")
    return replace(plan, status=InstallmentStatus.CANCELLED)


def sync_progress(plan: Installment, paid_count: int) -> Installment:
    """
    Recount progress from the number of transactions linked to the plan.

    Only ACTIVE plans change: a COMPLETED plan never goes back to ACTIVE and a
    CANCELLED plan stays frozen. The count is capped at the number of installments.
    """
    if plan.status != InstallmentStatus.ACTIVE:
        return plan

    current = min(max(paid_count, 0), plan.installments)
    status = InstallmentStatus.COMPLETED if current == plan.installments else InstallmentStatus.ACTIVE
    return replace(plan, current_installment=current, status=status)


def pending_slots(plan: Installment) -> List[InstallmentSlot]:
    """Unpaid slots of an ACTIVE plan; empty for closed plans"""
    if plan.status != InstallmentStatus.ACTIVE:
        return []
    schedule = generate_installment_schedule(plan.total_cents, plan.installments, plan.start_date)
    return schedule[plan.current_installment:]


def next_slot(plan: Installment) -> Optional[InstallmentSlot]:
    slots = pending_slots(plan)
    return slots[0] if slots else None
