import json
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from .models import AuditLog, Payment, PaymentStatus, utcnow
from .schemas import PaymentStats, PaymentUpdate

ALLOWED_TRANSITIONS = {
    PaymentStatus.pending.value: {
        PaymentStatus.completed.value,
        PaymentStatus.failed.value,
        PaymentStatus.overdue.value,
    },
    # late payments still settle an overdue row
    PaymentStatus.overdue.value: {PaymentStatus.completed.value, PaymentStatus.failed.value},
    PaymentStatus.completed.value: set(),
    PaymentStatus.failed.value: set(),
}


class LedgerError(ValueError):
    pass


def check_transition(current: str, new: str) -> None:
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise LedgerError(f"Cannot move payment from {current} to {new}")


def _snapshot(payment: Payment) -> str:
    return json.dumps(
        {
            "status": payment.status,
            "amount": str(payment.amount),
            "payment_reference": payment.payment_reference,
        }
    )


def record_audit(session: Session, actor_id: Optional[int], action: str, before, after):
    session.add(AuditLog(actor_id=actor_id, action=action, before=before, after=after))


TERMINAL = (PaymentStatus.completed.value, PaymentStatus.failed.value)


def _same(current, value) -> bool:
    if isinstance(current, Decimal) or isinstance(value, Decimal):
        return current is not None and value is not None and Decimal(current) == Decimal(value)
    return current == value


def apply_payment_update(
    session: Session, payment: Payment, changes: PaymentUpdate, actor_id: Optional[int] = None
) -> Payment:
    """Apply a staff edit to a payment row, enforcing the status and amount rules.

    Completed and failed rows are closed: a body that repeats their current
    values is accepted and changes nothing, anything else is refused.
    """
    fields = changes.model_dump(exclude_unset=True)
    if "status" in fields:
        fields["status"] = PaymentStatus(fields["status"]).value

    if payment.status in TERMINAL:
        edited = sorted(k for k, v in fields.items() if not _same(getattr(payment, k), v))
        if edited:
            raise LedgerError(
                f"Payment is {payment.status} and can no longer be edited ({', '.join(edited)})"
            )
        return payment

    before = _snapshot(payment)

    new_amount = fields.pop("amount", None)
    if new_amount is not None and Decimal(new_amount) != Decimal(payment.amount):
        if payment.status != PaymentStatus.pending.value:
            raise LedgerError("Amount can only be changed while the payment is pending")
        payment.amount = new_amount

    new_status = fields.pop("status", payment.status)
    check_transition(payment.status, new_status)
    completing = new_status == PaymentStatus.completed.value
    if fields.get("payment_reference") and not completing:
        raise LedgerError("payment_reference can only be set on a completed payment")
    if completing and not fields.get("payment_method", payment.payment_method):
        raise LedgerError("payment_method is required for a completed payment")

    if completing and payment.payment_date is None:
        payment.payment_date = utcnow()
    payment.status = new_status
    for key, value in fields.items():
        setattr(payment, key, value)
    payment.updated_at = utcnow()

    session.add(payment)
    record_audit(session, actor_id, "update_payment", before, _snapshot(payment))
    return payment


def mark_overdue(session: Session, today: date, actor_id: Optional[int] = None) -> List[str]:
    """Flip pending payments whose due date has passed to overdue."""
    rows = session.exec(
        select(Payment).where(
            Payment.status == PaymentStatus.pending.value, Payment.due_date < today
        )
    ).all()
    ids = []
    for payment in rows:
        payment.status = PaymentStatus.overdue.value
        payment.updated_at = utcnow()
        session.add(payment)
        ids.append(payment.id)
    if ids:
        record_audit(session, actor_id, "mark_overdue", None, json.dumps(ids))
    return ids


def payment_stats(payments: Iterable[Payment]) -> PaymentStats:
    total = pending = completed = Decimal("0")
    overdue = 0
    for p in payments:
        amount = Decimal(p.amount)
        total += amount
        if p.status == PaymentStatus.pending.value:
            pending += amount
        elif p.status == PaymentStatus.completed.value:
            completed += amount
        elif p.status == PaymentStatus.overdue.value:
            overdue += 1
    return PaymentStats(total=total, pending=pending, completed=completed, overdue=overdue)
