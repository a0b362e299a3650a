from sqlmodel import Session, select

from propertyhub.db import engine
from propertyhub.models import Payment

with Session(engine) as s:
    rows = s.exec(select(Payment).order_by(Payment.created_at.desc())).all()
    print("total", len(rows))
    for r in rows[:20]:
        print("ID", r.id, "status", r.status, "amount", r.amount, "due", r.due_date)
        print("reference:", r.payment_reference, "method:", r.payment_method)
        print("---")
