import sys
from datetime import date, datetime

from sqlmodel import Session

from propertyhub.db import engine, init_db
from propertyhub.ledger import mark_overdue

# Usage: mark_overdue.py [YYYY-MM-DD]   (defaults to today)
on = datetime.strptime(sys.argv[1], "%Y-%m-%d").date() if len(sys.argv) > 1 else date.today()

init_db()
with Session(engine) as s:
    ids = mark_overdue(s, on)
    s.commit()
print("marked overdue:", len(ids))
for pid in ids:
    print(" ", pid)
