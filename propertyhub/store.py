"""Payment record stores used by the verify flow.

Both stores key rows by payment identifier and treat an already-completed
row as a no-op. Any failure to record a confirmed payment is raised as
``PersistenceWarning``.
"""

import json
import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .errors import PersistenceWarning
from .models import AuditLog, Payment, PaymentStatus, utcnow

logger = logging.getLogger(__name__)

PAYMENT_METHOD = "paystack"

# statuses a verified payment may move out of
COMPLETABLE = (PaymentStatus.pending.value, PaymentStatus.overdue.value)


class PaymentStore:
    def mark_completed(self, payment_id: str, reference: str, paid_at: datetime) -> bool:
        """Mark a payment completed. Returns False if it already was."""
        raise NotImplementedError


class SqlPaymentStore(PaymentStore):
    def __init__(self, engine):
        self.engine = engine

    def mark_completed(self, payment_id: str, reference: str, paid_at: datetime) -> bool:
        try:
            with Session(self.engine) as session:
                payment = session.get(Payment, payment_id)
                if not payment:
                    raise PersistenceWarning(payment_id, "no payment row with this id")
                if payment.status == PaymentStatus.completed.value:
                    return False
                if payment.status not in COMPLETABLE:
                    raise PersistenceWarning(
                        payment_id, f"cannot complete a {payment.status} payment"
                    )
                before = json.dumps({"status": payment.status})
                payment.status = PaymentStatus.completed.value
                payment.payment_date = paid_at
                payment.payment_method = PAYMENT_METHOD
                payment.payment_reference = reference
                payment.updated_at = utcnow()
                session.add(payment)
                session.add(
                    AuditLog(
                        action="paystack_verify",
                        before=before,
                        after=json.dumps({"status": payment.status, "reference": reference}),
                    )
                )
                session.commit()
                return True
        except SQLAlchemyError as exc:
            raise PersistenceWarning(payment_id, f"database error: {exc}") from exc


class RestPaymentStore(PaymentStore):
    """Hosted data API (PostgREST dialect) accessed with the service-role key."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            timeout=self.timeout_seconds,
            transport=self.transport,
            headers={
                "apikey": self.service_key,
                "Authorization": f"Bearer {self.service_key}",
                "Content-Type": "application/json",
            },
        )

    def mark_completed(self, payment_id: str, reference: str, paid_at: datetime) -> bool:
        body = {
            "status": PaymentStatus.completed.value,
            "payment_date": paid_at.isoformat(),
            "payment_method": PAYMENT_METHOD,
            "payment_reference": reference,
        }
        try:
            with self._client() as client:
                r = client.patch(
                    "/payments",
                    params={
                        "id": f"eq.{payment_id}",
                        "status": f"in.({','.join(COMPLETABLE)})",
                    },
                    json=body,
                    headers={"Prefer": "return=representation"},
                )
                if r.status_code >= 400:
                    raise PersistenceWarning(
                        payment_id, f"update rejected (HTTP {r.status_code}): {r.text}"
                    )
                updated = r.json()
                if not isinstance(updated, list):
                    raise PersistenceWarning(payment_id, "store returned an invalid response")
                if updated:
                    return True

                # nothing matched: either already completed or not updatable
                r = client.get(
                    "/payments", params={"id": f"eq.{payment_id}", "select": "status"}
                )
                if r.status_code >= 400:
                    raise PersistenceWarning(
                        payment_id, f"lookup rejected (HTTP {r.status_code}): {r.text}"
                    )
                rows = r.json()
        except httpx.HTTPError as exc:
            raise PersistenceWarning(payment_id, f"store unreachable: {exc}") from exc
        except ValueError as exc:
            raise PersistenceWarning(payment_id, "store returned an invalid response") from exc

        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise PersistenceWarning(payment_id, "store returned an invalid response")
        if not rows:
            raise PersistenceWarning(payment_id, "no payment row with this id")
        status = rows[0].get("status")
        if status == PaymentStatus.completed.value:
            return False
        raise PersistenceWarning(payment_id, f"cannot complete a {status} payment")
