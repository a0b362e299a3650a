import json
import os
from pathlib import Path

import httpx
import pytest

# Module-level setup: ensure env vars are set before test modules import `propertyhub`.
data_dir = Path(__file__).resolve().parent.parent / "data"
data_dir.mkdir(exist_ok=True)
test_db_path = data_dir / "test.db"
for leftover in data_dir.glob("test.db*"):
    try:
        leftover.unlink()
    except OSError:
        pass

os.environ["DATABASE_URL"] = f"sqlite:///{test_db_path.as_posix()}"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["STORE_BACKEND"] = "sql"

from propertyhub.db import init_db  # noqa: E402
from propertyhub.main import app  # noqa: E402
from propertyhub.paystack import PaystackClient  # noqa: E402
from propertyhub.store import PaymentStore  # noqa: E402

init_db()


@pytest.fixture(scope="session", autouse=True)
def prepare_test_db():
    """Session-scoped fixture available to tests; cleanup happens after session."""
    yield
    for leftover in data_dir.glob("test.db*"):
        try:
            leftover.unlink()
        except OSError:
            pass


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


class FakeGateway:
    """Records every request and answers from a per-path table of JSON bodies."""

    def __init__(self):
        self.requests = []
        self.responses = {}

    def reply(self, path, body, status_code=200):
        self.responses[path] = (status_code, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body = self.responses.get(
            request.url.path, (404, {"status": False, "message": "not found"})
        )
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status_code, json=body)

    def client(self, secret="sk_test_secret") -> PaystackClient:
        return PaystackClient(
            secret, base_url="https://api.paystack.test", transport=httpx.MockTransport(self.handler)
        )

    def json_of(self, index=0):
        return json.loads(self.requests[index].content)


class FakeStore(PaymentStore):
    def __init__(self, result=True, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def mark_completed(self, payment_id, reference, paid_at):
        self.calls.append({"payment_id": payment_id, "reference": reference, "paid_at": paid_at})
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def fake_store():
    return FakeStore()
