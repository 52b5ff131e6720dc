from __future__ import annotations

from typing import List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from main import create_app
from utils.otp_errors import EmailDeliveryError
from utils.otp_service import OTPService
from utils.otp_store import OTPStore


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSender:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, str, Optional[str]]] = []
        self.fail = False

    def send_otp(self, destination: str, code: str, display_name: Optional[str] = None) -> None:
        if self.fail:
            raise EmailDeliveryError("smtp down")
        self.sent.append((destination, code, display_name))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    s = OTPStore(clock=clock)
    yield s
    s.destroy()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def service(store, sender):
    return OTPService(store, sender)


@pytest.fixture
def client(store, sender):
    return TestClient(create_app(store=store, email_sender=sender))
