"""Pytest configuration and fixtures."""

from datetime import datetime

import pytest

from autoschedule.models import Client, Session, Therapist
from helpers import hours


@pytest.fixture
def make_therapist():
    def _make(id="t1", availability=None, **kwargs) -> Therapist:
        return Therapist(
            id=id,
            full_name=kwargs.pop("full_name", f"Therapist {id}"),
            availability_hours=availability if availability is not None else hours("09:00", "17:00"),
            service_type=kwargs.pop("service_type", ["In clinic"]),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_client():
    def _make(id="c1", availability=None, **kwargs) -> Client:
        return Client(
            id=id,
            full_name=kwargs.pop("full_name", f"Client {id}"),
            availability_hours=availability if availability is not None else hours("09:00", "17:00"),
            service_preference=kwargs.pop("service_preference", ["In clinic"]),
            **kwargs,
        )
    return _make


@pytest.fixture
def make_session():
    counter = iter(range(1, 10_000))

    def _make(therapist_id, client_id, start: datetime, end: datetime, **kwargs) -> Session:
        return Session(
            id=kwargs.pop("id", f"s{next(counter)}"),
            therapist_id=therapist_id,
            client_id=client_id,
            start_time=start,
            end_time=end,
            **kwargs,
        )
    return _make


@pytest.fixture
def therapist(make_therapist):
    return make_therapist()


@pytest.fixture
def client(make_client):
    return make_client()
