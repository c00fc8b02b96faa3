"""Shared fixtures: a throwaway record store and services bound to it."""

from __future__ import annotations

from pathlib import Path

import pytest

from db import RecordStore
from models import Client
from services import Services


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    s = RecordStore(tmp_path / "socagent.db")
    s.init_db()
    return s


@pytest.fixture
def services(store: RecordStore) -> Services:
    return Services(store)


@pytest.fixture
def make_client(services: Services):
    def _make(first_name: str = "Jana", last_name: str = "Nováková", contract_date: str = "2024-01-15", **extra) -> Client:
        client = Client(
            id="",
            first_name=first_name,
            last_name=last_name,
            date_of_birth="1980-05-05",
            address="Lipová 1, Brno",
            key_worker="Karel Novák",
            contract_date=contract_date,
            contract_number=extra.pop("contract_number", f"SB-{last_name[:3].upper()}"),
            **extra,
        )
        return services.clients.save(client)

    return _make
