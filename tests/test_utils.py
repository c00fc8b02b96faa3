"""Tests for date helpers, validators and reports."""

from __future__ import annotations

import io
from datetime import date, datetime

import pandas as pd
import pytest

import utils
from models import (
    Client,
    Guardianship,
    ReviewArea,
    ReviewPeriod,
    SemiAnnualReview,
    Task,
)
from services import Services


def _client(**overrides) -> Client:
    values = dict(
        id="c1", first_name="Jana", last_name="Nováková", date_of_birth="1980-05-05",
        address="Lipová 1", key_worker="Karel", contract_date="2024-01-15", contract_number="SB-1",
    )
    values.update(overrides)
    return Client(**values)


class TestDates:
    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (date(2024, 1, 31), 1, date(2024, 2, 29)),
            (date(2023, 1, 31), 1, date(2023, 2, 28)),
            (date(2024, 8, 15), 6, date(2025, 2, 15)),
            (date(2024, 12, 31), 6, date(2025, 6, 30)),
        ],
    )
    def test_add_months(self, start, months, expected):
        assert utils.add_months(start, months) == expected

    def test_to_date_variants(self):
        assert utils.to_date("2024-05-01") == date(2024, 5, 1)
        assert utils.to_date("2024-05-01T09:30:00Z") == date(2024, 5, 1)
        assert utils.to_date(datetime(2024, 5, 1, 23, 0)) == date(2024, 5, 1)
        assert utils.to_date(date(2024, 5, 1)) == date(2024, 5, 1)

    def test_months_between(self):
        assert utils.months_between(date(2024, 1, 15), date(2024, 7, 15)) == 6
        assert utils.months_between(date(2024, 1, 16), date(2024, 7, 15)) == 5

    def test_new_id_unique(self):
        assert utils.new_id() != utils.new_id()


class TestValidators:
    def test_valid_client(self):
        assert utils.validate_client_inputs(_client()) == []

    def test_client_errors(self):
        errors = utils.validate_client_inputs(
            _client(last_name="", contract_date="15.1.2024", guardianship=Guardianship(has_guardian=True))
        )
        assert "Last name is required." in errors
        assert "Contract date must be a valid ISO date (YYYY-MM-DD)." in errors
        assert "Guardian name is required when the client has a guardian." in errors

    def test_contract_end_before_start(self):
        errors = utils.validate_client_inputs(_client(contract_end_date="2023-01-01"))
        assert errors == ["Contract end date must be after contract date."]

    def test_review_period_and_progress(self):
        areas = {d: ReviewArea() for d in utils.LIFE_DOMAINS}
        areas["health"] = ReviewArea(progress="blue")
        review = SemiAnnualReview(
            id="r1", client_id="c1", period=ReviewPeriod(start="2024-06-30", end="2024-01-01"), areas=areas
        )
        errors = utils.validate_review_inputs(review)
        assert "Review period end must be after its start." in errors
        assert "Progress for health must be green, yellow or red." in errors

    def test_task_due_date(self):
        assert utils.validate_task_inputs(Task(id="t", title="x", due_date="tomorrow")) == [
            "Task due date must be a valid ISO date."
        ]


class TestReports:
    def test_clients_csv(self):
        data = utils.clients_to_csv_bytes([_client(), _client(id="c2", first_name="Eva")])
        df = pd.read_csv(io.BytesIO(data))
        assert list(df.columns) == utils.CLIENT_CSV_COLUMNS
        assert df["first_name"].tolist() == ["Jana", "Eva"]

    def test_empty_tasks_csv_has_header(self):
        assert utils.tasks_to_csv_bytes([]).decode("utf-8").strip() == ",".join(utils.TASK_CSV_COLUMNS)

    def test_task_summary_by_status(self):
        tasks = [Task(id="1", title="a"), Task(id="2", title="b"), Task(id="3", title="c", status="done")]
        df = utils.task_summary_by_status(tasks)
        assert dict(zip(df["status"], df["count"])) == {"todo": 2, "in-progress": 0, "done": 1}


class TestSampleData:
    def test_inserts_rows_each_run(self, services: Services):
        utils.insert_sample_data(services, today=date(2024, 6, 15))
        utils.insert_sample_data(services, today=date(2024, 6, 15))
        assert len(services.clients.list()) == 6
        assert len(services.tasks.list()) == 4
        assert len(services.plans.list()) == 2
