"""Pytest unit test fixtures."""

import pytest


@pytest.fixture()
def progress_log():
    calls: list[tuple[int, int, str]] = []

    def record(current: int, total: int, label: str) -> None:
        calls.append((current, total, label))

    record.calls = calls
    return record
