"""Shared fixtures: an in-memory custody store seeded with employees."""

import pytest

from src.custody.catalog.domain.entities import ActiveStatus, Employee
from src.custody.persistence.adapters.memory import InMemoryStore, InMemoryUnitOfWork


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def uow(store):
    return InMemoryUnitOfWork(store)


@pytest.fixture
def alice(store):
    employee = Employee(employee_code="EMP-1", first_name="Alice", last_name="Ng")
    store.seed(employee)
    return employee


@pytest.fixture
def bob(store):
    employee = Employee(employee_code="EMP-2", first_name="Bob", last_name="Ortiz")
    store.seed(employee)
    return employee


@pytest.fixture
def carol(store):
    employee = Employee(employee_code="EMP-3", first_name="Carol", last_name="Reyes")
    store.seed(employee)
    return employee


@pytest.fixture
def former_employee(store):
    employee = Employee(
        employee_code="EMP-9",
        first_name="Dana",
        last_name="Quinn",
        status=ActiveStatus.INACTIVE,
    )
    store.seed(employee)
    return employee

