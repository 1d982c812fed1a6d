import os
import pathlib
import sys
import tempfile

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))


def pytest_configure():
    if os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="risk-monitor-tests-")
    os.environ["DATABASE_URL"] = f"sqlite:///{pathlib.Path(temp_dir) / 'risk.db'}"


@pytest.fixture(scope="session")
def sqlite_engine():
    from backend.app.db import Base, engine
    import backend.app.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def sqlite_session(sqlite_engine):
    """Session per test; every table is emptied afterwards since services commit."""
    from backend.app.db import Base, SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with sqlite_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture()
def make_organization(sqlite_session):
    from backend.app.models import Organization

    def _make(name="Acme"):
        org = Organization(name=name)
        sqlite_session.add(org)
        sqlite_session.commit()
        return org

    return _make


@pytest.fixture()
def add_energy_readings(sqlite_session):
    """Monthly kWh readings for one meter, starting 2024-01."""
    from backend.app.models import ElectricMeterReading

    def _add(organization_id, values, *, centro="Planta", unit_cost=None):
        for idx, value in enumerate(values):
            sqlite_session.add(
                ElectricMeterReading(
                    organization_id=organization_id,
                    period=f"2024-{idx + 1:02d}",
                    centro_trabajo=centro,
                    medidor="E1",
                    consumo_kwh=value,
                    costo_total=value * unit_cost if unit_cost is not None else None,
                )
            )
        sqlite_session.commit()

    return _add


@pytest.fixture()
def api_client(sqlite_session):
    from backend.app.db import get_db
    from backend.app.main import app
    from fastapi.testclient import TestClient

    def _get_test_db():
        yield sqlite_session

    app.dependency_overrides[get_db] = _get_test_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
