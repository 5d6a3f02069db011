import itertools
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mecasync.database import Base, get_db
from mecasync.dependencies import get_current_user
from mecasync.main import app
from mecasync.models import (
    AppSetting,
    MecaAid,
    MecaAidCategory,
    MecaAidStep,
    Module,
    ModuleCategory,
    User,
)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)

_uuids = itertools.count(1)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import mecasync.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def query_counter(engine):
    """Counts SQL statements sent to the engine."""
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", _record)
    yield statements
    event.remove(engine, "before_cursor_execute", _record)


@pytest.fixture
def user(db):
    user = User(email="mechanic@example.com", name="Test Mechanic")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_module(db):
    def _make(uuid=None, updated_at=BASE_TIME, version=1, is_active=True, is_downloadable=True, category=None):
        module = Module(
            uuid=uuid or f"module-{next(_uuids)}",
            title="Brake pad replacement",
            content="Remove the caliper...",
            version=version,
            is_active=is_active,
            is_downloadable=is_downloadable,
            category=category,
            updated_at=updated_at,
        )
        db.add(module)
        db.commit()
        db.refresh(module)
        return module

    return _make


@pytest.fixture
def make_meca_aid(db):
    def _make(uuid=None, updated_at=BASE_TIME, steps=2, is_active=True, category=None):
        aid = MecaAid(
            uuid=uuid or f"aid-{next(_uuids)}",
            title="Engine does not crank",
            problem_description="Nothing happens when the key is turned",
            is_active=is_active,
            category=category,
            updated_at=updated_at,
        )
        db.add(aid)
        db.flush()
        # Inserted in reverse to check ordering by step_number
        for number in range(steps, 0, -1):
            db.add(MecaAidStep(meca_aid_id=aid.id, step_number=number, instruction=f"Step {number}"))
        db.commit()
        db.refresh(aid)
        return aid

    return _make


@pytest.fixture
def catalog(db, make_module, make_meca_aid):
    """Small catalog with categories, settings and one retired module."""
    brakes = ModuleCategory(name="Brakes", sort_order=2)
    engine_cat = ModuleCategory(name="Engine", sort_order=1)
    hidden = ModuleCategory(name="Hidden", sort_order=0, is_active=False)
    electrical = MecaAidCategory(name="Electrical", sort_order=1)
    db.add_all([brakes, engine_cat, hidden, electrical])
    db.add_all([
        AppSetting(setting_key="min_app_version", setting_value="2.0.0"),
        AppSetting(setting_key="support_email", setting_value="help@example.com"),
    ])
    db.commit()

    return {
        "old_module": make_module(uuid="m-old", updated_at=datetime(2024, 1, 1), category=brakes),
        "new_module": make_module(uuid="m-new", updated_at=datetime(2024, 3, 1), category=engine_cat),
        "retired_module": make_module(uuid="m-retired", updated_at=datetime(2024, 3, 2), is_active=False),
        "old_aid": make_meca_aid(uuid="a-old", updated_at=datetime(2024, 1, 5), steps=3, category=electrical),
        "new_aid": make_meca_aid(uuid="a-new", updated_at=datetime(2024, 3, 5), steps=2),
    }


@pytest.fixture
def client(db, user):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield TestClient(app, headers={"X-Device-ID": "device-1"})
    finally:
        app.dependency_overrides.clear()
