"""Tests for version bookkeeping and bulk reads in the content repository."""
from datetime import datetime

import pytest

import mecasync.timeutil as timeutil
from mecasync.exceptions import NotFoundError, ValidationError
from mecasync.models import Module
from mecasync.services.content import ContentRepository


def test_update_increments_version_by_one_and_moves_updated_at(db, make_module):
    module = make_module(version=3)
    before = module.updated_at

    ContentRepository.update_content(db, module, title="Brake pads (rev. B)")

    assert module.version == 4
    assert module.title == "Brake pads (rev. B)"
    assert module.updated_at > before


def test_updated_at_strictly_increases_when_clock_does_not_move(db, make_module, monkeypatch):
    frozen = datetime(2030, 1, 1)
    monkeypatch.setattr(timeutil, "utcnow", lambda: frozen)
    module = make_module(updated_at=frozen)

    stamps = []
    for n in range(3):
        ContentRepository.update_content(db, module, description=f"rev {n}")
        stamps.append(module.updated_at)

    assert module.version == 4
    assert stamps[0] > frozen
    assert stamps[0] < stamps[1] < stamps[2]


def test_update_rejects_version_fields(db, make_module):
    module = make_module()

    with pytest.raises(ValidationError):
        ContentRepository.update_content(db, module, version=10)

    with pytest.raises(ValidationError):
        ContentRepository.update_content(db, module, no_such_column="x")


def test_deactivate_keeps_row_and_bumps_version(db, make_module):
    module = make_module(uuid="to-retire")

    ContentRepository.deactivate(db, module)

    row = db.query(Module).filter(Module.uuid == "to-retire").one()
    assert row.is_active is False
    assert row.version == 2

    with pytest.raises(NotFoundError):
        ContentRepository.fetch_module(db, "to-retire")


def test_fetch_module_downloadable_only(db, make_module):
    make_module(uuid="view-only", is_downloadable=False)

    assert ContentRepository.fetch_module(db, "view-only").uuid == "view-only"
    with pytest.raises(NotFoundError, match="not downloadable"):
        ContentRepository.fetch_module(db, "view-only", downloadable_only=True)


def test_fetch_children_bulk_groups_steps_by_parent(db, make_meca_aid, query_counter):
    first = make_meca_aid(steps=3).id
    second = make_meca_aid(steps=1).id
    empty = make_meca_aid(steps=0).id

    query_counter.clear()
    grouped = ContentRepository.fetch_children_bulk(db, [first, second, empty])

    assert len(query_counter) == 1
    assert [s.step_number for s in grouped[first]] == [1, 2, 3]
    assert [s.step_number for s in grouped[second]] == [1]
    assert empty not in grouped


def test_fetch_children_bulk_with_no_parents_runs_no_query(db, query_counter):
    assert ContentRepository.fetch_children_bulk(db, []) == {}
    assert query_counter == []


def test_changed_since_is_exclusive(db, make_module):
    stamp = datetime(2024, 2, 1)
    make_module(uuid="at-stamp", updated_at=stamp)
    make_module(uuid="after-stamp", updated_at=datetime(2024, 2, 2))

    rows = ContentRepository.fetch_active_changed_since(db, "module", stamp)

    assert [m.uuid for m in rows] == ["after-stamp"]
    assert ContentRepository.count_active_changed_since(db, "module", stamp) == 1


def test_unknown_entity_type(db):
    with pytest.raises(ValidationError):
        ContentRepository.fetch_active_changed_since(db, "animation", None)
