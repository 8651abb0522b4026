from __future__ import annotations

from datetime import date, timedelta
from threading import Thread

import pytest

from reception_desk.exceptions import AlreadyAttendedError, NotFoundError, ValidationError
from reception_desk.models import AttendanceFilters, AttendanceStatus, Sector
from reception_desk.registry import AttendanceRegistry
from reception_desk.db import Database
from reception_desk.store import InMemoryAttendanceStore, SQLiteAttendanceStore
from reception_desk.validation import build_filters


def test_register_sets_waiting_defaults(registry, register_sample, clock):
    started = clock()
    record = register_sample()

    assert record.attended is False
    assert record.attended_at is None
    assert record.hide_after is None
    assert record.created_at >= started
    assert record.sector is Sector.RH
    assert registry.get(record.id) == record


def test_register_strips_text_and_accepts_lowercase_sector(register_sample):
    record = register_sample(name="  Maria Oliveira ", sector="dp")

    assert record.name == "Maria Oliveira"
    assert record.sector is Sector.DP


@pytest.mark.parametrize("field", ["registration", "name", "position", "reason"])
def test_register_rejects_empty_fields(register_sample, registry, field):
    with pytest.raises(ValidationError):
        register_sample(**{field: "   "})
    assert registry.query() == []


def test_register_rejects_unknown_sector(register_sample, registry):
    with pytest.raises(ValidationError):
        register_sample(sector="FINANCEIRO")
    assert registry.query() == []


def test_register_notifies_record_sector(register_sample, notifier):
    register_sample(sector="DISCIPLINA", name="Carlos Santos")

    assert len(notifier.calls) == 1
    sector, message = notifier.calls[0]
    assert sector is Sector.DISCIPLINA
    assert "Carlos Santos" in message


def test_notification_failure_does_not_roll_back_registration(registry, notifier):
    notifier.error = RuntimeError("gateway down")
    record = registry.register(
        registration="54321", name="Maria", position="Coordenadora", sector="DP", reason="férias"
    )

    assert registry.get(record.id).id == record.id


def test_notifier_returning_false_still_registers(registry, notifier):
    notifier.result = False
    record = registry.register(
        registration="54321", name="Maria", position="Coordenadora", sector="DP", reason="férias"
    )

    assert [r.id for r in registry.query()] == [record.id]


def test_update_merges_fields_and_is_idempotent(registry, register_sample):
    record = register_sample()

    first = registry.update(record.id, reason="atestado médico", sector="PLANEJAMENTO")
    second = registry.update(record.id, reason="atestado médico", sector="PLANEJAMENTO")

    assert first == second
    assert first.reason == "atestado médico"
    assert first.sector is Sector.PLANEJAMENTO
    assert first.created_at == record.created_at
    assert first.name == record.name


def test_update_with_invalid_sector_leaves_record_unchanged(registry, register_sample):
    record = register_sample()

    with pytest.raises(ValidationError):
        registry.update(record.id, sector="INVALID", reason="changed")

    assert registry.get(record.id) == record


def test_update_rejects_emptied_field(registry, register_sample):
    record = register_sample()

    with pytest.raises(ValidationError):
        registry.update(record.id, name="")

    assert registry.get(record.id).name == "João Silva"


def test_update_rejects_lifecycle_fields(registry, register_sample):
    record = register_sample()

    with pytest.raises(ValidationError):
        registry.update(record.id, attended=True)

    assert registry.get(record.id).attended is False


def test_update_missing_record(registry):
    with pytest.raises(NotFoundError):
        registry.update("missing", name="x")


def test_mark_attended_sets_timestamps_once(registry, register_sample, clock):
    record = register_sample()
    clock.advance(minutes=5)

    attended = registry.mark_attended(record.id)

    assert attended.attended is True
    assert attended.attended_at == clock()
    assert attended.attended_at >= attended.created_at
    assert attended.hide_after == attended.attended_at + timedelta(seconds=40)

    clock.advance(minutes=1)
    with pytest.raises(AlreadyAttendedError):
        registry.mark_attended(record.id)
    assert registry.get(record.id).attended_at == attended.attended_at


def test_mark_attended_never_precedes_registration(registry, register_sample, clock):
    record = register_sample()
    clock.advance(minutes=-10)

    attended = registry.mark_attended(record.id)

    assert attended.attended_at == record.created_at
    assert attended.hide_after == record.created_at + timedelta(seconds=40)


def test_update_after_attended_keeps_lifecycle_fields(registry, register_sample):
    record = register_sample()
    attended = registry.mark_attended(record.id)

    updated = registry.update(record.id, reason="outro motivo")

    assert updated.attended is True
    assert updated.attended_at == attended.attended_at
    assert updated.hide_after == attended.hide_after


def test_mark_attended_missing_record(registry):
    with pytest.raises(NotFoundError):
        registry.mark_attended("missing")


def test_visibility_window_end_to_end(registry, register_sample, clock):
    record = register_sample()
    assert record.attended is False

    attended = registry.mark_attended(record.id)
    assert attended.hide_after == attended.attended_at + timedelta(seconds=40)
    assert [r.id for r in registry.query_visible()] == [record.id]

    clock.advance(seconds=39)
    assert [r.id for r in registry.query_visible()] == [record.id]

    clock.advance(seconds=2)
    assert registry.query_visible() == []
    assert [r.id for r in registry.query()] == [record.id]
    assert registry.get(record.id).hide_after == attended.hide_after


def test_query_visible_keeps_waiting_records_forever(registry, register_sample, clock):
    record = register_sample()
    clock.advance(days=30)

    assert [r.id for r in registry.query_visible()] == [record.id]


def test_query_visible_applies_filters(registry, register_sample):
    register_sample(sector="RH")
    dp = register_sample(sector="DP")

    visible = registry.query_visible(AttendanceFilters(sector=Sector.DP))

    assert [r.id for r in visible] == [dp.id]


def test_remove_deletes_record(registry, register_sample):
    record = register_sample()

    registry.remove(record.id)

    assert registry.query() == []
    assert registry.store.find_by_id(record.id) is None
    with pytest.raises(NotFoundError):
        registry.mark_attended(record.id)
    with pytest.raises(NotFoundError):
        registry.remove(record.id)


def test_ids_are_not_reused_after_removal(registry, register_sample):
    first = register_sample()
    registry.remove(first.id)

    second = register_sample()

    assert second.id != first.id


def test_query_orders_most_recent_first(registry, register_sample, clock):
    ids = []
    for index in range(4):
        ids.append(register_sample(registration=f"r{index}").id)
        clock.advance(minutes=3)

    results = registry.query()

    assert [r.id for r in results] == list(reversed(ids))
    for newer, older in zip(results, results[1:]):
        assert newer.created_at >= older.created_at


def test_status_filters_partition_all_records(registry, register_sample, clock):
    records = []
    for index in range(5):
        records.append(register_sample(registration=str(index)))
        clock.advance(seconds=10)
    registry.mark_attended(records[1].id)
    registry.mark_attended(records[3].id)

    waiting = registry.query(AttendanceFilters(status=AttendanceStatus.WAITING))
    attended = registry.query(AttendanceFilters(status=AttendanceStatus.ATTENDED))
    everything = registry.query()

    assert all(not r.attended for r in waiting)
    assert all(r.attended for r in attended)
    assert {r.id for r in waiting}.isdisjoint({r.id for r in attended})
    assert {r.id for r in waiting} | {r.id for r in attended} == {r.id for r in everything}


def test_sector_filter_only_returns_that_sector(registry, register_sample):
    register_sample(sector="RH")
    register_sample(sector="DP")
    register_sample(sector="RH")

    results = registry.query(build_filters(sector="RH"))

    assert len(results) == 2
    assert all(r.sector is Sector.RH for r in results)


def test_all_means_no_constraint(registry, register_sample):
    register_sample(sector="RH")
    register_sample(sector="DP")

    assert len(registry.query(build_filters(sector="all", status="all"))) == 2


def test_name_and_registration_match_case_insensitive_substrings(registry, register_sample):
    joao = register_sample(name="João Silva", registration="AB-12345")
    register_sample(name="Ana Pereira", registration="11223")

    assert [r.id for r in registry.query(build_filters(name="JOÃO"))] == [joao.id]
    assert [r.id for r in registry.query(build_filters(registration="ab-123"))] == [joao.id]
    assert registry.query(build_filters(name="nobody")) == []


def test_date_bounds_are_inclusive(registry, register_sample, clock):
    first = register_sample()
    clock.advance(days=1)
    second = register_sample()
    clock.advance(days=1)
    third = register_sample()

    day_two = second.created_at.date()
    results = registry.query(AttendanceFilters(start_date=day_two, end_date=day_two))
    assert [r.id for r in results] == [second.id]

    results = registry.query(AttendanceFilters(start_date=first.created_at.date()))
    assert [r.id for r in results] == [third.id, second.id, first.id]

    assert registry.query(AttendanceFilters(end_date=date(2000, 1, 1))) == []


def test_stats_count_full_record_set(registry, register_sample, clock):
    records = [register_sample(registration=str(i)) for i in range(3)]
    registry.mark_attended(records[0].id)
    clock.advance(minutes=10)

    stats = registry.stats()

    assert stats.waiting == 2
    assert stats.attended == 1
    assert stats.remaining == stats.waiting
    assert registry.query_visible() != registry.query()


def test_concurrent_mark_attended_applies_once(clock):
    registry = AttendanceRegistry(InMemoryAttendanceStore(), clock=clock)
    record = registry.register(
        registration="1", name="Roberto Lima", position="Motorista", sector="DP", reason="vale"
    )
    outcomes: list[str] = []

    def attend() -> None:
        try:
            registry.mark_attended(record.id)
            outcomes.append("ok")
        except AlreadyAttendedError:
            outcomes.append("already")

    threads = [Thread(target=attend) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("already") == 7


def test_visibility_window_must_be_positive():
    with pytest.raises(ValueError):
        AttendanceRegistry(InMemoryAttendanceStore(), hide_after_seconds=0)


def test_mark_attended_is_guarded_across_registries_sharing_a_database(tmp_path, clock):
    path = tmp_path / "shared.db"
    other = AttendanceRegistry(SQLiteAttendanceStore(Database(path)), clock=clock)
    record = other.register(
        registration="1", name="Roberto Lima", position="Motorista", sector="DP", reason="vale"
    )
    clock.advance(seconds=5)

    def clock_racing_other_process():
        other.mark_attended(record.id)
        return clock() - timedelta(seconds=5)

    local = AttendanceRegistry(SQLiteAttendanceStore(Database(path)), clock=clock_racing_other_process)

    with pytest.raises(AlreadyAttendedError):
        local.mark_attended(record.id)

    stored = other.get(record.id)
    assert stored.attended_at == clock()
    assert stored.hide_after == clock() + timedelta(seconds=40)


def test_mark_attended_reports_record_removed_mid_transition(tmp_path, clock):
    path = tmp_path / "shared.db"
    other = AttendanceRegistry(SQLiteAttendanceStore(Database(path)), clock=clock)
    record = other.register(
        registration="1", name="Roberto Lima", position="Motorista", sector="DP", reason="vale"
    )

    def clock_racing_removal():
        other.remove(record.id)
        return clock()

    local = AttendanceRegistry(SQLiteAttendanceStore(Database(path)), clock=clock_racing_removal)

    with pytest.raises(NotFoundError):
        local.mark_attended(record.id)
