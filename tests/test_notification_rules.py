"""Testes das regras de seleção de audiência e dos textos."""
from datetime import date, datetime, timedelta, timezone

import pytest

from app.services import notifications as rules

BRT = timezone(timedelta(hours=-3))


def _local(hour, minute=0, day=10):
    return datetime(2026, 3, day, hour, minute, tzinfo=BRT)


def test_local_now_uses_fixed_offset():
    local = rules.local_now(datetime(2026, 3, 10, 2, 30, tzinfo=timezone.utc))

    assert (local.day, local.hour, local.minute) == (9, 23, 30)
    assert local.utcoffset() == timedelta(hours=-3)


def test_naive_database_timestamps_are_utc():
    assert rules.as_utc(datetime(2026, 3, 10, 12, 0)) == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "capsule_time, hour, minute, expected",
    [
        ("08:00", 8, 0, True),
        ("08:00", 8, 2, True),
        ("08:00", 7, 58, True),
        ("08:00:00", 8, 1, True),
        ("12:00", 12, 3, False),
        ("12:00", 11, 57, False),
        ("23:59", 0, 0, True),
        ("00:01", 23, 59, True),
        ("23:57", 0, 0, False),
    ],
)
def test_capsule_window_is_symmetric_and_wraps_midnight(capsule_time, hour, minute, expected):
    assert rules.capsule_time_matches(capsule_time, _local(hour, minute)) is expected


@pytest.mark.parametrize("capsule_time", [None, "", "abc", "25:00", "8"])
def test_capsule_without_valid_time_never_matches(capsule_time):
    assert rules.capsule_time_matches(capsule_time, _local(8, 0)) is False


def test_journey_day_is_ceiling_of_elapsed_days():
    created = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    assert rules.journey_day(created, created) == 0
    assert rules.journey_day(created, created + timedelta(milliseconds=1)) == 1
    assert rules.journey_day(created, created + timedelta(days=1)) == 1
    assert rules.journey_day(created, created + timedelta(days=7)) == 7
    assert rules.journey_day(created, created + timedelta(days=6, seconds=1)) == 7
    assert rules.journey_day(None, created) is None


def test_journey_table_days():
    today = date(2026, 3, 10)

    assert sorted(rules.JOURNEY_MESSAGES) == [1, 3, 5, 7, 10, 14, 18, 21, 23, 25]
    for day in (2, 4, 6, 8, 26, 0):
        assert rules.journey_payload(day, today) is None
    payload = rules.journey_payload(7, today)
    assert payload.title == "✅ Semana 1 concluída!"
    assert payload.tag == "levefit-journey-day7-2026-03-10"
    tags = {rules.journey_payload(day, today).tag for day in rules.JOURNEY_MESSAGES}
    assert len(tags) == len(rules.JOURNEY_MESSAGES)


def test_water_due_exactly_at_interval():
    now = _local(14, 0)

    assert rules.water_due(now - timedelta(minutes=60), 60, now) is True
    assert rules.water_due(now - timedelta(minutes=59), 60, now) is False
    assert rules.water_due(now - timedelta(minutes=90), 60, now) is True


def test_water_due_with_cursor_ignores_quiet_hours():
    late = _local(23, 30)

    assert rules.water_due(late - timedelta(hours=2), 60, late) is True


@pytest.mark.parametrize(
    "hour, minute, expected",
    [(6, 59, False), (7, 0, True), (12, 0, True), (22, 59, True), (23, 0, False), (3, 0, False)],
)
def test_first_water_reminder_only_between_7_and_22(hour, minute, expected):
    assert rules.water_due(None, 60, _local(hour, minute)) is expected


def test_water_without_interval_is_never_due():
    assert rules.water_due(None, None, _local(12, 0)) is False
    assert rules.water_due(None, 0, _local(12, 0)) is False


@pytest.mark.parametrize(
    "progress, goal, expected",
    [
        (1500, 2000, 75),
        (1499, 2000, 75),
        (1490, 2000, 75),  # 74.5 arredonda para cima
        (1489, 2000, 74),
        (0, 2000, 0),
        (None, 2000, 0),
        (2500, 2000, 125),
        (1000, None, 50),
        (1000, 0, 50),
    ],
)
def test_water_percent_rounds_half_up(progress, goal, expected):
    assert rules.water_percent(progress, goal) == expected


def test_treatment_day():
    today = date(2026, 3, 10)

    assert rules.treatment_day(None, today) == 0
    assert rules.treatment_day(today, today) == 1
    assert rules.treatment_day(date(2026, 3, 1), today) == 10


@pytest.mark.parametrize(
    "name, expected",
    [("Maria Silva", "Maria"), ("Ana", "Ana"), ("", "Usuário"), (None, "Usuário"), ("   ", "Usuário")],
)
def test_first_name(name, expected):
    assert rules.first_name(name) == expected


def test_daily_summary_copy():
    payload = rules.daily_summary_payload("Maria", 5, 3, 75, date(2026, 3, 10))

    assert payload.title == "📊 Resumo do Dia, Maria!"
    assert payload.body == "Dia 5 de tratamento | 3 cápsulas | Água: 75%"
    assert payload.tag == "levefit-daily-summary-2026-03-10"
    assert payload.url == "/progress"


def test_capsule_tags_are_unique_per_instant():
    first = rules.capsule_payload(_local(8, 0))
    second = rules.capsule_payload(_local(8, 5))

    assert first.tag != second.tag
    assert first.url == "/calendar"


def test_scheduler_timezone_name_inverts_sign(monkeypatch):
    assert rules.scheduler_timezone_name() == "Etc/GMT+3"

    monkeypatch.setattr(rules.settings, "NOTIFICATION_UTC_OFFSET_MINUTES", 0)
    assert rules.scheduler_timezone_name() == "Etc/UTC"

    monkeypatch.setattr(rules.settings, "NOTIFICATION_UTC_OFFSET_MINUTES", 120)
    assert rules.scheduler_timezone_name() == "Etc/GMT-2"

    monkeypatch.setattr(rules.settings, "NOTIFICATION_UTC_OFFSET_MINUTES", -150)
    with pytest.raises(ValueError):
        rules.scheduler_timezone_name()


NOW_UTC = datetime(2026, 3, 10, 11, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "start, kit_type, expected",
    [
        (date(2026, 2, 13), "1_pote", 5),
        (date(2026, 2, 14), "1_pote", 6),
        (date(2026, 2, 8), "1_pote", 0),     # terminou hoje à meia-noite UTC
        (date(2026, 2, 7), "1_pote", -1),
        (date(2026, 1, 10), "2_potes", 1),
        (date(2025, 12, 11), "3_potes", 1),
        (date(2026, 2, 13), "kit_promocional", 5),  # desconhecido = 30 dias
        (None, "1_pote", None),
        (date(2026, 2, 13), None, None),
    ],
)
def test_treatment_days_remaining(start, kit_type, expected):
    assert rules.treatment_days_remaining(start, kit_type, NOW_UTC) == expected


def test_treatment_ending_window():
    assert rules.treatment_ending(date(2026, 2, 13), "1_pote", NOW_UTC) is True
    assert rules.treatment_ending(date(2026, 2, 8), "1_pote", NOW_UTC) is True
    assert rules.treatment_ending(date(2026, 2, 14), "1_pote", NOW_UTC) is False
    assert rules.treatment_ending(date(2026, 2, 7), "1_pote", NOW_UTC) is False
    assert rules.treatment_ending(None, "1_pote", NOW_UTC) is False


def test_treatment_end_copy():
    payload = rules.treatment_end_payload(date(2026, 3, 10))

    assert payload.title == "🎯 Reta final do tratamento!"
    assert payload.body == "Você está nos últimos dias! Continue firme no seu objetivo!"
    assert payload.tag == "levefit-treatment-end-2026-03-10"
    assert payload.url == "/progress"
