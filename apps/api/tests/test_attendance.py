"""
Check-ins and attendance: coach-only access, live roster merge, idempotent
upsert, per-entry validation.
"""
from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from main import app
from models import AttendanceRecord, User
from services.attendance import (
    create_checkin,
    get_attendance_view,
    list_checkins,
    normalize_entries,
    submit_attendance,
)
from services.group_membership import create_group, join_group


client = TestClient(app)


@pytest.fixture
def checkin(db_session, squad, actor_for):
    c = create_checkin(
        db_session, actor_for(squad.coach), title="Tuesday Track", session_date=date(2026, 3, 3)
    )
    db_session.commit()
    return c


class TestNormalizeEntries:
    def test_invalid_entries_are_dropped(self):
        entries = [
            {"user_id": "a", "status": "present"},
            {"user_id": "ghost", "status": "banana"},
            {"status": "absent"},
            {"user_id": "  ", "status": "absent"},
            "junk",
            None,
            {"user_id": "b", "status": "excused"},
        ]
        assert normalize_entries(entries) == [
            {"user_id": "a", "status": "present"},
            {"user_id": "b", "status": "excused"},
        ]

    def test_later_duplicate_wins(self):
        entries = [
            {"user_id": "a", "status": "present"},
            {"user_id": "a", "status": "absent"},
        ]
        assert normalize_entries(entries) == [{"user_id": "a", "status": "absent"}]

    def test_uuid_spellings_collapse_to_one_user(self):
        uid = uuid4()
        entries = [
            {"user_id": str(uid), "status": "present"},
            {"user_id": str(uid).upper(), "status": "absent"},
            {"user_id": uid.hex, "status": "excused"},
        ]
        assert normalize_entries(entries) == [{"user_id": str(uid), "status": "excused"}]

    def test_non_list_is_empty(self):
        assert normalize_entries({"user_id": "a", "status": "present"}) == []


class TestCheckIns:
    def test_defaults_to_primary_group(self, db_session, squad, checkin):
        assert checkin.group_id == squad.group.id
        assert checkin.title == "Tuesday Track"

    def test_athlete_cannot_create(self, db_session, squad, actor_for):
        with pytest.raises(ForbiddenError):
            create_checkin(db_session, actor_for(squad.xena), title="x", session_date=date(2026, 3, 3))

    def test_coach_without_group_gets_validation_error(self, db_session, make_user, actor_for):
        coach = make_user(User.ROLE_COACH)
        with pytest.raises(ValidationError):
            create_checkin(db_session, actor_for(coach), title="x", session_date=date(2026, 3, 3))

    def test_coach_cannot_target_foreign_group(self, db_session, squad, make_user, actor_for):
        other_coach = make_user(User.ROLE_COACH)
        create_group(db_session, actor_for(other_coach), "Other")
        db_session.commit()
        with pytest.raises(ForbiddenError):
            create_checkin(
                db_session,
                actor_for(other_coach),
                title="x",
                session_date=date(2026, 3, 3),
                group_id=squad.group.id,
            )

    def test_title_and_date_required(self, db_session, squad, actor_for):
        coach = actor_for(squad.coach)
        with pytest.raises(ValidationError):
            create_checkin(db_session, coach, title="  ", session_date=date(2026, 3, 3))
        with pytest.raises(ValidationError):
            create_checkin(db_session, coach, title="Track", session_date=None)

    def test_list_scoped_to_groups(self, db_session, squad, checkin, actor_for):
        assert [c.id for c in list_checkins(db_session, actor_for(squad.xena))] == [checkin.id]
        assert list_checkins(db_session, actor_for(squad.outsider)) == []

    def test_api_create_requires_coach(self, db_session, squad, auth_headers):
        resp = client.post(
            "/v1/checkins",
            json={"title": "Tempo", "session_date": "2026-03-05"},
            headers=auth_headers(squad.xena),
        )
        assert resp.status_code == 403

        resp = client.post(
            "/v1/checkins",
            json={"title": "Tempo", "session_date": "2026-03-05"},
            headers=auth_headers(squad.coach),
        )
        assert resp.status_code == 201
        assert resp.json()["group_id"] == str(squad.group.id)


class TestAttendanceView:
    def test_unrecorded_roster_sorted_by_name(self, db_session, squad, checkin, actor_for):
        view = get_attendance_view(db_session, actor_for(squad.coach), checkin.id)

        assert view.record is None
        assert [row.user.display_name for row in view.athletes] == ["Xena", "Yuri"]
        assert all(row.status is None for row in view.athletes)

    def test_roster_is_evaluated_live(self, db_session, squad, checkin, make_user, actor_for):
        submit_attendance(
            db_session, actor_for(squad.coach), checkin.id,
            [{"user_id": str(squad.xena.id), "status": "present"}],
        )
        late = make_user(display_name="Late Larry")
        join_group(db_session, actor_for(late), squad.group.code)
        db_session.commit()

        view = get_attendance_view(db_session, actor_for(squad.coach), checkin.id)
        statuses = {row.user.display_name: row.status for row in view.athletes}
        assert statuses == {"Late Larry": None, "Xena": "present", "Yuri": None}

    def test_athlete_is_forbidden(self, db_session, squad, checkin, actor_for):
        with pytest.raises(ForbiddenError):
            get_attendance_view(db_session, actor_for(squad.xena), checkin.id)

    def test_coach_of_other_group_is_forbidden(self, db_session, squad, checkin, make_user, actor_for):
        other_coach = make_user(User.ROLE_COACH)
        create_group(db_session, actor_for(other_coach), "Other")
        db_session.commit()
        with pytest.raises(ForbiddenError):
            get_attendance_view(db_session, actor_for(other_coach), checkin.id)
        with pytest.raises(ForbiddenError):
            submit_attendance(db_session, actor_for(other_coach), checkin.id, [])

    def test_missing_checkin_is_not_found(self, db_session, squad, actor_for):
        with pytest.raises(NotFoundError):
            get_attendance_view(db_session, actor_for(squad.coach), uuid4())


class TestSubmitAttendance:
    def test_invalid_entry_dropped_without_error(self, db_session, squad, checkin, actor_for):
        record = submit_attendance(
            db_session,
            actor_for(squad.coach),
            checkin.id,
            [
                {"user_id": str(squad.xena.id), "status": "present"},
                {"user_id": "ghost", "status": "banana"},
            ],
        )
        db_session.commit()

        assert record.entries == [{"user_id": str(squad.xena.id), "status": "present"}]

    def test_resubmission_is_idempotent(self, db_session, squad, checkin, actor_for):
        coach = actor_for(squad.coach)
        entries = [
            {"user_id": str(squad.xena.id), "status": "present"},
            {"user_id": str(squad.yuri.id), "status": "excused"},
        ]
        first = submit_attendance(db_session, coach, checkin.id, entries)
        db_session.commit()
        first_entries = list(first.entries)
        created_at = first.created_at

        second = submit_attendance(db_session, coach, checkin.id, entries)
        db_session.commit()

        records = (
            db_session.query(AttendanceRecord)
            .filter(AttendanceRecord.checkin_id == checkin.id, AttendanceRecord.group_id == squad.group.id)
            .all()
        )
        assert len(records) == 1
        assert second.id == first.id
        assert second.entries == first_entries
        assert second.created_at == created_at
        assert second.updated_at >= created_at

    def test_resubmission_replaces_entries(self, db_session, squad, checkin, actor_for):
        coach = actor_for(squad.coach)
        submit_attendance(db_session, coach, checkin.id, [{"user_id": str(squad.xena.id), "status": "present"}])
        record = submit_attendance(db_session, coach, checkin.id, [{"user_id": str(squad.xena.id), "status": "absent"}])
        db_session.commit()

        assert record.entries == [{"user_id": str(squad.xena.id), "status": "absent"}]
        assert record.session_date == date(2026, 3, 3)
        assert record.coach_id == squad.coach.id

    def test_uppercase_user_id_matches_roster(self, db_session, squad, checkin, actor_for):
        coach = actor_for(squad.coach)
        record = submit_attendance(
            db_session,
            coach,
            checkin.id,
            [
                {"user_id": str(squad.xena.id).upper(), "status": "present"},
                {"user_id": str(squad.yuri.id), "status": "present"},
                {"user_id": str(squad.yuri.id).upper(), "status": "absent"},
            ],
        )
        db_session.commit()

        assert len(record.entries) == 2
        view = get_attendance_view(db_session, coach, checkin.id)
        assert {a.user.display_name: a.status for a in view.athletes} == {"Xena": "present", "Yuri": "absent"}

    def test_api_round_trip(self, db_session, squad, checkin, auth_headers):
        resp = client.post(
            f"/v1/checkins/{checkin.id}/attendance",
            json={"entries": [
                {"user_id": str(squad.yuri.id), "status": "absent"},
                {"user_id": str(squad.xena.id), "status": "late"},
                42,
            ]},
            headers=auth_headers(squad.coach),
        )
        assert resp.status_code == 200
        assert resp.json()["entries"] == [{"user_id": str(squad.yuri.id), "status": "absent"}]

        view = client.get(f"/v1/checkins/{checkin.id}/attendance", headers=auth_headers(squad.coach))
        assert view.status_code == 200
        body = view.json()
        assert body["checkin"]["id"] == str(checkin.id)
        assert {a["display_name"]: a["status"] for a in body["athletes"]} == {"Xena": None, "Yuri": "absent"}

    def test_api_athlete_forbidden(self, db_session, squad, checkin, auth_headers):
        resp = client.get(f"/v1/checkins/{checkin.id}/attendance", headers=auth_headers(squad.xena))
        assert resp.status_code == 403
        resp = client.post(
            f"/v1/checkins/{checkin.id}/attendance", json={"entries": []}, headers=auth_headers(squad.xena)
        )
        assert resp.status_code == 403
