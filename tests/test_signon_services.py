import base64
import io
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from fastapi import HTTPException
from PIL import Image
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from siteportal.models.site import (
    DocumentAssignment,
    DocumentSignature,
    EnrollmentStatus,
    ProjectEnrollment,
    ProjectSignOn,
    SiteDocument,
)
from siteportal.schemas.signon import SignatureSubmission
from siteportal.services.signature_canvas import SignatureCanvas
from siteportal.services.signon import (
    DocumentSignatures,
    ProjectSignOns,
    SignOnState,
    SignOnStatus,
    can_submit,
    extract_signature,
    today_window,
)

SYDNEY = ZoneInfo("Australia/Sydney")


def _signature():
    return SignatureCanvas.from_strokes([[(10, 10), (120, 60), (200, 30)]]).export()


def _submission(**overrides):
    data = {"acknowledged": True, "signature_data": _signature()}
    data.update(overrides)
    return SignatureSubmission(**data)


def _count(db_session, model, **filters):
    stmt = select(func.count()).select_from(model)
    for key, value in filters.items():
        stmt = stmt.where(getattr(model, key) == value)
    return db_session.scalar(stmt)


def _assign(db_session, document, person, can_sign=True):
    db_session.add(
        DocumentAssignment(document_id=document.id, person_id=person.id, can_sign=can_sign)
    )
    db_session.commit()


class TestCanSubmit:
    @pytest.mark.parametrize(
        "acknowledged,has_signature,expected",
        [(True, True, True), (True, False, False), (False, True, False), (False, False, False)],
    )
    def test_truth_table(self, acknowledged, has_signature, expected):
        assert can_submit(acknowledged, has_signature) is expected


class TestTodayWindow:
    def test_local_day_and_utc_bounds(self):
        now = datetime(2026, 6, 30, 14, 30, tzinfo=timezone.utc)
        local_day, start, end = today_window(now, SYDNEY)
        assert local_day == date(2026, 7, 1)
        assert start == datetime(2026, 6, 30, 14, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 7, 1, 14, 0, tzinfo=timezone.utc)

    def test_daylight_saving_day(self):
        now = datetime(2026, 1, 15, 1, 0, tzinfo=timezone.utc)
        local_day, start, end = today_window(now, SYDNEY)
        assert local_day == date(2026, 1, 15)
        assert start == datetime(2026, 1, 14, 13, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(hours=24)

    def test_naive_now_is_utc(self):
        local_day, _, _ = today_window(datetime(2026, 6, 30, 14, 30), SYDNEY)
        assert local_day == date(2026, 7, 1)


class TestExtractSignature:
    def test_image_data_uri_is_kept_verbatim(self):
        value = _signature()
        assert extract_signature(_submission(signature_data=value)) == value

    def test_blank_image_counts_as_missing(self):
        blank = SignatureCanvas().export()
        assert extract_signature(_submission(signature_data=blank)) is None

    def test_non_image_value_rejected(self):
        with pytest.raises(HTTPException) as exc:
            extract_signature(_submission(signature_data="signed"))
        assert exc.value.status_code == 400

    def test_oversized_value_rejected(self):
        value = "data:image/png;base64," + "A" * (600 * 1024)
        with pytest.raises(HTTPException) as exc:
            extract_signature(_submission(signature_data=value))
        assert exc.value.status_code == 413

    def test_huge_pixel_dimensions_rejected(self):
        buf = io.BytesIO()
        Image.new("1", (9000, 9000), 1).save(buf, format="PNG")
        value = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()
        assert len(value) < 512 * 1024
        with pytest.raises(HTTPException) as exc:
            extract_signature(_submission(signature_data=value))
        assert exc.value.status_code == 413

    def test_decompression_bomb_rejected(self, monkeypatch):
        value = _signature()
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        with pytest.raises(HTTPException) as exc:
            extract_signature(_submission(signature_data=value))
        assert exc.value.status_code == 413
        assert exc.value.detail == "Signature image is too large"

    def test_strokes_are_rendered(self):
        value = extract_signature(
            SignatureSubmission(
                acknowledged=True,
                strokes=[[(110, 210), (300, 260)]],
                rect={"left": 100, "top": 200, "width": 200, "height": 60},
            )
        )
        assert value.startswith("data:image/png;base64,")

    def test_nothing_drawn(self):
        assert extract_signature(SignatureSubmission(acknowledged=True)) is None
        assert extract_signature(SignatureSubmission(acknowledged=True, strokes=[])) is None


class TestSignOnStatus:
    def test_signing_is_never_reported_by_the_server(self, db_session, project, person):
        before = ProjectSignOns.status(db_session, str(project.id), str(person.id))
        ProjectSignOns.sign_on(db_session, str(project.id), str(person.id), _submission())
        after = ProjectSignOns.status(db_session, str(project.id), str(person.id))
        assert [before.state, after.state] == [SignOnState.not_signed, SignOnState.signed]

    def test_signed_has_no_next_action(self):
        assert SignOnStatus(SignOnState.signed).next_action is None
        assert SignOnStatus(SignOnState.signing).next_action is None


class TestProjectSignOn:
    def test_status_not_signed(self, db_session, project, person):
        status = ProjectSignOns.status(db_session, str(project.id), str(person.id))
        assert status.state is SignOnState.not_signed
        assert status.next_action == "sign"
        assert status.signed_at is None

    def test_first_sign_on_enrolls_and_records(self, db_session, project, person):
        record, created = ProjectSignOns.sign_on(
            db_session, str(project.id), str(person.id), _submission()
        )
        assert created is True
        assert record.signature_data.startswith("data:image/png;base64,")
        enrollment = db_session.scalar(
            select(ProjectEnrollment).where(ProjectEnrollment.person_id == person.id)
        )
        assert enrollment.status == EnrollmentStatus.approved
        status = ProjectSignOns.status(db_session, str(project.id), str(person.id))
        assert status.state is SignOnState.signed
        assert status.record_id == record.id
        assert status.next_action is None

    def test_same_day_sign_on_is_idempotent(self, db_session, project, person):
        now = datetime(2026, 3, 1, 22, 0, tzinfo=timezone.utc)
        first, _ = ProjectSignOns.sign_on(
            db_session, str(project.id), str(person.id), _submission(), now=now
        )
        second, created = ProjectSignOns.sign_on(
            db_session,
            str(project.id),
            str(person.id),
            _submission(),
            now=now + timedelta(hours=3),
        )
        assert created is False
        assert second.id == first.id
        assert second.signed_at == first.signed_at
        assert _count(db_session, ProjectSignOn, person_id=person.id) == 1

    def test_next_local_day_signs_again(self, db_session, project, person):
        # 13:59 and 14:01 UTC straddle midnight in Sydney (AEST)
        before = datetime(2026, 6, 30, 13, 59, tzinfo=timezone.utc)
        after = datetime(2026, 6, 30, 14, 1, tzinfo=timezone.utc)
        ProjectSignOns.sign_on(
            db_session, str(project.id), str(person.id), _submission(), now=before
        )
        _, created = ProjectSignOns.sign_on(
            db_session, str(project.id), str(person.id), _submission(), now=after
        )
        assert created is True
        days = set(
            db_session.scalars(
                select(ProjectSignOn.signon_date).where(ProjectSignOn.person_id == person.id)
            ).all()
        )
        assert days == {date(2026, 6, 30), date(2026, 7, 1)}

    @pytest.mark.parametrize(
        "overrides",
        [
            {"acknowledged": False},
            {"signature_data": None},
            {"acknowledged": False, "signature_data": None},
        ],
    )
    def test_gate_blocks_before_any_write(self, db_session, project, person, overrides):
        with pytest.raises(HTTPException) as exc:
            ProjectSignOns.sign_on(
                db_session, str(project.id), str(person.id), _submission(**overrides)
            )
        assert exc.value.status_code == 400
        assert _count(db_session, ProjectSignOn) == 0
        assert _count(db_session, ProjectEnrollment) == 0

    def test_inactive_project_is_not_found(self, db_session, project, person):
        project.is_active = False
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            ProjectSignOns.sign_on(db_session, str(project.id), str(person.id), _submission())
        assert exc.value.status_code == 404
        with pytest.raises(HTTPException) as exc:
            ProjectSignOns.status(db_session, str(project.id), str(person.id))
        assert exc.value.status_code == 404

    def test_storage_failure_surfaces_message(self, db_session, project, person):
        failure = OperationalError("INSERT", {}, Exception("disk I/O error"))
        with patch(
            "siteportal.services.signon.Enrollments.ensure_enrolled", side_effect=failure
        ):
            with pytest.raises(HTTPException) as exc:
                ProjectSignOns.sign_on(
                    db_session, str(project.id), str(person.id), _submission()
                )
        assert exc.value.status_code == 503
        assert exc.value.detail["message"] == "Sign on failed"
        assert "disk I/O error" in exc.value.detail["details"]
        assert _count(db_session, ProjectSignOn) == 0

    def test_publishes_signon_event(self, db_session, project, person, published_events):
        ProjectSignOns.sign_on(db_session, str(project.id), str(person.id), _submission())
        types = [c.kwargs["event_type"] for c in published_events.call_args_list]
        assert types == ["enrollment.created", "signon.recorded"]

    def test_list_for_person_newest_first(self, db_session, project, person):
        day1 = datetime(2026, 6, 1, 0, 0, tzinfo=timezone.utc)
        day2 = datetime(2026, 6, 2, 0, 0, tzinfo=timezone.utc)
        ProjectSignOns.sign_on(db_session, str(project.id), str(person.id), _submission(), now=day1)
        ProjectSignOns.sign_on(db_session, str(project.id), str(person.id), _submission(), now=day2)
        rows = ProjectSignOns.list_for_person(db_session, str(person.id))
        assert [r.signon_date for r in rows] == [date(2026, 6, 2), date(2026, 6, 1)]


class TestDocumentSignatures:
    def test_assigned_signer_signs_once(self, db_session, site_document, person):
        _assign(db_session, site_document, person)
        status = DocumentSignatures.status(db_session, str(site_document.id), str(person.id))
        assert status.state is SignOnState.not_signed

        record, created = DocumentSignatures.sign(
            db_session, str(site_document.id), str(person.id), _submission()
        )
        assert created is True

        again, created_again = DocumentSignatures.sign(
            db_session, str(site_document.id), str(person.id), _submission()
        )
        assert created_again is False
        assert again.id == record.id
        assert again.signed_at == record.signed_at
        assert _count(db_session, DocumentSignature, document_id=site_document.id) == 1

        status = DocumentSignatures.status(db_session, str(site_document.id), str(person.id))
        assert status.state is SignOnState.signed
        assert status.signed_at == record.signed_at

    def test_signing_enrolls_on_document_project(self, db_session, site_document, person):
        _assign(db_session, site_document, person)
        DocumentSignatures.sign(db_session, str(site_document.id), str(person.id), _submission())
        assert _count(
            db_session, ProjectEnrollment, project_id=site_document.project_id
        ) == 1

    def test_unassigned_person_gets_not_found(self, db_session, site_document, person):
        with pytest.raises(HTTPException) as exc:
            DocumentSignatures.sign(
                db_session, str(site_document.id), str(person.id), _submission()
            )
        assert exc.value.status_code == 404
        with pytest.raises(HTTPException) as exc:
            DocumentSignatures.status(db_session, str(site_document.id), str(person.id))
        assert exc.value.status_code == 404

    def test_view_only_assignment_cannot_sign(self, db_session, site_document, person):
        _assign(db_session, site_document, person, can_sign=False)
        status = DocumentSignatures.status(db_session, str(site_document.id), str(person.id))
        assert status.state is SignOnState.not_signed
        assert status.can_sign is False
        assert status.next_action is None
        with pytest.raises(HTTPException) as exc:
            DocumentSignatures.sign(
                db_session, str(site_document.id), str(person.id), _submission()
            )
        assert exc.value.status_code == 404

    def test_signer_is_asked_to_sign(self, db_session, site_document, person):
        _assign(db_session, site_document, person)
        status = DocumentSignatures.status(db_session, str(site_document.id), str(person.id))
        assert status.can_sign is True
        assert status.next_action == "sign"

    def test_staff_may_sign_without_assignment(self, db_session, site_document, admin):
        _, created = DocumentSignatures.sign(
            db_session, str(site_document.id), str(admin.id), _submission()
        )
        assert created is True

    def test_document_without_signature_requirement(
        self, db_session, site_document, person
    ):
        site_document.requires_signature = False
        db_session.commit()
        _assign(db_session, site_document, person)
        status = DocumentSignatures.status(db_session, str(site_document.id), str(person.id))
        assert status.next_action is None
        with pytest.raises(HTTPException) as exc:
            DocumentSignatures.sign(
                db_session, str(site_document.id), str(person.id), _submission()
            )
        assert exc.value.status_code == 400

    def test_gate_requires_acknowledgement(self, db_session, site_document, person):
        _assign(db_session, site_document, person)
        with pytest.raises(HTTPException) as exc:
            DocumentSignatures.sign(
                db_session,
                str(site_document.id),
                str(person.id),
                _submission(acknowledged=False),
            )
        assert exc.value.status_code == 400
        assert _count(db_session, DocumentSignature) == 0

    def test_concurrent_duplicate_returns_first_row(
        self, db_session, site_document, person
    ):
        _assign(db_session, site_document, person)
        first, _ = DocumentSignatures.sign(
            db_session, str(site_document.id), str(person.id), _submission()
        )
        first_id = first.id
        with patch(
            "siteportal.services.signon._find_signature", side_effect=[first]
        ) as finder:
            record, created = DocumentSignatures.sign(
                db_session, str(site_document.id), str(person.id), _submission()
            )
        assert finder.call_count == 1
        assert created is False
        assert record.id == first_id

    def test_publishes_document_signed(
        self, db_session, site_document, person, published_events
    ):
        _assign(db_session, site_document, person)
        DocumentSignatures.sign(db_session, str(site_document.id), str(person.id), _submission())
        signed = [
            c.kwargs
            for c in published_events.call_args_list
            if c.kwargs["event_type"] == "document.signed"
        ]
        assert len(signed) == 1
        assert signed[0]["payload"]["title"] == site_document.title

    def test_my_documents_flags(self, db_session, project, site_document, person):
        other = SiteDocument(project_id=project.id, title="Site Induction")
        db_session.add(other)
        db_session.commit()
        _assign(db_session, site_document, person)
        _assign(db_session, other, person, can_sign=False)
        DocumentSignatures.sign(db_session, str(site_document.id), str(person.id), _submission())

        items = {
            item["document"].title: item
            for item in DocumentSignatures.my_documents(db_session, str(person.id))
        }
        assert items["Working at Heights SWMS"]["signed"] is True
        assert items["Working at Heights SWMS"]["signed_at"] is not None
        assert items["Site Induction"]["signed"] is False
        assert items["Site Induction"]["can_sign"] is False
        assert items["Site Induction"]["project_name"] == project.name
