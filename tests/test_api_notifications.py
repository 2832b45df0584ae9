import uuid

import pytest

from siteportal.models.site import AdminNotification


@pytest.fixture()
def notifications_batch(db_session, admin):
    items = []
    for i in range(3):
        n = AdminNotification(
            person_id=admin.id,
            type="new_enrollment",
            title="New project enrollment",
            message=f"Person {i} enrolled in Harbour Bridge Works",
            related_id=str(uuid.uuid4()),
        )
        db_session.add(n)
        items.append(n)
    db_session.commit()
    for n in items:
        db_session.refresh(n)
    return items


class TestAdminNotificationEndpoints:
    def test_get(self, client, admin_headers, notifications_batch) -> None:
        target = notifications_batch[0]
        resp = client.get(f"/admin-notifications/{target.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == target.message

    def test_get_not_found(self, client, admin_headers) -> None:
        resp = client.get(f"/admin-notifications/{uuid.uuid4()}", headers=admin_headers)
        assert resp.status_code == 404

    def test_other_staff_cannot_read(
        self, client, make_person, notifications_batch
    ) -> None:
        from siteportal.services.auth import auth_service

        manager = make_person("Morgan Yu", roles=("manager",))
        headers = {
            "Authorization": f"Bearer {auth_service.create_access_token(manager.id)}"
        }
        resp = client.get(
            f"/admin-notifications/{notifications_batch[0].id}", headers=headers
        )
        assert resp.status_code == 404

    def test_list(self, client, admin_headers, notifications_batch) -> None:
        resp = client.get("/admin-notifications", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["count"] == 3

    def test_unread_count_and_mark_read(
        self, client, admin_headers, notifications_batch
    ) -> None:
        resp = client.get("/admin-notifications/unread-count", headers=admin_headers)
        assert resp.json() == {"count": 3}

        resp = client.post(
            "/admin-notifications/mark-read",
            json={"notification_ids": [str(notifications_batch[0].id)]},
            headers=admin_headers,
        )
        assert resp.json() == {"marked": 1}

        unread = client.get(
            "/admin-notifications?is_read=false", headers=admin_headers
        ).json()
        assert unread["count"] == 2

        resp = client.post("/admin-notifications/mark-all-read", headers=admin_headers)
        assert resp.json() == {"marked": 2}
        resp = client.get("/admin-notifications/unread-count", headers=admin_headers)
        assert resp.json() == {"count": 0}

    def test_non_staff_forbidden(self, client, auth_headers) -> None:
        resp = client.get("/admin-notifications", headers=auth_headers)
        assert resp.status_code == 403
