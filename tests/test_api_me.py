from siteportal.models.site import DocumentAssignment, SiteDocument
from siteportal.services.signature_canvas import SignatureCanvas


def _sign_body():
    return {
        "acknowledged": True,
        "signature_data": SignatureCanvas.from_strokes([[(5, 5), (90, 40)]]).export(),
    }


class TestMeApi:
    def test_requires_session(self, client):
        assert client.get("/me/documents").status_code == 401

    def test_documents_and_pending_filter(
        self, client, db_session, project, site_document, person, auth_headers
    ):
        induction = SiteDocument(project_id=project.id, title="Site Induction")
        db_session.add(induction)
        db_session.flush()
        db_session.add_all(
            [
                DocumentAssignment(
                    document_id=site_document.id, person_id=person.id, can_sign=True
                ),
                DocumentAssignment(
                    document_id=induction.id, person_id=person.id, can_sign=True
                ),
            ]
        )
        db_session.commit()

        client.post(
            f"/document-sign?doc={site_document.id}", json=_sign_body(), headers=auth_headers
        )

        items = client.get("/me/documents", headers=auth_headers).json()
        by_title = {item["document"]["title"]: item for item in items}
        assert by_title["Working at Heights SWMS"]["signed"] is True
        assert by_title["Site Induction"]["signed"] is False
        assert by_title["Site Induction"]["project_name"] == "Harbour Bridge Works"

        pending = client.get("/me/documents?pending_only=true", headers=auth_headers).json()
        assert [item["document"]["title"] for item in pending] == ["Site Induction"]

        signatures = client.get("/me/signatures", headers=auth_headers).json()
        assert [s["document_id"] for s in signatures] == [str(site_document.id)]

    def test_signons(self, client, project, auth_headers):
        client.post(f"/project-sign?project={project.id}", json=_sign_body(), headers=auth_headers)
        signons = client.get("/me/signons", headers=auth_headers).json()
        assert len(signons) == 1
        assert signons[0]["project_id"] == str(project.id)
