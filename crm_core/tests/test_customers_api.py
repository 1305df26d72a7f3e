# crm_core/tests/test_customers_api.py

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from crm_core.models import Customer, CustomerActivity, CustomerFile, CustomerNote


def _pdf(name="offert.pdf", size=64):
    return SimpleUploadedFile(name, b"%PDF-1.4" + b"0" * size, content_type="application/pdf")


# ---------------------------------------------------------------
# List / retrieve
# ---------------------------------------------------------------

@pytest.mark.django_db
def test_customer_list_requires_auth(api_client):
    resp = api_client.get("/crm/customers/")
    assert resp.status_code == 401


@pytest.mark.django_db
def test_salesperson_lists_own_and_unassigned(api_client, salesperson, other_salesperson, customer_factory):
    customer_factory(name="Mine", assigned_to=salesperson)
    customer_factory(name="Open")
    theirs = customer_factory(name="Theirs", assigned_to=other_salesperson)
    api_client.force_authenticate(user=salesperson)

    resp = api_client.get("/crm/customers/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 2
    assert {c["name"] for c in body["results"]} == {"Mine", "Open"}

    assert api_client.get(f"/crm/customers/{theirs.id}/").status_code == 404


@pytest.mark.django_db
def test_customer_list_filters(api_client, internal_user, customer_factory):
    customer_factory(name="Anna Berg", status="sold", priority="high")
    customer_factory(name="Bo Ek", status="no_answer")
    customer_factory(name="Cia Berg", status="no_answer")
    api_client.force_authenticate(user=internal_user)

    by_status = api_client.get("/crm/customers/", {"status": "no_answer"}).json()
    assert {c["name"] for c in by_status["results"]} == {"Bo Ek", "Cia Berg"}

    by_search = api_client.get("/crm/customers/", {"search": "berg"}).json()
    assert by_search["count"] == 2

    by_priority = api_client.get("/crm/customers/", {"priority": "high"}).json()
    assert [c["name"] for c in by_priority["results"]] == ["Anna Berg"]


@pytest.mark.django_db
def test_customer_payload_shape(api_client, internal_user, salesperson, customer_factory):
    customer = customer_factory(status="meeting_booked", assigned_to=salesperson)
    api_client.force_authenticate(user=internal_user)

    body = api_client.get(f"/crm/customers/{customer.id}/").json()

    assert body["status"] == "meeting_booked"
    assert body["status_label"] == "Möte bokat"
    assert body["assigned_to"] == salesperson.id
    assert body["assigned_user"]["role"] == "salesperson"


# ---------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------

@pytest.mark.django_db
def test_salesperson_create_assigns_self_and_logs(api_client, salesperson):
    api_client.force_authenticate(user=salesperson)

    resp = api_client.post(
        "/crm/customers/",
        {
            "name": "Karin Lund",
            "phone": "070-555 55 55",
            "city": "Västerås",
            "needs_analysis": {"water_source": "well", "household_size": 4},
        },
        format="json",
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "not_handled"
    assert body["assigned_to"] == salesperson.id
    assert body["created_by"] == salesperson.id

    customer = Customer.objects.get(pk=body["id"])
    activity = CustomerActivity.objects.get(customer=customer)
    assert activity.title == "Customer created"
    assert activity.type == CustomerActivity.Type.CUSTOM


@pytest.mark.django_db
def test_phone_is_required(api_client, internal_user):
    api_client.force_authenticate(user=internal_user)
    resp = api_client.post("/crm/customers/", {"name": "No Phone", "phone": "  "}, format="json")
    assert resp.status_code == 400
    assert "phone" in resp.json()


@pytest.mark.django_db
def test_installer_cannot_create(api_client, installer):
    api_client.force_authenticate(user=installer)
    resp = api_client.post("/crm/customers/", {"name": "X", "phone": "1"}, format="json")
    assert resp.status_code == 403


@pytest.mark.django_db
def test_salesperson_cannot_assign_to_someone_else(api_client, salesperson, other_salesperson):
    api_client.force_authenticate(user=salesperson)
    resp = api_client.post(
        "/crm/customers/",
        {"name": "X", "phone": "1", "assigned_to": other_salesperson.id},
        format="json",
    )
    assert resp.status_code == 403


@pytest.mark.django_db
def test_internal_can_reassign_and_update_is_logged(api_client, internal_user, salesperson, customer_factory):
    customer = customer_factory()
    api_client.force_authenticate(user=internal_user)

    resp = api_client.patch(
        f"/crm/customers/{customer.id}/",
        {"assigned_to": salesperson.id, "priority": "high"},
        format="json",
    )

    assert resp.status_code == 200
    customer.refresh_from_db()
    assert customer.assigned_to_id == salesperson.id
    activity = CustomerActivity.objects.get(customer=customer)
    assert activity.metadata["fields"] == ["assigned_to", "priority"]


@pytest.mark.django_db
def test_only_internal_and_admin_delete(api_client, salesperson, admin_user, customer_factory):
    customer = customer_factory(assigned_to=salesperson)

    api_client.force_authenticate(user=salesperson)
    assert api_client.delete(f"/crm/customers/{customer.id}/").status_code == 403

    api_client.force_authenticate(user=admin_user)
    assert api_client.delete(f"/crm/customers/{customer.id}/").status_code == 204
    assert not Customer.objects.filter(pk=customer.pk).exists()


# ---------------------------------------------------------------
# Activities
# ---------------------------------------------------------------

@pytest.mark.django_db
def test_manual_activity_and_timeline(api_client, salesperson, customer_factory):
    customer = customer_factory(assigned_to=salesperson)
    api_client.force_authenticate(user=salesperson)
    url = f"/crm/customers/{customer.id}/activities/"

    resp = api_client.post(url, {"type": "call_made", "title": "Ringde kund"}, format="json")
    assert resp.status_code == 201
    assert resp.json()["performed_by_user"] == salesperson.id

    resp = api_client.post(url, {"type": "status_change", "title": "Fake"}, format="json")
    assert resp.status_code == 400

    timeline = api_client.get(url).json()
    assert [a["title"] for a in timeline["results"]] == ["Ringde kund"]


# ---------------------------------------------------------------
# Notes
# ---------------------------------------------------------------

@pytest.mark.django_db
def test_note_logs_activity_and_private_notes_are_hidden(
    api_client, salesperson, internal_user, customer_factory
):
    customer = customer_factory(assigned_to=salesperson)
    url = f"/crm/customers/{customer.id}/notes/"

    api_client.force_authenticate(user=internal_user)
    resp = api_client.post(url, {"content": "Intern kommentar", "is_private": True}, format="json")
    assert resp.status_code == 201
    assert resp.json()["author"] == "Ivar"
    api_client.post(url, {"content": "Kunden vill ha offert"}, format="json")

    assert CustomerActivity.objects.filter(customer=customer, type="note_added").count() == 2

    api_client.force_authenticate(user=salesperson)
    notes = api_client.get(url).json()["results"]
    assert [n["content"] for n in notes] == ["Kunden vill ha offert"]

    api_client.force_authenticate(user=internal_user)
    assert api_client.get(url).json()["count"] == 2


@pytest.mark.django_db
def test_empty_note_rejected(api_client, internal_user, customer_factory):
    customer = customer_factory()
    api_client.force_authenticate(user=internal_user)
    resp = api_client.post(f"/crm/customers/{customer.id}/notes/", {"content": "   "}, format="json")
    assert resp.status_code == 400
    assert not CustomerNote.objects.exists()


# ---------------------------------------------------------------
# Files
# ---------------------------------------------------------------

@pytest.mark.django_db
def test_file_upload_download_delete(api_client, salesperson, customer_factory):
    customer = customer_factory(assigned_to=salesperson)
    api_client.force_authenticate(user=salesperson)
    url = f"/crm/customers/{customer.id}/files/"

    resp = api_client.post(url, {"file": _pdf(), "category": "contract"}, format="multipart")
    assert resp.status_code == 201
    body = resp.json()
    assert body["original_name"] == "offert.pdf"
    assert body["content_type"] == "application/pdf"
    assert body["category"] == "contract"

    file_id = body["id"]
    resp = api_client.get(f"{url}{file_id}/download/")
    assert resp.status_code == 200
    assert b"".join(resp.streaming_content).startswith(b"%PDF")
    resp.close()

    assert api_client.get(url).json()["count"] == 1

    resp = api_client.delete(f"{url}{file_id}/")
    assert resp.status_code == 204
    assert not CustomerFile.objects.exists()

    types = list(
        CustomerActivity.objects.filter(customer=customer).order_by("id").values_list("type", flat=True)
    )
    assert types == ["file_upload", "file_download", "file_delete"]


@pytest.mark.django_db
def test_file_type_and_count_limits(api_client, internal_user, customer_factory, settings):
    settings.CRM_MAX_FILES_PER_CUSTOMER = 1
    customer = customer_factory()
    api_client.force_authenticate(user=internal_user)
    url = f"/crm/customers/{customer.id}/files/"

    exe = SimpleUploadedFile("virus.exe", b"MZ", content_type="application/x-msdownload")
    assert api_client.post(url, {"file": exe}, format="multipart").status_code == 400

    assert api_client.post(url, {"file": _pdf()}, format="multipart").status_code == 201
    resp = api_client.post(url, {"file": _pdf("second.pdf")}, format="multipart")
    assert resp.status_code == 400
    assert "at most 1" in str(resp.json()["file"])


@pytest.mark.django_db
def test_oversized_file_rejected(api_client, internal_user, customer_factory, settings):
    settings.CRM_MAX_FILE_SIZE = 10
    customer = customer_factory()
    api_client.force_authenticate(user=internal_user)

    resp = api_client.post(f"/crm/customers/{customer.id}/files/", {"file": _pdf()}, format="multipart")

    assert resp.status_code == 400
    assert "too large" in str(resp.json()["file"])


@pytest.mark.django_db
def test_only_uploader_or_staff_delete_files(
    api_client, salesperson, internal_user, installer, customer_factory
):
    customer = customer_factory(status="ready_for_installation", assigned_to=salesperson)
    api_client.force_authenticate(user=internal_user)
    file_id = api_client.post(
        f"/crm/customers/{customer.id}/files/", {"file": _pdf()}, format="multipart"
    ).json()["id"]

    api_client.force_authenticate(user=installer)
    resp = api_client.delete(f"/crm/customers/{customer.id}/files/{file_id}/")
    assert resp.status_code == 403
    assert CustomerFile.objects.filter(pk=file_id).exists()
