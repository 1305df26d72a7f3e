# crm_core/tests/test_write_guardrails.py

from django.contrib.auth.models import User
from django.core.exceptions import PermissionDenied
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from crm_core.models import Customer, CustomerActivity, UserProfile


class WriteGuardrailTests(TestCase):
    """
    Customer status is server-controlled: it only changes through the
    move endpoint. Activity entries are write-once.
    """

    def setUp(self):
        self.client = APIClient()

        self.user = User.objects.create_user(
            username="ivar",
            password="pass",
        )
        UserProfile.objects.create(user=self.user, role="internal")
        self.client.force_authenticate(user=self.user)

        self.other = User.objects.create_user(username="sven", password="pass")
        UserProfile.objects.create(user=self.other, role="salesperson")

        self.customer = Customer.objects.create(
            name="Kund AB",
            phone="070-000 00 00",
        )

    # ---------------------------------------------------------
    # MODEL GUARDRAILS
    # ---------------------------------------------------------
    def test_direct_status_save_is_blocked(self):
        self.customer.status = "sold"

        with self.assertRaises(PermissionDenied):
            self.customer.save()

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.status, "not_handled")

    def test_bypass_allows_repair_scripts(self):
        self.customer.status = "archived"
        self.customer.save(_workflow_bypass=True)

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.status, "archived")

    def test_other_fields_save_normally(self):
        self.customer.city = "Uppsala"
        self.customer.save()

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.city, "Uppsala")

    def test_activities_are_append_only(self):
        activity = CustomerActivity.objects.create(
            customer=self.customer,
            type=CustomerActivity.Type.CALL_MADE,
            title="Called",
            performed_by="Ivar",
        )

        activity.title = "Edited"
        with self.assertRaises(PermissionDenied):
            activity.save()
        with self.assertRaises(PermissionDenied):
            activity.delete()

    def test_activities_are_removed_with_their_customer(self):
        CustomerActivity.objects.create(
            customer=self.customer,
            type=CustomerActivity.Type.CUSTOM,
            title="Created",
            performed_by="Ivar",
        )

        self.customer.delete()

        self.assertFalse(CustomerActivity.objects.exists())

    # ---------------------------------------------------------
    # API GUARDRAILS
    # ---------------------------------------------------------
    def test_status_cannot_be_patched_through_crud(self):
        resp = self.client.patch(
            f"/crm/customers/{self.customer.id}/",
            {"status": "sold"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", resp.data)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.status, "not_handled")

    def test_status_cannot_be_set_on_create(self):
        resp = self.client.post(
            "/crm/customers/",
            {"name": "Ny Kund", "phone": "070-111 11 11", "status": "sold"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", resp.data)
        self.assertFalse(Customer.objects.filter(name="Ny Kund").exists())

    def test_created_by_is_server_controlled(self):
        resp = self.client.post(
            "/crm/customers/",
            {"name": "Ny Kund", "phone": "070-111 11 11", "created_by": self.other.id},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["created_by"], self.user.id)

    def test_salesperson_cannot_reassign(self):
        self.client.force_authenticate(user=self.other)
        Customer.objects.filter(pk=self.customer.pk).update(assigned_to=self.other)

        resp = self.client.patch(
            f"/crm/customers/{self.customer.id}/",
            {"assigned_to": self.user.id},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.assigned_to_id, self.other.id)
