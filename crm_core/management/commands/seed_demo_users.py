# crm_core/management/commands/seed_demo_users.py

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from crm_core.models import UserProfile
from crm_core.workflows import ROLES


DEMO_USERS = {
    "salesperson": ("saljare", "Sara", "Säljare"),
    "internal": ("intern", "Ivar", "Intern"),
    "installer": ("montor", "Mona", "Montör"),
    "admin": ("admin", "Adam", "Admin"),
}


class Command(BaseCommand):
    help = "Create (or update) one demo user per CRM role"

    def add_arguments(self, parser):
        parser.add_argument("--password", default="demo1234", help="Password for every demo user")
        parser.add_argument(
            "--domain",
            default="vattenmiljo.example",
            help="E-mail domain for the demo addresses",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        password = options["password"]
        if len(password) < 8:
            raise CommandError("Password must be at least 8 characters.")

        User = get_user_model()

        for role in ROLES:
            username, first, last = DEMO_USERS[role]
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "first_name": first,
                    "last_name": last,
                    "email": f"{username}@{options['domain']}",
                    "is_staff": role == "admin",
                },
            )
            user.set_password(password)
            user.save()

            UserProfile.objects.update_or_create(user=user, defaults={"role": role})

            verb = "Created" if created else "Updated"
            self.stdout.write(f"[OK] {verb} {username} ({role})")

        self.stdout.write(self.style.SUCCESS("Demo users ready."))
