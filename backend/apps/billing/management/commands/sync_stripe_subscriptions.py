"""
Management command to reconcile subscription state with Stripe.

Use after a webhook outage: pulls each organization's subscription from
Stripe and overwrites the local tier and status.
Usage: python manage.py sync_stripe_subscriptions [--organization ID] [--dry-run]
"""

from django.core.management.base import BaseCommand, CommandError
from stripe import StripeError

from apps.billing.services import sync_subscription_from_stripe
from apps.organizations.models import Organization


class Command(BaseCommand):
    help = "Sync organization subscription tier and status from Stripe"

    def add_arguments(self, parser):
        parser.add_argument(
            "--organization",
            type=int,
            default=None,
            help="Only sync this organization ID",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List organizations that would be synced without calling Stripe",
        )

    def handle(self, *args, **options):
        orgs = Organization.objects.exclude(stripe_subscription_id__isnull=True).exclude(
            stripe_subscription_id=""
        )
        if options["organization"] is not None:
            orgs = orgs.filter(id=options["organization"])
            if not orgs.exists():
                raise CommandError(
                    f"Organization {options['organization']} not found or has no subscription"
                )

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING("DRY RUN - no changes will be made"))
            for org in orgs:
                self.stdout.write(f"Would sync {org.id} ({org.stripe_subscription_id})")
            return

        synced = 0
        failed = 0
        for org in orgs.iterator():
            try:
                is_active = sync_subscription_from_stripe(org)
            except StripeError as e:
                failed += 1
                self.stderr.write(f"Failed to sync {org.id}: {e}")
                continue

            synced += 1
            self.stdout.write(
                f"Synced {org.id}: {org.subscription_tier}/{org.subscription_status}"
                + ("" if is_active else " (inactive)")
            )

        style = self.style.SUCCESS if not failed else self.style.WARNING
        self.stdout.write(style(f"Synced {synced} organization(s), {failed} failed"))
