"""
Management command to set up Stripe products and prices.

Run once per environment to create a monthly price for each paid tier.
Usage: python manage.py setup_stripe
"""

from django.core.management.base import BaseCommand, CommandError

from apps.billing.stripe_client import get_stripe
from apps.billing.tiers import PURCHASABLE_TIERS, SUBSCRIPTION_TIERS, format_price
from config.settings.base import settings

APP_METADATA = "familydraft"


class Command(BaseCommand):
    help = "Set up Stripe products and monthly prices for the basic and pro tiers"

    def add_arguments(self, parser):
        parser.add_argument(
            "--currency",
            type=str,
            default="usd",
            help="Currency code (default: usd)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Create new products/prices even if they exist",
        )

    def handle(self, *args, **options):
        if not settings.STRIPE_SECRET_KEY:
            raise CommandError("STRIPE_SECRET_KEY not set. Add it to your .env file first.")

        stripe = get_stripe()
        currency = options["currency"]
        env_lines = []

        for tier in PURCHASABLE_TIERS:
            config = SUBSCRIPTION_TIERS[tier]
            self.stdout.write(f"Setting up {config.name}: {format_price(config.price_cents)}/month")

            existing_product = None
            existing_price = None

            if not options["force"]:
                products = stripe.Product.search(
                    query=f"metadata['app']:'{APP_METADATA}' AND metadata['tier']:'{tier}' AND active:'true'"
                )
                if products.data:
                    existing_product = products.data[0]
                    self.stdout.write(
                        self.style.WARNING(f"Found existing product: {existing_product.id}")
                    )

                    prices = stripe.Price.list(
                        product=existing_product.id,
                        active=True,
                        type="recurring",
                    )
                    if prices.data:
                        existing_price = prices.data[0]
                        self.stdout.write(
                            self.style.WARNING(f"Found existing price: {existing_price.id}")
                        )

            if existing_price:
                env_lines.append(f"{config.price_setting}={existing_price.id}")
                continue

            if existing_product:
                product = existing_product
            else:
                product = stripe.Product.create(
                    name=f"FamilyDraft {config.name}",
                    description="; ".join(config.features),
                    metadata={"app": APP_METADATA, "tier": tier},
                )
                self.stdout.write(f"Created product: {product.id}")

            price = stripe.Price.create(
                product=product.id,
                unit_amount=config.price_cents,
                currency=currency,
                recurring={"interval": "month"},
                metadata={"app": APP_METADATA, "tier": tier},
            )
            self.stdout.write(f"Created price: {price.id}")
            env_lines.append(f"{config.price_setting}={price.id}")

        self.stdout.write(
            self.style.SUCCESS("\nStripe setup complete!\nAdd this to your .env:\n\n" + "\n".join(env_lines) + "\n")
        )

        self.stdout.write(
            self.style.NOTICE(
                "\nDon't forget to set up your webhook endpoint:\n"
                "   Stripe Dashboard -> Developers -> Webhooks\n"
                "   URL: https://your-domain.com/webhooks/stripe/\n"
                "   Events: checkout.session.completed, customer.subscription.updated,\n"
                "           customer.subscription.deleted, invoice.payment_succeeded,\n"
                "           invoice.payment_failed\n"
            )
        )
