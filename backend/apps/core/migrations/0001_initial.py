from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ProcessedWebhook",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("source", models.CharField(help_text="Webhook provider, e.g. 'stripe'", max_length=50)),
                ("event_id", models.CharField(help_text="Provider event ID, e.g. 'evt_xxx'", max_length=255)),
                ("processed_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-processed_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="processedwebhook",
            constraint=models.UniqueConstraint(fields=("source", "event_id"), name="unique_processed_webhook"),
        ),
    ]
