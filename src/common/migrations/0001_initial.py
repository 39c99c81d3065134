import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SiteSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("live_emails", models.BooleanField(default=False, help_text="Live-emails enabled")),
                ("frontend_base_url", models.URLField(default="http://localhost:3000")),
                (
                    "internal_catchall_email",
                    models.EmailField(
                        default="internal@example.com",
                        help_text="The catchall email address for internal use.",
                        max_length=254,
                        verbose_name="Internal Catchall Email",
                    ),
                ),
            ],
            options={
                "verbose_name": "Common Settings",
                "verbose_name_plural": "Common Settings",
            },
        ),
        migrations.CreateModel(
            name="EmailLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("to", models.EmailField(db_index=True, max_length=254)),
                ("subject", models.TextField(db_index=True)),
                ("sent_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("attachment_names", models.JSONField(blank=True, default=list)),
                ("compressed_body", models.BinaryField(blank=True, null=True)),
                ("compressed_html", models.BinaryField(blank=True, null=True)),
            ],
            options={
                "indexes": [models.Index(fields=["to", "sent_at"], name="ix_emaillog_to_sentat")],
            },
        ),
    ]
