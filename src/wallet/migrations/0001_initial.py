import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import wallet.models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WalletPass",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "serial_number",
                    models.CharField(
                        default=wallet.models.generate_serial_number,
                        help_text="Serial number unique across all passes.",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "pass_type_id",
                    models.CharField(
                        db_index=True,
                        default=wallet.models.default_pass_type_id,
                        help_text="Pass Type ID the pass was issued under.",
                        max_length=255,
                    ),
                ),
                (
                    "auth_token",
                    models.CharField(
                        default=wallet.models.generate_auth_token,
                        editable=False,
                        help_text="Shared secret the wallet app sends with every request for this pass.",
                        max_length=64,
                    ),
                ),
                (
                    "marker",
                    models.BigIntegerField(
                        db_index=True, default=0, help_text="Freshness marker, bumped on every content change."
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        blank=True, default=dict, help_text="Pass content handed to the artifact builder."
                    ),
                ),
                ("is_voided", models.BooleanField(db_index=True, default=False)),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="wallet_passes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet Pass",
                "verbose_name_plural": "Wallet Passes",
                "indexes": [models.Index(fields=["owner", "pass_type_id"], name="wallet_pass_owner_type_idx")],
            },
        ),
        migrations.CreateModel(
            name="WalletPassRegistration",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "device_library_id",
                    models.CharField(
                        db_index=True,
                        help_text="Unique identifier provided by the wallet app for this device.",
                        max_length=255,
                    ),
                ),
                (
                    "push_token",
                    models.CharField(
                        db_index=True,
                        help_text="Token used to send push notifications to this device.",
                        max_length=255,
                    ),
                ),
                (
                    "wallet_pass",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to="wallet.walletpass",
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet Pass Registration",
                "verbose_name_plural": "Wallet Pass Registrations",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("device_library_id", "wallet_pass"), name="unique_device_pass_registration"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletPassUpdateLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("device_library_id", models.CharField(blank=True, default="", max_length=255)),
                (
                    "update_type",
                    models.CharField(
                        choices=[
                            ("issued", "Pass Issued"),
                            ("touched", "Pass Content Changed"),
                            ("fetched", "Pass Fetched by Device"),
                            ("push_sent", "Push Notification Sent"),
                            ("push_failed", "Push Notification Failed"),
                            ("registered", "Device Registered"),
                            ("unregistered", "Device Unregistered"),
                            ("pruned", "Registration Pruned"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                (
                    "details",
                    models.JSONField(blank=True, default=dict, help_text="Additional details about the update event."),
                ),
                (
                    "wallet_pass",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="update_logs",
                        to="wallet.walletpass",
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet Pass Update Log",
                "verbose_name_plural": "Wallet Pass Update Logs",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["wallet_pass", "-created_at"], name="wallet_log_pass_created_idx"),
                    models.Index(fields=["update_type", "-created_at"], name="wallet_log_type_created_idx"),
                ],
            },
        ),
    ]
