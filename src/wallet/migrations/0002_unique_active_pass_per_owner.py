from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("wallet", "0001_initial"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="walletpass",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_voided", False)),
                fields=("owner", "pass_type_id"),
                name="unique_active_pass_per_owner",
            ),
        ),
    ]
