import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="RelationTuple",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("subject_type", models.CharField(max_length=50)),
                ("subject_id", models.CharField(max_length=128)),
                ("relation", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=50)),
                ("object_id", models.CharField(max_length=128)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["subject_type", "subject_id", "relation"], name="rebac_subject_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("object_type", "object_id", "relation", "subject_type", "subject_id"),
                        name="rebac_tuple_unique",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("relation", "owner")),
                        fields=("object_type", "object_id"),
                        name="rebac_single_owner",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuthorizationModel",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("digest", models.CharField(max_length=64, unique=True)),
                ("schema_version", models.CharField(max_length=10)),
                ("document", models.JSONField()),
                ("is_active", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="FirstAdminClaim",
            fields=[
                ("key", models.CharField(default="first_admin", max_length=20, primary_key=True, serialize=False)),
                ("claimed_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
        ),
    ]
