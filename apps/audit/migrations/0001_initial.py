import apps.audit.models
import django.core.serializers.json
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
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "entry_code",
                    models.CharField(
                        default=apps.audit.models.new_entry_code, editable=False, max_length=64, unique=True
                    ),
                ),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("CREATE", "Create"),
                            ("UPDATE", "Update"),
                            ("DELETE", "Delete"),
                            ("LOGIN", "Login"),
                            ("LOGOUT", "Logout"),
                            ("CHANGE_PASSWORD", "Change password"),
                        ],
                        max_length=32,
                    ),
                ),
                (
                    "collection",
                    models.CharField(
                        choices=[
                            ("USERS", "Users"),
                            ("COUNTRIES", "Countries"),
                            ("STATES", "States"),
                            ("CITIES", "Cities"),
                        ],
                        max_length=32,
                    ),
                ),
                ("entity_code", models.CharField(max_length=80)),
                ("changes", models.CharField(max_length=255)),
                (
                    "before",
                    models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True),
                ),
                (
                    "after",
                    models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True),
                ),
                ("actor_name", models.CharField(blank=True, max_length=255)),
                ("recorded_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="audit_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-recorded_at", "-id"],
                "indexes": [
                    models.Index(fields=["action", "recorded_at"], name="audit_action_recorded_idx"),
                    models.Index(fields=["collection", "entity_code"], name="audit_entity_lookup_idx"),
                ],
            },
        ),
    ]
