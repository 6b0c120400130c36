from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="RoadSection",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("slug", models.SlugField(max_length=80, unique=True)),
                ("name", models.CharField(max_length=150)),
                ("length_m", models.FloatField(default=0, help_text="Design length in metres.")),
                ("start_pk", models.FloatField(default=0, help_text="Start chainage in metres.")),
                ("end_pk", models.FloatField(default=0, help_text="End chainage in metres.")),
            ],
            options={
                "verbose_name": "Road section",
                "verbose_name_plural": "Road sections",
                "ordering": ["slug"],
            },
        ),
        migrations.CreateModel(
            name="PhaseDefinition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120, unique=True)),
                (
                    "measure",
                    models.CharField(
                        choices=[("LINEAR", "Linear"), ("POINT", "Point")], default="LINEAR", max_length=10
                    ),
                ),
                ("default_layers", models.JSONField(blank=True, default=list)),
                ("default_checks", models.JSONField(blank=True, default=list)),
                (
                    "workflow_key",
                    models.CharField(
                        blank=True,
                        help_text="Workflow template id; leave blank to match the template by phase name.",
                        max_length=60,
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Phase",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120)),
                (
                    "measure",
                    models.CharField(
                        choices=[("LINEAR", "Linear"), ("POINT", "Point")], default="LINEAR", max_length=10
                    ),
                ),
                (
                    "point_has_sides",
                    models.BooleanField(
                        default=False,
                        help_text="Each point carries its own side instead of being side-neutral.",
                    ),
                ),
                ("layers", models.JSONField(blank=True, default=list)),
                ("checks", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "definition",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="phases",
                        to="roadworks.phasedefinition",
                    ),
                ),
                (
                    "road",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="phases",
                        to="roadworks.roadsection",
                    ),
                ),
            ],
            options={
                "ordering": ["road", "id"],
            },
        ),
        migrations.AddConstraint(
            model_name="phase",
            constraint=models.UniqueConstraint(fields=("road", "definition"), name="unique_phase_per_road"),
        ),
        migrations.CreateModel(
            name="PhaseInterval",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("start_pk", models.FloatField()),
                ("end_pk", models.FloatField()),
                (
                    "side",
                    models.CharField(
                        choices=[("LEFT", "Left"), ("RIGHT", "Right"), ("BOTH", "Both")], default="BOTH", max_length=5
                    ),
                ),
                ("spec", models.CharField(blank=True, max_length=120, null=True)),
                ("bill_quantity", models.FloatField(blank=True, null=True)),
                ("layers", models.JSONField(blank=True, default=list)),
                (
                    "phase",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="intervals",
                        to="roadworks.phase",
                    ),
                ),
            ],
            options={
                "ordering": ["phase", "start_pk", "end_pk"],
            },
        ),
        migrations.CreateModel(
            name="InspectionEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "side",
                    models.CharField(
                        choices=[("LEFT", "Left"), ("RIGHT", "Right"), ("BOTH", "Both")], default="BOTH", max_length=5
                    ),
                ),
                ("start_pk", models.FloatField()),
                ("end_pk", models.FloatField()),
                ("layer_name", models.CharField(max_length=120)),
                ("check_name", models.CharField(max_length=120)),
                ("types", models.JSONField(blank=True, default=list)),
                ("remark", models.TextField(blank=True, null=True)),
                ("appointment_date", models.DateField(blank=True, null=True)),
                ("submission_number", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("SCHEDULED", "Scheduled"),
                            ("SUBMITTED", "Submitted"),
                            ("IN_PROGRESS", "In progress"),
                            ("APPROVED", "Approved"),
                        ],
                        default="SCHEDULED",
                        max_length=12,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "phase",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inspection_entries",
                        to="roadworks.phase",
                    ),
                ),
                (
                    "road",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inspection_entries",
                        to="roadworks.roadsection",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Inspection entries",
                "ordering": ["-updated_at", "-id"],
                "indexes": [
                    models.Index(fields=["phase", "start_pk", "end_pk"], name="roadworks_i_phase_i_5f0c1d_idx"),
                    models.Index(fields=["road", "-updated_at"], name="roadworks_i_road_id_8a2b7e_idx"),
                ],
            },
        ),
    ]
