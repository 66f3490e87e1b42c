"""Create the chart configuration table."""

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ChartConfigurationRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("chart_id", models.CharField(max_length=120, unique=True)),
                ("title", models.CharField(max_length=200)),
                (
                    "chart_type",
                    models.CharField(
                        choices=[
                            ("pie", "Pie"),
                            ("bar", "Bar"),
                            ("kpi", "KPI"),
                            ("value", "Value"),
                            ("text", "Text"),
                            ("image", "Image"),
                        ],
                        max_length=16,
                    ),
                ),
                ("order", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("payload", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Chart configuration",
                "verbose_name_plural": "Chart configurations",
                "ordering": ["order", "chart_id"],
            },
        ),
    ]
