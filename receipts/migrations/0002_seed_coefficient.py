from django.db import migrations

DEFAULT_COEFFICIENT = "2.3"


def seed_coefficient(apps, schema_editor):
    Setting = apps.get_model("receipts", "Setting")
    Setting.objects.get_or_create(key="coefficient", defaults={"value": DEFAULT_COEFFICIENT})


class Migration(migrations.Migration):

    dependencies = [
        ("receipts", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_coefficient, migrations.RunPython.noop),
    ]
