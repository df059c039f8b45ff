from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="sale",
            name="lead_source",
            field=models.CharField(
                blank=True,
                choices=[
                    ("MANUAL", "Saisie manuelle"),
                    ("WALK_IN", "Visite en concession"),
                    ("PHONE", "Telephone"),
                    ("WHATSAPP", "WhatsApp"),
                    ("FACEBOOK", "Facebook"),
                    ("INSTAGRAM", "Instagram"),
                    ("GOOGLE", "Google"),
                    ("WEBSITE", "Site web"),
                    ("REFERRAL", "Recommandation"),
                    ("MARKETPLACE", "Site d'annonces"),
                ],
                default="",
                max_length=20,
                verbose_name="origine du prospect",
            ),
        ),
    ]
