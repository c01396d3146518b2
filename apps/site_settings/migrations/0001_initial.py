from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='SiteSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_ecommerce_active', models.BooleanField(default=False, help_text='When off, the storefront sends buyers to WhatsApp instead of checkout')),
                ('whatsapp_number', models.CharField(default='917822832788', max_length=32)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Site settings',
                'verbose_name_plural': 'Site settings',
                'db_table': 'site_settings',
            },
        ),
    ]
