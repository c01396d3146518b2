from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity_change', models.IntegerField(help_text='Applied delta (+/-)')),
                ('movement_type', models.CharField(choices=[('ORDER', 'Outbound (Order)'), ('ADJUST', 'Manual Adjustment')], max_length=20)),
                ('reference', models.CharField(db_index=True, help_text='Order ID or adjustment note', max_length=100)),
                ('balance_after', models.IntegerField(help_text='Stock right after the change')),
                ('performed_by', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stock_movements', to='catalog.product')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
