# Generated manually
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('clients', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Diamond',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entry_date', models.DateField(default=django.utils.timezone.localdate)),
                ('kapan_id', models.CharField(help_text='Free-text lot identifier of the kapan (parcel)', max_length=100)),
                ('number_of_diamonds', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('weight_in_karats', models.DecimalField(decimal_places=3, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.001'))])),
                ('market_rate', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('category', models.CharField(choices=[('4P Plus', '4P Plus'), ('4P Minus', '4P Minus')], editable=False, max_length=20)),
                ('raw_damage_weight', models.DecimalField(blank=True, decimal_places=3, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('total_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), editable=False, max_digits=14)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='diamonds', to='clients.client')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='diamonds', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'diamonds',
                'ordering': ['-entry_date', '-id'],
                'indexes': [
                    models.Index(fields=['client', 'entry_date'], name='idx_diamond_client_date'),
                    models.Index(fields=['kapan_id'], name='idx_diamond_kapan'),
                    models.Index(fields=['category'], name='idx_diamond_category'),
                ],
            },
        ),
    ]
