# Generated manually
from decimal import Decimal
from django.db import migrations, models


def copy_lot_details(apps, schema_editor):
    InvoiceItem = apps.get_model('invoices', 'InvoiceItem')
    for item in InvoiceItem.objects.select_related('diamond'):
        item.weight_in_karats = item.diamond.weight_in_karats
        item.raw_damage_weight = item.diamond.raw_damage_weight
        item.category = item.diamond.category
        item.save(update_fields=['weight_in_karats', 'raw_damage_weight', 'category'])


class Migration(migrations.Migration):

    dependencies = [
        ('invoices', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='invoiceitem',
            name='weight_in_karats',
            field=models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=10),
            preserve_default=False,
        ),
        migrations.AddField(
            model_name='invoiceitem',
            name='raw_damage_weight',
            field=models.DecimalField(blank=True, decimal_places=3, max_digits=10, null=True),
        ),
        migrations.AddField(
            model_name='invoiceitem',
            name='category',
            field=models.CharField(choices=[('4P Plus', '4P Plus'), ('4P Minus', '4P Minus')], default='', max_length=20),
            preserve_default=False,
        ),
        migrations.RunPython(copy_lot_details, migrations.RunPython.noop),
    ]
