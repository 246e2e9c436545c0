from rest_framework import serializers
from django.db import transaction
from datetime import timedelta
from diamondbook.clients.models import Client
from diamondbook.diamonds.models import Diamond
from diamondbook.diamonds.valuation import invoice_total
from .models import Invoice, InvoiceItem, DEFAULT_PAYMENT_TERM_DAYS


class InvoiceItemSerializer(serializers.ModelSerializer):
    """Invoice line as billed; only kapan id and entry date are read from the lot"""
    kapan_id = serializers.CharField(source='diamond.kapan_id', read_only=True)
    entry_date = serializers.DateField(source='diamond.entry_date', read_only=True)
    applied_rate = serializers.SerializerMethodField()

    def get_applied_rate(self, obj):
        """Per karat for 4P Plus lots, per piece for 4P Minus lots"""
        return float(obj.applied_rate)

    class Meta:
        model = InvoiceItem
        fields = [
            'id', 'diamond', 'kapan_id', 'entry_date', 'category', 'description', 'quantity',
            'weight_in_karats', 'raw_damage_weight', 'applied_rate', 'price'
        ]


class InvoiceListSerializer(serializers.ModelSerializer):
    """Compact invoice row for lists and search results"""
    client_name = serializers.CharField(source='client.name', read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'client', 'client_name', 'issue_date', 'due_date', 'status',
            'is_overdue', 'payment_date', 'payment_method', 'total_amount', 'created_at'
        ]


class InvoiceSerializer(serializers.ModelSerializer):
    """
    Full invoice. Written with ``diamonds`` (lot ids); items and total are
    built from those lots, so ``items`` and ``total_amount`` are read-only.
    """
    items = InvoiceItemSerializer(many=True, read_only=True)
    client = serializers.PrimaryKeyRelatedField(queryset=Client.objects.all())
    client_name = serializers.CharField(source='client.name', read_only=True)
    diamonds = serializers.PrimaryKeyRelatedField(queryset=Diamond.objects.all(), many=True, write_only=True)
    due_date = serializers.DateField(required=False)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'client', 'client_name', 'issue_date', 'due_date', 'status',
            'is_overdue', 'payment_date', 'payment_method', 'total_amount', 'notes', 'diamonds',
            'items', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = [
            'invoice_number', 'status', 'payment_date', 'payment_method', 'total_amount',
            'created_by', 'created_at', 'updated_at'
        ]

    def validate_diamonds(self, value):
        if len({diamond.pk for diamond in value}) != len(value):
            raise serializers.ValidationError('Each diamond lot can be billed only once per invoice.')
        return value

    def validate(self, attrs):
        client = attrs.get('client', getattr(self.instance, 'client', None))
        issue_date = attrs.get('issue_date', getattr(self.instance, 'issue_date', None))

        if 'due_date' in attrs or self.instance is None:
            due_date = attrs.get('due_date')
            if due_date is None and issue_date is not None:
                attrs['due_date'] = issue_date + timedelta(days=DEFAULT_PAYMENT_TERM_DAYS)
        due_date = attrs.get('due_date', getattr(self.instance, 'due_date', None))
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError({'due_date': 'Due date cannot be before the issue date.'})

        if self.instance is None or 'diamonds' in attrs:
            diamonds = attrs.get('diamonds') or []
            if not diamonds:
                raise serializers.ValidationError({'diamonds': 'Select at least one diamond lot.'})
            self._validate_lots(client, diamonds)
        elif 'client' in attrs and attrs['client'] != self.instance.client:
            # Client changed without new lots: the existing lots must still match
            self._validate_lots(client, [item.diamond for item in self.instance.items.select_related('diamond')])
        return attrs

    def _validate_lots(self, client, diamonds):
        foreign = [d.kapan_id for d in diamonds if d.client_id != client.id]
        if foreign:
            raise serializers.ValidationError({
                'diamonds': f"Lots {', '.join(foreign)} do not belong to client {client.name}."
            })

        taken = InvoiceItem.objects.filter(
            diamond__in=diamonds,
            invoice__status__in=Invoice.ACTIVE_STATUSES,
        ).select_related('invoice', 'diamond')
        if self.instance is not None:
            taken = taken.exclude(invoice=self.instance)
        taken = list(taken)
        if taken:
            raise serializers.ValidationError({
                'diamonds': [
                    f"Lot {item.diamond.kapan_id} is already billed on invoice {item.invoice.invoice_number}."
                    for item in taken
                ]
            })

    def _lock_lots(self, client, diamonds):
        """
        Row-lock the lots for the rest of the transaction and check them again:
        another invoice may have billed them since ``validate`` ran. Returns
        the freshly read lots in request order.
        """
        locked = {
            diamond.pk: diamond
            for diamond in Diamond.objects.select_for_update().filter(pk__in=[d.pk for d in diamonds]).order_by('pk')
        }
        missing = [d.kapan_id for d in diamonds if d.pk not in locked]
        if missing:
            raise serializers.ValidationError({'diamonds': f"Lots {', '.join(missing)} no longer exist."})
        diamonds = [locked[d.pk] for d in diamonds]
        self._validate_lots(client, diamonds)
        return diamonds

    def _replace_items(self, invoice, diamonds):
        invoice.items.all().delete()
        InvoiceItem.objects.bulk_create([InvoiceItem.for_lot(invoice, diamond) for diamond in diamonds])
        invoice.total_amount = invoice_total(diamonds)
        invoice.save(update_fields=['total_amount', 'updated_at'])

    def create(self, validated_data):
        diamonds = validated_data.pop('diamonds')
        with transaction.atomic():
            diamonds = self._lock_lots(validated_data['client'], diamonds)
            invoice = Invoice.objects.create(**validated_data)
            self._replace_items(invoice, diamonds)
        return invoice

    def update(self, instance, validated_data):
        diamonds = validated_data.pop('diamonds', None)
        with transaction.atomic():
            if diamonds is not None:
                diamonds = self._lock_lots(validated_data.get('client', instance.client), diamonds)
            instance = super().update(instance, validated_data)
            if diamonds is not None:
                self._replace_items(instance, diamonds)
        return instance


class MarkPaidSerializer(serializers.Serializer):
    payment_method = serializers.ChoiceField(choices=Invoice.PAYMENT_METHOD_CHOICES)
    payment_date = serializers.DateField(required=False, allow_null=True)
