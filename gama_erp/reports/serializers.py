from rest_framework import serializers

from .aging import AGING_BUCKETS


class JobInputSerializer(serializers.Serializer):
    jo_id = serializers.CharField()
    jo_number = serializers.CharField()
    customer_name = serializers.CharField(required=False, allow_blank=True, default='')
    project_name = serializers.CharField(required=False, allow_blank=True, default='')
    revenue = serializers.DecimalField(max_digits=18, decimal_places=2)
    direct_cost = serializers.DecimalField(max_digits=18, decimal_places=2)
    overhead = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, default=0)
    created_at = serializers.DateField()


class ProfitabilityFiltersSerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False, allow_null=True, default=None)
    date_to = serializers.DateField(required=False, allow_null=True, default=None)
    min_margin = serializers.DecimalField(max_digits=9, decimal_places=2, required=False, allow_null=True, default=None)
    max_margin = serializers.DecimalField(max_digits=9, decimal_places=2, required=False, allow_null=True, default=None)


class ProfitabilityReportRequestSerializer(serializers.Serializer):
    jobs = JobInputSerializer(many=True)
    filters = ProfitabilityFiltersSerializer(required=False)


class InvoiceInputSerializer(serializers.Serializer):
    id = serializers.CharField()
    invoice_number = serializers.CharField()
    customer_id = serializers.CharField(required=False, allow_null=True, default=None)
    customer_name = serializers.CharField(required=False, allow_blank=True, default='')
    invoice_date = serializers.DateField(required=False, allow_null=True, default=None)
    due_date = serializers.DateField()
    total_amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    amount_due = serializers.DecimalField(max_digits=18, decimal_places=2, required=False, allow_null=True, default=None)


class ARAgingRequestSerializer(serializers.Serializer):
    invoices = InvoiceInputSerializer(many=True)
    as_of_date = serializers.DateField(required=False, allow_null=True, default=None)
    customer_id = serializers.CharField(required=False, allow_blank=False)
    bucket = serializers.ChoiceField(choices=[label for label, _, _ in AGING_BUCKETS], required=False)
