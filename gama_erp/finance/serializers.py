from rest_framework import serializers

from .overhead import ALLOCATION_METHODS
from .utils import COST_CATEGORY_LABELS


class OverheadCategorySerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_null=True)
    category_code = serializers.CharField(max_length=30)
    category_name = serializers.CharField(max_length=100)
    allocation_method = serializers.ChoiceField(choices=ALLOCATION_METHODS)
    default_rate = serializers.DecimalField(max_digits=18, decimal_places=4, min_value=0)
    is_active = serializers.BooleanField(default=True)


class JobProfitabilityRequestSerializer(serializers.Serializer):
    revenue = serializers.DecimalField(max_digits=18, decimal_places=2)
    direct_costs = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0)
    categories = OverheadCategorySerializer(many=True)


class CostItemSerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=list(COST_CATEGORY_LABELS), required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    estimated_amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0)
    actual_amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0,
                                             required=False, allow_null=True, default=None)
    status = serializers.ChoiceField(choices=['estimated', 'confirmed', 'exceeded', 'under_budget'],
                                     required=False)


class BudgetAnalysisRequestSerializer(serializers.Serializer):
    items = CostItemSerializer(many=True, allow_empty=False)
