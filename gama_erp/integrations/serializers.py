from rest_framework import serializers

from .utils import FILTER_OPERATORS, TRANSFORMS


class FieldMappingSerializer(serializers.Serializer):
    local_field = serializers.CharField()
    remote_field = serializers.CharField()
    transform = serializers.ChoiceField(choices=TRANSFORMS, required=False)


class FilterConditionSerializer(serializers.Serializer):
    field = serializers.CharField()
    operator = serializers.ChoiceField(choices=FILTER_OPERATORS)
    value = serializers.JSONField(required=False, allow_null=True)


class SyncPreviewSerializer(serializers.Serializer):
    local_table = serializers.CharField(required=False)
    remote_entity = serializers.CharField(required=False)
    field_mappings = FieldMappingSerializer(many=True, allow_empty=False)
    filter_conditions = FilterConditionSerializer(many=True, required=False)
    records = serializers.ListField(child=serializers.DictField(), allow_empty=True)
