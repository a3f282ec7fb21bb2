from rest_framework import serializers

from .utils import BL_STATUS_LABELS


class BLStatusUpdateSerializer(serializers.Serializer):
    bl_number = serializers.CharField(required=False, allow_blank=True)
    current_status = serializers.ChoiceField(choices=list(BL_STATUS_LABELS))
    new_status = serializers.ChoiceField(choices=list(BL_STATUS_LABELS))
