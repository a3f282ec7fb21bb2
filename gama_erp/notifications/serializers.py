from rest_framework import serializers

from .utils import CHANNELS, EVENT_TYPES


def _content_field():
    # Bodies are rendered verbatim, so surrounding whitespace is kept
    return serializers.CharField(required=False, allow_null=True, allow_blank=True, trim_whitespace=False)


class PlaceholderDefinitionSerializer(serializers.Serializer):
    key = serializers.CharField()
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    default_value = serializers.CharField(required=False, allow_null=True, allow_blank=True,
                                          trim_whitespace=False)


class NotificationTemplateSerializer(serializers.Serializer):
    """Notification template as stored, with content per channel"""
    template_code = serializers.CharField()
    template_name = serializers.CharField()
    event_type = serializers.ChoiceField(choices=EVENT_TYPES)
    email_subject = _content_field()
    email_body_html = _content_field()
    email_body_text = _content_field()
    whatsapp_template_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    whatsapp_body = _content_field()
    in_app_title = _content_field()
    in_app_body = _content_field()
    in_app_action_url = _content_field()
    push_title = _content_field()
    push_body = _content_field()
    placeholders = PlaceholderDefinitionSerializer(many=True, required=False)
    is_active = serializers.BooleanField(required=False)


class NotificationRenderSerializer(serializers.Serializer):
    template = NotificationTemplateSerializer()
    data = serializers.DictField(required=False, default=dict)
    channel = serializers.ChoiceField(choices=CHANNELS)
