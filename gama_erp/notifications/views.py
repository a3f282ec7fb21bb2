import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import NotificationRenderSerializer
from .utils import render_template, validate_placeholder_data, validate_template

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def render_notification(request):
    """Render a notification template for one channel"""
    serializer = NotificationRenderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    template = serializer.validated_data['template']
    data = serializer.validated_data['data']
    channel = serializer.validated_data['channel']

    validation = validate_template(template)
    if not validation['valid']:
        return Response({'error': validation['error']}, status=status.HTTP_400_BAD_REQUEST)

    rendered = render_template(template, data, channel)
    if rendered is None:
        return Response({'error': f"Template has no content for channel '{channel}'"},
                        status=status.HTTP_400_BAD_REQUEST)

    placeholders = validate_placeholder_data(template, data)
    if not placeholders['valid']:
        logger.warning(f"Template {template['template_code']}: missing placeholder data "
                       f"{', '.join(placeholders['missing_keys'])}")

    return Response({
        **rendered,
        'missing_keys': placeholders['missing_keys'],
        'warnings': validation['warnings'],
    })
