import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import BLStatusUpdateSerializer
from .utils import prepare_bl_status_update, BL_WORKFLOW

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bl_status_update(request):
    """Validate a B/L status change and return the fields to update"""
    serializer = BLStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    current = serializer.validated_data['current_status']
    target = serializer.validated_data['new_status']
    bl_number = serializer.validated_data.get('bl_number') or '-'

    result = prepare_bl_status_update(current, target)
    if not result['success']:
        logger.info(f"B/L {bl_number}: rejected status change {current} -> {target}")
        return Response({'error': result['error'], 'allowed': BL_WORKFLOW.next_statuses(current)},
                        status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"B/L {bl_number}: status {current} -> {target} by {request.user.username}")
    return Response(result['data'])
