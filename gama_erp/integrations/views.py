import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import SyncPreviewSerializer
from .sync_mapping import process_sync_mapping

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def sync_preview(request):
    """Show what a sync mapping would send for the given records"""
    serializer = SyncPreviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    records = data.pop('records')
    result = process_sync_mapping(records, data)

    logger.info(f"Sync preview by {request.user.username}: {len(result)} of {len(records)} record(s) matched")
    return Response({
        'total': len(records),
        'matched': len(result),
        'records': result,
    })
