import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .serializers import PIBDutiesRequestSerializer
from .utils import (
    aggregate_pib_duties, calculate_cif_value, calculate_item_duties, calculate_item_total_price,
    convert_to_idr, validate_pib_item,
)

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def pib_duties(request):
    """Calculate import duties per item and PIB totals"""
    serializer = PIBDutiesRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data

    item_errors = {}
    for index, item in enumerate(data['items']):
        validation = validate_pib_item(item)
        if not validation['valid']:
            item_errors[index] = validation['errors']
    if item_errors:
        return Response({'error': 'Invalid PIB items', 'items': item_errors},
                        status=status.HTTP_400_BAD_REQUEST)

    items = []
    for item in data['items']:
        total_price = calculate_item_total_price(item['quantity'], item['unit_price'])
        duties = calculate_item_duties(total_price, item['bm_rate'], item['ppn_rate'], item['pph_rate'])
        items.append({
            'hs_code': item['hs_code'],
            'goods_description': item['goods_description'],
            'total_price': total_price,
            **duties,
        })

    totals = aggregate_pib_duties(items)
    cif_value = calculate_cif_value(data['fob_value'], data['freight_value'], data['insurance_value'])
    result = {
        'items': items,
        'totals': totals,
        'cif_value': cif_value,
    }
    if data['exchange_rate'] is not None:
        result['cif_value_idr'] = convert_to_idr(cif_value, data['exchange_rate'])

    logger.debug(f"PIB duties for {len(items)} item(s): total {totals['total_duties']}")
    return Response(result)
