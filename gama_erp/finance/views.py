import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from gama_erp.core.utils import round_money
from .overhead import calculate_job_profitability
from .serializers import JobProfitabilityRequestSerializer, BudgetAnalysisRequestSerializer
from .utils import analyze_budget, determine_cost_status, get_budget_usage_percent, get_budget_warning_level

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def job_profitability(request):
    """Allocate overhead to a job and return gross/net profitability"""
    serializer = JobProfitabilityRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    result = calculate_job_profitability(data['revenue'], data['direct_costs'], data['categories'])
    logger.debug(f"Job profitability: revenue={data['revenue']} net_profit={result['net_profit']}")
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def budget_analysis(request):
    """Compare estimated and actual cost items of a job"""
    serializer = BudgetAnalysisRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    items = []
    for item in serializer.validated_data['items']:
        item = dict(item)
        if 'status' not in item:
            if item['actual_amount'] is None:
                item['status'] = 'estimated'
            else:
                item['status'] = determine_cost_status(item['estimated_amount'], item['actual_amount'])
        if item['actual_amount'] is not None:
            item['warning_level'] = get_budget_warning_level(item['estimated_amount'], item['actual_amount'])
            item['usage_percent'] = round_money(
                get_budget_usage_percent(item['estimated_amount'], item['actual_amount'])
            )
        items.append(item)

    analysis = analyze_budget(items)
    if analysis['has_overruns']:
        logger.info(f"Budget analysis found {analysis['items_over_budget']} item(s) over budget")
    return Response({'analysis': analysis, 'items': items})
