import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from gama_erp.core.cache_utils import get_cached_report, cache_report
from gama_erp.core.utils import today
from .aging import (
    aggregate_by_customer, build_ar_aging_report, filter_by_bucket, filter_by_customer, filter_unpaid_invoices,
)
from .serializers import ProfitabilityReportRequestSerializer, ARAgingRequestSerializer
from .utils import build_job_profitability, build_profitability_report, validate_profitability_filters

logger = logging.getLogger('gama_erp.reports')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def profitability_report(request):
    """Job profitability report: filter by date and margin, sort by net margin"""
    serializer = ProfitabilityReportRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    filters = dict(serializer.validated_data.get('filters') or {})
    validation = validate_profitability_filters(filters)
    if not validation['valid']:
        return Response({'error': validation['error']}, status=status.HTTP_400_BAD_REQUEST)

    cached_data, cache_key = get_cached_report('profitability', request.data)
    if cached_data is not None:
        logger.debug(f"Serving cached profitability report: {cache_key}")
        return Response(cached_data)

    jobs = [build_job_profitability(**job) for job in serializer.validated_data['jobs']]
    data = build_profitability_report(jobs, filters)
    data['filters'] = filters
    cache_report(cache_key, data)

    logger.info(f"Profitability report: {data['summary']['total_jobs']} of {len(jobs)} job(s) matched")
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ar_aging_report(request):
    """Accounts receivable aging of unpaid invoices"""
    serializer = ARAgingRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    as_of = data['as_of_date'] or today()
    invoices = filter_unpaid_invoices(data['invoices'])
    if data.get('customer_id'):
        invoices = filter_by_customer(invoices, data['customer_id'])

    report = build_ar_aging_report(invoices, as_of)
    if data.get('bucket'):
        report['details'] = filter_by_bucket(report['details'], data['bucket'])
    report['by_customer'] = aggregate_by_customer(report['details'])
    report['as_of_date'] = as_of

    critical = len([item for item in report['details'] if item['severity'] == 'critical'])
    if critical:
        logger.warning(f"AR aging: {critical} invoice(s) more than 90 days overdue")
    return Response(report)
