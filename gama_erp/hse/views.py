import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from gama_erp.core.cache_utils import cached_query, WORKFLOWS_CACHE_TTL
from .serializers import RiskLevelRequestSerializer
from .utils import (
    CONSEQUENCES, LIKELIHOODS, RISK_LEVELS,
    calculate_risk_level, format_risk_level, risk_level_rank,
)

logger = logging.getLogger(__name__)


@cached_query(cache_ttl=WORKFLOWS_CACHE_TTL, key_prefix="risk_matrix")
def risk_matrix_payload():
    """The full 5x5 matrix keyed by likelihood then consequence"""
    return {
        'likelihoods': list(LIKELIHOODS),
        'consequences': list(CONSEQUENCES),
        'risk_levels': list(RISK_LEVELS),
        'matrix': {
            likelihood: {
                consequence: calculate_risk_level(likelihood, consequence)
                for consequence in CONSEQUENCES
            }
            for likelihood in LIKELIHOODS
        },
    }


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def risk_level(request):
    """Risk level of a hazard from its likelihood and consequence"""
    serializer = RiskLevelRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    likelihood = serializer.validated_data['likelihood']
    consequence = serializer.validated_data['consequence']
    level = calculate_risk_level(likelihood, consequence)
    if level == 'extreme':
        logger.warning(f"Extreme risk assessed: likelihood={likelihood} consequence={consequence}")

    return Response({
        'likelihood': likelihood,
        'consequence': consequence,
        'risk_level': level,
        'label': format_risk_level(level),
        'rank': risk_level_rank(level),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def risk_matrix(request):
    """The risk matrix used for journey hazard assessment"""
    return Response(risk_matrix_payload())
