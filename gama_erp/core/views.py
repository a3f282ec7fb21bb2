import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist

from .cache_utils import cached_query, WORKFLOWS_CACHE_TTL
from .exceptions import UnknownWorkflowError
from .serializers import TransitionCheckSerializer
from .workflows import all_workflows, get_workflow

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['groups'] = list(user.groups.values_list('name', flat=True))
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@cached_query(cache_ttl=WORKFLOWS_CACHE_TTL, key_prefix="workflow")
def workflow_payload(name):
    """Serializable view of one workflow table"""
    return get_workflow(name).as_dict()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def workflow_list(request):
    """List every registered document workflow"""
    return Response([workflow.as_dict() for workflow in all_workflows()])


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def workflow_detail(request, name):
    """Retrieve one workflow table"""
    try:
        return Response(workflow_payload(name))
    except UnknownWorkflowError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def workflow_check(request, name):
    """Check whether a document may move from one status to another"""
    try:
        workflow = get_workflow(name)
    except UnknownWorkflowError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

    serializer = TransitionCheckSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    current = serializer.validated_data['current']
    target = serializer.validated_data['target']
    result = workflow.check_transition(current, target)
    if not result['valid']:
        logger.info(f"Rejected {name} transition {current} -> {target}")
        return Response({'error': result['error'], 'allowed': workflow.next_statuses(current)},
                        status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'workflow': name,
        'current': current,
        'target': target,
        'valid': True,
        'terminal': workflow.is_terminal(target),
    })
