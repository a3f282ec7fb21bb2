from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView,
    workflow_list, workflow_detail, workflow_check,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),

    # Workflow endpoints
    path('workflows/', workflow_list, name='workflow-list'),
    path('workflows/<str:name>/', workflow_detail, name='workflow-detail'),
    path('workflows/<str:name>/check/', workflow_check, name='workflow-check'),
]
