"""
URL configuration for the Gama ERP business-rules service.

Every app mounts its endpoints under /api/v1/.
"""
from django.urls import path, include

urlpatterns = [
    path('api/v1/', include('gama_erp.core.urls')),
    path('api/v1/', include('gama_erp.finance.urls')),
    path('api/v1/', include('gama_erp.reports.urls')),
    path('api/v1/', include('gama_erp.hse.urls')),
    path('api/v1/', include('gama_erp.customs.urls')),
    path('api/v1/', include('gama_erp.agency.urls')),
    path('api/v1/', include('gama_erp.integrations.urls')),
    path('api/v1/', include('gama_erp.notifications.urls')),
]
