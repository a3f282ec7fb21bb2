from django.urls import path
from .views import profitability_report, ar_aging_report

urlpatterns = [
    path('reports/profitability/', profitability_report, name='reports-profitability'),
    path('reports/ar-aging/', ar_aging_report, name='reports-ar-aging'),
]
