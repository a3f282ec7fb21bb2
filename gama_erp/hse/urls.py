from django.urls import path
from .views import risk_level, risk_matrix

urlpatterns = [
    path('hse/risk-level/', risk_level, name='hse-risk-level'),
    path('hse/risk-matrix/', risk_matrix, name='hse-risk-matrix'),
]
