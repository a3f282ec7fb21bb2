from django.urls import path
from .views import job_profitability, budget_analysis

urlpatterns = [
    path('finance/job-profitability/', job_profitability, name='finance-job-profitability'),
    path('finance/budget-analysis/', budget_analysis, name='finance-budget-analysis'),
]
