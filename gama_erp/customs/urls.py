from django.urls import path
from .views import pib_duties

urlpatterns = [
    path('customs/pib-duties/', pib_duties, name='customs-pib-duties'),
]
