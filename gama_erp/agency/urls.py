from django.urls import path
from .views import bl_status_update

urlpatterns = [
    path('agency/bl-status/', bl_status_update, name='agency-bl-status'),
]
