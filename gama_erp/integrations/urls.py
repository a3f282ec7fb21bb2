from django.urls import path
from .views import sync_preview

urlpatterns = [
    path('integrations/sync-preview/', sync_preview, name='integrations-sync-preview'),
]
