from django.urls import path
from .views import render_notification

urlpatterns = [
    path('notifications/render/', render_notification, name='notifications-render'),
]
