"""
URL configuration for the dairy_pos project.

The POS API lives under /api/v1/; the Django admin covers catalog,
customer, vehicle and staff maintenance.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('store.urls')),
]
