"""
URL configuration for impact_BE project.
"""

from django.contrib import admin
from django.urls import path, include
from django.views.decorators.csrf import csrf_exempt

from api_schema.context import AuthenticatedGraphQLView
from api_schema.schema import schema

urlpatterns = [
    path('admin/', admin.site.urls),
    path('graphql/', csrf_exempt(AuthenticatedGraphQLView.as_view(schema=schema))),
    path('payments/', include('payments.urls')),
]
