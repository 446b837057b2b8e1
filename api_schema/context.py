"""
GraphQL Context and Custom View
Adds authentication to GraphQL context
"""

import logging

from django.http import HttpRequest
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.request import Request
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from strawberry.django.views import GraphQLView as BaseGraphQLView

logger = logging.getLogger(__name__)


class AuthenticatedGraphQLView(BaseGraphQLView):
    """
    GraphQL view that resolves the caller from a simplejwt Bearer token.
    An invalid or expired token leaves the request anonymous; resolvers
    that need a user reject it.
    """

    def get_context(self, request: HttpRequest, response):
        drf_request = Request(request)

        try:
            user_auth_tuple = JWTAuthentication().authenticate(drf_request)
        except (InvalidToken, AuthenticationFailed) as e:
            logger.info(f"Rejected GraphQL bearer token: {e}")
            user_auth_tuple = None

        if user_auth_tuple is not None:
            request.user = user_auth_tuple[0]

        return super().get_context(request, response)
