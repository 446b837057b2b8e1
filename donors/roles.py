"""
Role-Based Access Control
Following SOLID principles:
- SRP: Each class has single responsibility
- OCP: Open for extension (can add new roles)
"""

from functools import wraps
from enum import Enum

from django.db import models
from django.contrib.auth.models import User


class RoleType(str, Enum):
    """Enum for user roles"""
    ADMIN = "admin"
    OPERATIONS = "operations"
    FINANCE = "finance"
    DONOR = "donor"


class UserRole(models.Model):
    """
    User role assignment.
    Following SRP: Only responsible for storing user-role relationships.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='roles'
    )
    role = models.CharField(
        max_length=20,
        choices=[(role.value, role.value.title()) for role in RoleType],
        help_text="User's role in the system"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this role assignment is active"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = 'donors'
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='unique_user_role'),
        ]
        indexes = [
            models.Index(fields=['user', 'is_active'], name='user_role_active_idx'),
        ]
        verbose_name = 'User Role'
        verbose_name_plural = 'User Roles'

    def __str__(self):
        return f"{self.user.username} - {self.role}"


class PermissionChecker:
    """
    Permission checks used by GraphQL resolvers.
    Superusers pass every staff check.
    """

    @staticmethod
    def has_any_role(user: User, roles: list[RoleType]) -> bool:
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True

        return UserRole.objects.filter(
            user=user,
            role__in=[role.value for role in roles],
            is_active=True
        ).exists()

    @staticmethod
    def has_role(user: User, role: RoleType) -> bool:
        return PermissionChecker.has_any_role(user, [role])

    @staticmethod
    def is_staff(user: User) -> bool:
        """Admin, operations or finance"""
        return PermissionChecker.has_any_role(user, [
            RoleType.ADMIN,
            RoleType.OPERATIONS,
            RoleType.FINANCE,
        ])

    @staticmethod
    def can_manage_batches(user: User) -> bool:
        return PermissionChecker.has_any_role(user, [RoleType.ADMIN, RoleType.OPERATIONS])

    @staticmethod
    def can_manage_payments(user: User) -> bool:
        return PermissionChecker.has_any_role(user, [RoleType.ADMIN, RoleType.FINANCE])

    @staticmethod
    def can_generate_reports(user: User) -> bool:
        return PermissionChecker.is_staff(user)

    @staticmethod
    def roles_for(user: User) -> list[str]:
        if not user or not user.is_authenticated:
            return []
        roles = list(
            UserRole.objects.filter(user=user, is_active=True).values_list('role', flat=True)
        )
        if user.is_superuser and RoleType.ADMIN.value not in roles:
            roles.append(RoleType.ADMIN.value)
        return sorted(roles)


def require_authentication(func):
    """Decorator to require authentication"""
    @wraps(func)
    def wrapper(self, info, **kwargs):
        if not info.context.request.user.is_authenticated:
            raise PermissionError("Authentication required")
        return func(self, info, **kwargs)
    return wrapper


def require_permission(check, message: str):
    """Decorator running a PermissionChecker predicate against the caller"""
    def decorator(func):
        @wraps(func)
        def wrapper(self, info, **kwargs):
            user = info.context.request.user
            if not user.is_authenticated:
                raise PermissionError("Authentication required")
            if not check(user):
                raise PermissionError(message)
            return func(self, info, **kwargs)
        return wrapper
    return decorator


require_staff = require_permission(PermissionChecker.is_staff, "Requires staff privileges")
require_batch_manager = require_permission(
    PermissionChecker.can_manage_batches, "Requires operations privileges"
)
require_payment_manager = require_permission(
    PermissionChecker.can_manage_payments, "Requires finance privileges"
)
