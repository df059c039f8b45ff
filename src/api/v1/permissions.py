"""Custom DRF permissions for the dealership commission API."""
from rest_framework.permissions import SAFE_METHODS, BasePermission


class IsManagerOrAdmin(BasePermission):
    """Allow access to users with the ADMIN or MANAGER role."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role in ('ADMIN', 'MANAGER')


class IsManagerOrAdminOrReadOnly(BasePermission):
    """Read for every authenticated user, writes for ADMIN/MANAGER only."""

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        if request.method in SAFE_METHODS:
            return True
        return request.user.role in ('ADMIN', 'MANAGER')


class _RolePermission(BasePermission):
    """Role check shared by the commission workflow permissions.

    Subclasses set ``allowed_roles``.  Superusers always pass.
    """

    allowed_roles = ()

    def has_permission(self, request, view):
        user = request.user
        if not user.is_authenticated:
            return False
        if getattr(user, "is_superuser", False):
            return True
        return user.role in self.allowed_roles


class CanApproveCommission(_RolePermission):
    """Approve or reject commissions and record ledger adjustments."""
    allowed_roles = ("ADMIN", "MANAGER")


class CanPayCommission(_RolePermission):
    """Mark approved commissions as paid."""
    allowed_roles = ("ADMIN", "MANAGER", "FINANCE")


class CanViewAllCommissions(_RolePermission):
    """See every salesperson's commissions instead of only one's own."""
    allowed_roles = ("ADMIN", "MANAGER", "FINANCE")


class IsSales(_RolePermission):
    """Record and complete sales."""
    allowed_roles = ("SALES", "ADMIN", "MANAGER")
