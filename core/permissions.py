"""
Custom permission classes for BorrowBase.

Object-level rules (resource ownership, borrow-request roles, chat
participation) are enforced by the service layer; these classes only gate
whole endpoints.
"""

from rest_framework import permissions


class IsStaffUser(permissions.BasePermission):
    """
    Permission class that allows only staff users to access the endpoint.

    Used for notification administration and review moderation.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsStaffUser]
    """

    message = 'You do not have permission to perform this action. Staff privileges required.'

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.is_staff


class ReadOnlyOrAuthenticated(permissions.BasePermission):
    """
    Anyone may read; writes require an authenticated user.

    Used for resource listings, which are public to browse.
    """

    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_authenticated)
