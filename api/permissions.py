from rest_framework import permissions


class IsAdminRole(permissions.BasePermission):
    """Staff users: admin and superadmin roles"""
    message = 'Admin access required'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_admin_role)


class IsDriverRole(permissions.BasePermission):
    message = 'Only drivers can access this endpoint'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_driver)
