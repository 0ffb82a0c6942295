from rest_framework.permissions import BasePermission


class IsOwner(BasePermission):
    """Authenticated users may only touch records they own.

    The owning foreign key is read from ``view.owner_field`` (``submitted_by``
    unless the view says otherwise).
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        owner_field = getattr(view, "owner_field", "submitted_by")
        return getattr(obj, f"{owner_field}_id", None) == request.user.id
