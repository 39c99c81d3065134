"""Base authentication classes for the Stagepass API."""

import typing as t

import structlog
from django.contrib.auth.models import AnonymousUser
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _
from ninja_extra import status
from ninja_extra.exceptions import APIException
from ninja_jwt.authentication import JWTAuth


class PermissionDenied(APIException):
    """Exception raised when user doesn't have required permissions."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = _("Permission denied")


class BaseJWTAuth(JWTAuth):
    """JWT authentication with customizable permission checking.

    Beyond validating the bearer token, the authenticated user can be required
    to be Django staff or to hold the organizer role.
    """

    def __init__(self, *, is_staff: bool = False, requires_organizer: bool = False) -> None:
        """Initialize the BaseJWTAuth authentication class.

        Args:
            is_staff: Whether the user must be a Django staff member.
            requires_organizer: Whether the user must be an organizer (staff always passes).
        """
        self.is_staff = is_staff
        self.requires_organizer = requires_organizer
        super().__init__()

    def authenticate(self, request: HttpRequest, token: str) -> t.Any:
        """Authenticate and verify user permissions.

        Raises:
            PermissionDenied: If user doesn't meet required criteria
        """
        user = super().authenticate(request, token)

        if user and not isinstance(user, AnonymousUser):
            structlog.contextvars.bind_contextvars(user_id=str(user.id))

            if self.is_staff and not getattr(user, "is_staff", False):
                raise PermissionDenied(str(_("Staff access required.")))

            if self.requires_organizer and not (user.is_staff or getattr(user, "is_organizer", False)):
                raise PermissionDenied(str(_("Organizer access required.")))

        return user
