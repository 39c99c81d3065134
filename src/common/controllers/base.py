import typing as t

from ninja_extra import ControllerBase

from accounts.models import StagepassUser


class UserAwareController(ControllerBase):
    def user(self) -> StagepassUser:
        """Get the user for this request."""
        return t.cast(StagepassUser, self.context.request.user)  # type: ignore[union-attr]
