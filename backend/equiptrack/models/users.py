"""User management bodies."""

from pydantic import Field

from backend.equiptrack.db.context import Role
from backend.equiptrack.models.auth import UserOut
from backend.equiptrack.models.common import ApiModel


class UpdateProfileRequest(ApiModel):
    """Request body for PUT /users/profile; omitted fields are left unchanged."""

    first_name: str | None = Field(None, min_length=1)
    last_name: str | None = Field(None, min_length=1)
    phone: str | None = None
    profile_photo_url: str | None = Field(None, pattern=r"^https?://")


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str = Field(..., min_length=8)


class UpdateUserRoleRequest(ApiModel):
    role: Role


class UserListResponse(ApiModel):
    users: list[UserOut]
    total: int


class UserResponse(ApiModel):
    user: UserOut


class UserActionResponse(ApiModel):
    """A user plus a human-readable outcome message."""

    user: UserOut
    message: str
