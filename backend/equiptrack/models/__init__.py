"""Models package - re-exports for convenience."""

from backend.equiptrack.models.auth import (
    AcceptInvitationRequest,
    AuthResponse,
    CompanyOut,
    InvitationDetails,
    InviteResponse,
    InviteUserRequest,
    LoginRequest,
    RegisterCompanyRequest,
    UserOut,
)
from backend.equiptrack.models.common import (
    ApiModel,
    EquipmentCondition,
    EquipmentStatus,
    MessageResponse,
    Pagination,
    SortOrder,
)
from backend.equiptrack.models.equipment import (
    EquipmentCreate,
    EquipmentDetail,
    EquipmentOut,
    EquipmentPage,
    EquipmentStatusUpdate,
    EquipmentTypeCreate,
    EquipmentTypeOut,
    EquipmentTypeUpdate,
    EquipmentUpdate,
    StatusHistoryOut,
)
from backend.equiptrack.models.users import (
    ChangePasswordRequest,
    UpdateProfileRequest,
    UpdateUserRoleRequest,
    UserActionResponse,
    UserListResponse,
    UserResponse,
)

__all__ = [
    # Common
    "ApiModel",
    "EquipmentStatus",
    "EquipmentCondition",
    "SortOrder",
    "MessageResponse",
    "Pagination",
    # Auth
    "RegisterCompanyRequest",
    "LoginRequest",
    "InviteUserRequest",
    "AcceptInvitationRequest",
    "AuthResponse",
    "CompanyOut",
    "UserOut",
    "InviteResponse",
    "InvitationDetails",
    # Users
    "UpdateProfileRequest",
    "ChangePasswordRequest",
    "UpdateUserRoleRequest",
    "UserListResponse",
    "UserResponse",
    "UserActionResponse",
    # Equipment
    "EquipmentTypeCreate",
    "EquipmentTypeUpdate",
    "EquipmentTypeOut",
    "EquipmentCreate",
    "EquipmentUpdate",
    "EquipmentStatusUpdate",
    "EquipmentOut",
    "EquipmentDetail",
    "EquipmentPage",
    "StatusHistoryOut",
]
