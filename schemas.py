from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal, List
from datetime import datetime, date

EmployeeRole = Literal["manager", "asst_manager", "employee"]
PrincipalRole = Literal["admin", "company", "manager", "asst_manager", "employee"]
AssigneeType = Literal["branch", "employee"]
ReceiverType = Literal["company", "branch", "employee"]


# ============================================================================
# AUTH / SESSION SCHEMAS
# ============================================================================

class Principal(BaseModel):
    """Authenticated identity plus the ids later operations are scoped by."""
    id: int
    username: str
    name: Optional[str] = None
    role: PrincipalRole
    profile_pic: Optional[str] = None
    company_id: Optional[int] = None
    branch_id: Optional[int] = None

    @property
    def kind(self) -> str:
        # Table the principal lives in
        if self.role in ("admin", "company"):
            return self.role
        return "employee"


class Token(BaseModel):
    access_token: str
    token_type: str
    expires_in: int  # Seconds until expiry
    principal: Principal


class LogoutResponse(BaseModel):
    """Response after successful logout"""
    message: str
    success: bool
    username: str


class TokenBlacklistOut(BaseModel):
    """Blacklisted token information for admin view"""
    id: int
    jti: str
    principal_type: str
    principal_id: int
    username: str
    blacklisted_at: datetime
    token_exp: datetime
    reason: str

    class Config:
        from_attributes = True


# ============================================================================
# COMPANY SCHEMAS
# ============================================================================

class CompanyCreate(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=150)
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    profile_pic: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "company_name": "Acme",
                "username": "acme",
                "password": "SecurePass123!",
            }
        }


class CompanyUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=150)
    profile_pic: Optional[str] = None


class StatusUpdate(BaseModel):
    is_active: bool


class CompanyOut(BaseModel):
    id: int
    company_name: str
    username: str
    profile_pic: Optional[str] = None
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# BRANCH SCHEMAS
# ============================================================================

class BranchCreate(BaseModel):
    branch_name: str = Field(..., min_length=1, max_length=150)


class BranchOut(BaseModel):
    id: int
    branch_name: str
    company_id: int
    is_main_branch: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EmployeeCounts(BaseModel):
    total: int
    managers: int
    asst_managers: int
    general_employees: int


class BranchSummaryOut(BranchOut):
    employee_counts: EmployeeCounts


# ============================================================================
# EMPLOYEE SCHEMAS
# ============================================================================

class EmployeeCreate(BaseModel):
    employee_name: str = Field(..., min_length=1, max_length=150)
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    profile_pic: Optional[str] = None
    role: EmployeeRole = "employee"
    branch_id: int

    class Config:
        json_schema_extra = {
            "example": {
                "employee_name": "Jane Doe",
                "username": "jane",
                "password": "SecurePass123!",
                "role": "employee",
                "branch_id": 1,
            }
        }


class EmployeeRoleUpdate(BaseModel):
    role: EmployeeRole


class EmployeeBranchUpdate(BaseModel):
    branch_id: int


class EmployeeOut(BaseModel):
    id: int
    employee_name: str
    username: str
    profile_pic: Optional[str] = None
    role: str
    company_id: int
    branch_id: int
    branch_name: Optional[str] = None
    is_active: bool
    created_by: Optional[str] = None
    created_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# TASK SCHEMAS
# ============================================================================

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = ""
    assigned_to: AssigneeType
    assigned_id: int

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Stock count",
                "description": "Count the back room before Friday",
                "assigned_to": "branch",
                "assigned_id": 3,
            }
        }


class TaskOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    assigned_to: str
    assigned_id: int
    assigned_by: str
    assigned_by_id: int
    is_completed: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskCompletionOut(BaseModel):
    id: int
    task_id: int
    employee_id: int
    employee_name: Optional[str] = None
    is_completed: bool
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskDetailOut(TaskOut):
    completions: List[TaskCompletionOut]
    completed_count: int
    total_count: int


class TaskCompleteRequest(BaseModel):
    """Managers may complete on behalf of an employee of their branch."""
    employee_id: Optional[int] = None


class TaskBranchCompleteRequest(BaseModel):
    branch_id: Optional[int] = None


class TaskCompletionStatusOut(BaseModel):
    task_id: int
    employee_id: int
    is_completed: bool


# ============================================================================
# REPORT SCHEMAS
# ============================================================================

class ReportSubmit(BaseModel):
    report_date: date
    content: str = Field(..., min_length=1)

    @field_validator('content')
    @classmethod
    def strip_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Report content cannot be blank")
        return v


class ReportOut(BaseModel):
    id: int
    employee_id: int
    employee_name: Optional[str] = None
    employee_role: Optional[str] = None
    branch_name: Optional[str] = None
    report_date: date
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReportSummaryOut(BaseModel):
    total_reports: int
    employee_count: int
    branch_count: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ============================================================================
# MESSAGE SCHEMAS
# ============================================================================

class MessageCreate(BaseModel):
    receiver_type: ReceiverType
    receiver_id: int
    message_text: str = Field(..., min_length=1, max_length=4000)
    attachment_link: Optional[str] = None


class MessageOut(BaseModel):
    id: int
    sender_type: str
    sender_id: int
    receiver_type: str
    receiver_id: int
    message_text: str
    attachment_link: Optional[str] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MessageDetailOut(MessageOut):
    sender_name: str
    receiver_name: str


# ============================================================================
# PROFILE / PASSWORD SCHEMAS
# ============================================================================

class ProfileOut(BaseModel):
    id: int
    username: str
    name: Optional[str] = None
    role: str
    profile_pic: Optional[str] = None
    company_id: Optional[int] = None
    company_name: Optional[str] = None
    branch_id: Optional[int] = None
    branch_name: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    profile_pic: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """
    Schema for changing password while logged in.

    Example:
        {
            "current_password": "OldPass123!",
            "new_password": "NewPass456!",
            "confirm_password": "NewPass456!"
        }
    """
    current_password: str = Field(
        ...,
        min_length=1,
        description="Current password (for verification)"
    )
    new_password: str = Field(
        ...,
        min_length=6,
        description="New password (minimum 6 characters)"
    )
    confirm_password: str = Field(
        ...,
        min_length=6,
        description="Confirm new password (must match new_password)"
    )


class PasswordChangeResponse(BaseModel):
    success: bool
    message: str
    changed_at: datetime


# ============================================================================
# ADMIN DASHBOARD
# ============================================================================

class DashboardOut(BaseModel):
    total_companies: int
    active_companies: int
    total_branches: int
    total_employees: int
    recent_companies: List[CompanyOut]
