from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Unicode,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, DeclarativeBase
from datetime import datetime, timezone

# TIMESTAMP NOTES:
# =================================
# - ALL DateTime fields store UTC time as naive datetime
# - report_date is a plain calendar date chosen by the employee

EMPLOYEE_ROLES = ("manager", "asst_manager", "employee")
MESSAGE_SENDER_TYPES = ("admin", "company", "employee")
TASK_ASSIGNEE_TYPES = ("branch", "employee")
TASK_ASSIGNER_TYPES = ("company", "manager", "asst_manager")
MESSAGE_RECEIVER_TYPES = ("company", "branch", "employee")


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass

# ============================================================================
# ADMIN MODEL
# ============================================================================

class Admin(Base):
    __tablename__ = 'admins'

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    profile_name = Column(Unicode(100), nullable=True)
    profile_pic = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    companies = relationship("Company", back_populates="creator")

    def __repr__(self):
        return f"<Admin {self.username}>"


# ============================================================================
# COMPANY MODEL
# ============================================================================

class Company(Base):
    __tablename__ = 'companies'

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(Unicode(150), nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    profile_pic = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey('admins.id'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    creator = relationship("Admin", back_populates="companies")
    branches = relationship("Branch", back_populates="company", order_by="Branch.id")
    employees = relationship("Employee", back_populates="company")

    @property
    def main_branch(self):
        for branch in self.branches:
            if branch.is_main_branch:
                return branch
        return None

    def __repr__(self):
        return f"<Company {self.company_name} (active={self.is_active})>"


# ============================================================================
# BRANCH MODEL
# ============================================================================

class Branch(Base):
    __tablename__ = 'branches'

    id = Column(Integer, primary_key=True, index=True)
    branch_name = Column(Unicode(150), nullable=False)
    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)
    is_main_branch = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    company = relationship("Company", back_populates="branches")
    employees = relationship("Employee", back_populates="branch")

    def __repr__(self):
        return f"<Branch {self.branch_name} (company={self.company_id}, main={self.is_main_branch})>"


# ============================================================================
# EMPLOYEE MODEL
# ============================================================================

class Employee(Base):
    __tablename__ = 'employees'

    id = Column(Integer, primary_key=True, index=True)
    employee_name = Column(Unicode(150), nullable=False)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    profile_pic = Column(String, nullable=True)
    role = Column(String(20), nullable=False, default="employee")

    company_id = Column(Integer, ForeignKey('companies.id'), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey('branches.id'), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Who created the record: "company", "manager" or "asst_manager" plus that principal's id
    created_by = Column(String(20), nullable=True)
    created_by_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    company = relationship("Company", back_populates="employees")
    branch = relationship("Branch", back_populates="employees")
    task_completions = relationship("TaskCompletion", back_populates="employee")
    reports = relationship("Report", back_populates="employee")

    __table_args__ = (
        Index('idx_employee_branch_active', 'branch_id', 'is_active'),
    )

    @property
    def branch_name(self):
        return self.branch.branch_name if self.branch else None

    def __repr__(self):
        return f"<Employee {self.employee_name} ({self.role})>"


# ============================================================================
# TASK MODELS
# ============================================================================

class Task(Base):
    __tablename__ = 'tasks'

    id = Column(Integer, primary_key=True, index=True)
    title = Column(Unicode(200), nullable=False)
    description = Column(Text, nullable=True)

    # Target: a whole branch or a single employee
    assigned_to = Column(String(20), nullable=False)
    assigned_id = Column(Integer, nullable=False)

    # Assigner: "company", "manager" or "asst_manager"
    assigned_by = Column(String(20), nullable=False)
    assigned_by_id = Column(Integer, nullable=False)

    # Aggregate of the completion rows
    is_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    completions = relationship(
        "TaskCompletion",
        back_populates="task",
        order_by="TaskCompletion.id",
    )

    __table_args__ = (
        Index('idx_task_assignment', 'assigned_to', 'assigned_id'),
        Index('idx_task_assigner', 'assigned_by', 'assigned_by_id'),
    )

    def __repr__(self):
        return f"<Task {self.id} {self.assigned_to}:{self.assigned_id} done={self.is_completed}>"


class TaskCompletion(Base):
    __tablename__ = 'task_completions'

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey('tasks.id', ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    task = relationship("Task", back_populates="completions")
    employee = relationship("Employee", back_populates="task_completions")

    @property
    def employee_name(self):
        return self.employee.employee_name if self.employee else None

    # One row per (task, employee): concurrent upserts collide here instead of duplicating
    __table_args__ = (
        UniqueConstraint('task_id', 'employee_id', name='uq_task_completion_task_employee'),
    )


# ============================================================================
# REPORT MODEL
# ============================================================================

class Report(Base):
    __tablename__ = 'reports'

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    report_date = Column(Date, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    employee = relationship("Employee", back_populates="reports")

    @property
    def employee_name(self):
        return self.employee.employee_name if self.employee else None

    @property
    def employee_role(self):
        return self.employee.role if self.employee else None

    @property
    def branch_name(self):
        return self.employee.branch_name if self.employee else None

    __table_args__ = (
        UniqueConstraint('employee_id', 'report_date', name='uq_report_employee_date'),
    )


# ============================================================================
# MESSAGE MODEL
# ============================================================================

class Message(Base):
    __tablename__ = 'messages'

    id = Column(Integer, primary_key=True, index=True)
    sender_type = Column(String(20), nullable=False)
    sender_id = Column(Integer, nullable=False)
    receiver_type = Column(String(20), nullable=False)
    receiver_id = Column(Integer, nullable=False)
    message_text = Column(Unicode(4000), nullable=False)
    attachment_link = Column(String, nullable=True)

    # Soft delete only
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        Index('idx_message_receiver', 'receiver_type', 'receiver_id', 'is_deleted'),
        Index('idx_message_sender', 'sender_type', 'sender_id', 'is_deleted'),
    )


# ============================================================================
# TOKEN BLACKLIST MODEL
# ============================================================================

class TokenBlacklist(Base):
    __tablename__ = 'token_blacklist'

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(50), unique=True, nullable=False, index=True)
    principal_type = Column(String(20), nullable=False)
    principal_id = Column(Integer, nullable=False)
    username = Column(String(50), nullable=False)
    blacklisted_at = Column(DateTime, default=_utcnow)
    token_exp = Column(DateTime, nullable=False)
    reason = Column(String(50), default="user_logout")

    __table_args__ = (
        Index('idx_blacklist_principal', 'principal_type', 'principal_id'),
        Index('idx_blacklist_exp', 'token_exp'),
    )
