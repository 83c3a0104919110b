"""
Tasks Router - Assignment and Completion
=========================================
Companies assign to any of their branches or employees; managers and
assistant managers assign inside their own branch. Employees complete their
own rows; managers may complete on behalf of their staff or close a branch
task outright.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from db import get_db, transaction
from dependencies import (
    allow_supervisors,
    allow_employee_family,
    RoleChecker,
    forbidden,
)
from errors import NotFoundError, PersistenceError
from models import Branch, Employee, Task, TaskCompletion
from schemas import (
    TaskCreate,
    TaskOut,
    TaskDetailOut,
    TaskCompleteRequest,
    TaskBranchCompleteRequest,
    TaskCompletionStatusOut,
    Principal,
)
from services.task_service import (
    create_task,
    complete_task,
    manager_complete_task,
    get_task,
    get_task_completion_status,
    get_task_with_details,
    list_tasks,
)

router = APIRouter(prefix="/tasks", tags=["Tasks"])

allow_task_readers = RoleChecker(["company", "manager", "asst_manager", "employee"])
allow_bulk_closers = RoleChecker(["company", "manager"])


# ============================================================================
# SCOPE HELPERS
# ============================================================================

def _target_in_scope(db: Session, principal: Principal, assigned_to: str, assigned_id: int) -> bool:
    """Whether the branch/employee target lies inside the principal's reach."""
    if assigned_to == "branch":
        branch = db.query(Branch).filter(Branch.id == assigned_id).first()
        if not branch:
            raise HTTPException(status_code=404, detail="Branch not found")
        if principal.role == "company":
            return branch.company_id == principal.company_id
        return branch.id == principal.branch_id

    employee = db.query(Employee).filter(Employee.id == assigned_id).first()
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    if principal.role == "company":
        return employee.company_id == principal.company_id
    if principal.role == "employee":
        return employee.id == principal.id
    return employee.branch_id == principal.branch_id


def _holds_row(db: Session, task_id: int, employee_id: int) -> bool:
    return db.query(TaskCompletion.id).filter(
        TaskCompletion.task_id == task_id,
        TaskCompletion.employee_id == employee_id
    ).first() is not None


def _readable_task(db: Session, task_id: int, principal: Principal) -> Task:
    try:
        task = get_task(db, task_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if principal.role == "employee":
        allowed = _holds_row(db, task.id, principal.id)
    else:
        allowed = _target_in_scope(db, principal, task.assigned_to, task.assigned_id)
        if not allowed and principal.role != "company":
            allowed = _holds_row(db, task.id, principal.id)
    if not allowed:
        raise forbidden()
    return task


# ============================================================================
# CREATE TASK
# ============================================================================

@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def assign_task(
    task: TaskCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_supervisors)
):
    """
    Create a task.

    - assigned_to=branch: one completion row per active employee of the branch
    - assigned_to=employee: exactly one completion row

    The task and its rows are committed together or not at all.
    """
    if not _target_in_scope(db, principal, task.assigned_to, task.assigned_id):
        raise forbidden("Task target is outside your company or branch")

    try:
        with transaction(db):
            db_task = create_task(
                db,
                title=task.title,
                description=task.description,
                assigned_to=task.assigned_to,
                assigned_id=task.assigned_id,
                assigned_by=principal.role,
                assigned_by_id=principal.id,
            )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(db_task)
    return db_task


# ============================================================================
# GET TASKS
# ============================================================================

@router.get("", response_model=List[TaskOut])
def get_tasks(
    branch_id: Optional[int] = Query(None, description="Tasks assigned to this branch"),
    employee_id: Optional[int] = Query(None, description="Tasks this employee holds a completion row for"),
    is_completed: Optional[bool] = Query(None),
    assigned_by_me: bool = Query(False, description="Only tasks the caller assigned"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_task_readers)
):
    """
    List tasks, newest first.

    Employees always get their own tasks. Without filters, a company gets
    the tasks it assigned and branch leads get their branch's tasks.
    """
    if principal.role == "employee":
        return list_tasks(db, employee_id=principal.id, is_completed=is_completed)

    if branch_id is not None and not _target_in_scope(db, principal, "branch", branch_id):
        raise forbidden()
    if employee_id is not None and not _target_in_scope(db, principal, "employee", employee_id):
        raise forbidden()

    assigned_by = principal.role if assigned_by_me else None
    assigned_by_id = principal.id if assigned_by_me else None

    if branch_id is None and employee_id is None and not assigned_by_me:
        if principal.role == "company":
            return list_tasks(db, company_id=principal.company_id, is_completed=is_completed)
        branch_id = principal.branch_id

    return list_tasks(
        db,
        branch_id=branch_id,
        employee_id=employee_id,
        is_completed=is_completed,
        assigned_by=assigned_by,
        assigned_by_id=assigned_by_id,
    )


@router.get("/{task_id}", response_model=TaskOut)
def get_single_task(
    task_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_task_readers)
):
    return _readable_task(db, task_id, principal)


@router.get("/{task_id}/details", response_model=TaskDetailOut)
def get_task_details(
    task_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_task_readers)
):
    """Task with every completion row and the completed/total counts."""
    _readable_task(db, task_id, principal)
    return get_task_with_details(db, task_id)


@router.get("/{task_id}/status", response_model=TaskCompletionStatusOut)
def get_completion_status(
    task_id: int = Path(...),
    employee_id: Optional[int] = Query(None, description="Defaults to the caller"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_employee_family)
):
    """Whether the employee has completed the task (false if they hold no row)."""
    _readable_task(db, task_id, principal)

    employee_id = employee_id if employee_id is not None else principal.id
    if employee_id != principal.id and (
        principal.role == "employee"
        or not _target_in_scope(db, principal, "employee", employee_id)
    ):
        raise forbidden()

    return {
        "task_id": task_id,
        "employee_id": employee_id,
        "is_completed": get_task_completion_status(db, task_id, employee_id),
    }


# ============================================================================
# COMPLETE TASK
# ============================================================================

@router.post("/{task_id}/complete", response_model=TaskOut)
def complete_own_task(
    task_id: int = Path(...),
    body: Optional[TaskCompleteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_employee_family)
):
    """
    Mark the task done for one employee and update the task's aggregate flag.

    Employees complete for themselves. Managers and assistant managers may
    pass employee_id to complete on behalf of someone in their branch.
    """
    try:
        task = get_task(db, task_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    employee_id = body.employee_id if body and body.employee_id is not None else principal.id
    if employee_id != principal.id:
        if principal.role == "employee" or not _target_in_scope(db, principal, "employee", employee_id):
            raise forbidden("You can only complete tasks for your own branch staff")

    # The employee must be a target of the task
    if task.assigned_to == "employee":
        is_target = task.assigned_id == employee_id
    else:
        employee = db.query(Employee).filter(Employee.id == employee_id).first()
        is_target = _holds_row(db, task_id, employee_id) or (
            employee is not None and employee.branch_id == task.assigned_id
        )
    if not is_target:
        raise forbidden("Task is not assigned to this employee")

    try:
        with transaction(db):
            task = complete_task(db, task_id, employee_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(task)
    return task


@router.post("/{task_id}/branch-complete", response_model=TaskOut)
def close_branch_task(
    task_id: int = Path(...),
    body: Optional[TaskBranchCompleteRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(allow_bulk_closers)
):
    """
    Supervisory bulk closure.

    Completes the task for every active employee of the branch and marks the
    task complete regardless of the aggregate. Managers act on their own
    branch; companies must name the branch.
    """
    branch_id = body.branch_id if body and body.branch_id is not None else principal.branch_id
    if branch_id is None:
        raise HTTPException(status_code=400, detail="branch_id is required")
    if not _target_in_scope(db, principal, "branch", branch_id):
        raise forbidden()

    try:
        with transaction(db):
            task = manager_complete_task(db, task_id, branch_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(task)
    return task
