"""
Task Service - Assignment Fan-out and Completion Aggregation
=============================================================

A task targets either a branch or a single employee.

- Branch task: one completion row per active employee of the branch at
  creation time. The task completes once every active employee of the
  branch has a completed row.
- Employee task: exactly one completion row; the task completes with it.

Functions here only add/flush. The caller commits, so a task and its
completion rows land in the same transaction.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from errors import NotFoundError
from models import (
    Branch,
    Employee,
    Task,
    TaskCompletion,
    TASK_ASSIGNEE_TYPES,
    TASK_ASSIGNER_TYPES,
)
from utils import utc_now

logger = logging.getLogger(__name__)


# ============================================================================
# LOOKUPS
# ============================================================================

def get_task(db: Session, task_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise NotFoundError("Task not found")
    return task


def active_branch_employee_ids(db: Session, branch_id: int) -> list[int]:
    """Ids of the branch's currently active employees, oldest first."""
    rows = db.query(Employee.id).filter(
        Employee.branch_id == branch_id,
        Employee.is_active == True
    ).order_by(Employee.id).all()
    return [row.id for row in rows]


def _get_completion(db: Session, task_id: int, employee_id: int) -> Optional[TaskCompletion]:
    return db.query(TaskCompletion).filter(
        TaskCompletion.task_id == task_id,
        TaskCompletion.employee_id == employee_id
    ).first()


# ============================================================================
# CREATE (FAN-OUT)
# ============================================================================

def create_task(
    db: Session,
    title: str,
    description: Optional[str],
    assigned_to: str,
    assigned_id: int,
    assigned_by: str,
    assigned_by_id: int,
) -> Task:
    """
    Create a task together with its completion rows.

    Args:
        db: Database session
        title: Task title
        description: Free text
        assigned_to: "branch" or "employee"
        assigned_id: Target branch or employee ID
        assigned_by: "company", "manager" or "asst_manager"
        assigned_by_id: ID of the assigner

    Returns:
        Task: Flushed (not committed) task
    """
    if assigned_to not in TASK_ASSIGNEE_TYPES:
        raise ValueError(f"Invalid assignee type: {assigned_to}")
    if assigned_by not in TASK_ASSIGNER_TYPES:
        raise ValueError(f"Invalid assigner type: {assigned_by}")

    if assigned_to == "branch":
        if not db.query(Branch).filter(Branch.id == assigned_id).first():
            raise NotFoundError("Branch not found")
    else:
        if not db.query(Employee).filter(Employee.id == assigned_id).first():
            raise NotFoundError("Employee not found")

    now = utc_now()
    task = Task(
        title=title,
        description=description or "",
        assigned_to=assigned_to,
        assigned_id=assigned_id,
        assigned_by=assigned_by,
        assigned_by_id=assigned_by_id,
        is_completed=False,
        created_at=now,
        updated_at=now,
    )
    db.add(task)
    db.flush()

    if assigned_to == "branch":
        target_ids = active_branch_employee_ids(db, assigned_id)
        if not target_ids:
            logger.warning(f"Task {task.id} assigned to branch {assigned_id} with no active employees")
    else:
        target_ids = [assigned_id]

    for employee_id in target_ids:
        db.add(TaskCompletion(
            task_id=task.id,
            employee_id=employee_id,
            is_completed=False,
            created_at=now,
            updated_at=now,
        ))
    db.flush()

    logger.info(f"Task {task.id} created by {assigned_by}:{assigned_by_id} for {assigned_to}:{assigned_id} ({len(target_ids)} completion rows)")
    return task


# ============================================================================
# COMPLETE
# ============================================================================

def _mark_completed(db: Session, task_id: int, employee_id: int) -> TaskCompletion:
    now = utc_now()
    completion = _get_completion(db, task_id, employee_id)

    if completion:
        if not completion.is_completed:
            completion.is_completed = True
            completion.completed_at = now
        completion.updated_at = now
    else:
        # Normally created at assignment time
        completion = TaskCompletion(
            task_id=task_id,
            employee_id=employee_id,
            is_completed=True,
            completed_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(completion)

    db.flush()
    return completion


def refresh_task_aggregate(db: Session, task: Task) -> bool:
    """
    Re-derive a branch task's completion flag from its rows.

    The task completes when the completed rows belonging to currently active
    branch employees cover every active employee. A task nobody has completed
    stays open even if the branch has no active employees left. The flag is
    never cleared here, so supervisory overrides stick.
    """
    if task.assigned_to != "branch" or task.is_completed:
        return task.is_completed

    any_completed = db.query(TaskCompletion.id).filter(
        TaskCompletion.task_id == task.id,
        TaskCompletion.is_completed == True
    ).first()
    if not any_completed:
        return False

    active_ids = active_branch_employee_ids(db, task.assigned_id)
    completed_count = 0
    if active_ids:
        completed_count = db.query(func.count(TaskCompletion.id)).filter(
            TaskCompletion.task_id == task.id,
            TaskCompletion.is_completed == True,
            TaskCompletion.employee_id.in_(active_ids)
        ).scalar() or 0

    if completed_count >= len(active_ids):
        task.is_completed = True
        task.updated_at = utc_now()
        db.flush()
        logger.info(f"Task {task.id} complete: {completed_count}/{len(active_ids)} active employees done")

    return task.is_completed


def complete_task(db: Session, task_id: int, employee_id: int) -> Task:
    """
    Record one employee's completion and update the task aggregate.

    Safe to repeat: the second call for the same employee changes nothing.
    """
    task = get_task(db, task_id)
    if not db.query(Employee.id).filter(Employee.id == employee_id).first():
        raise NotFoundError("Employee not found")

    _mark_completed(db, task_id, employee_id)

    if task.assigned_to == "employee":
        if not task.is_completed:
            task.is_completed = True
            task.updated_at = utc_now()
            db.flush()
    else:
        refresh_task_aggregate(db, task)

    return task


def manager_complete_task(db: Session, task_id: int, branch_id: int) -> Task:
    """
    Supervisory bulk closure.

    Completes the task for every active employee of the branch (the same
    roster the aggregate uses), then forces the task complete whatever the
    aggregate says.
    """
    task = get_task(db, task_id)
    branch = db.query(Branch).filter(Branch.id == branch_id).first()
    if not branch:
        raise NotFoundError("Branch not found")

    if task.assigned_to == "branch":
        if task.assigned_id != branch_id:
            raise ValueError("Task is not assigned to this branch")
        roster = active_branch_employee_ids(db, branch_id)
    else:
        assignee = db.query(Employee).filter(Employee.id == task.assigned_id).first()
        if not assignee or assignee.branch_id != branch_id:
            raise ValueError("Task assignee does not belong to this branch")
        roster = [assignee.id]

    for employee_id in roster:
        complete_task(db, task_id, employee_id)

    task.is_completed = True
    task.updated_at = utc_now()
    db.flush()

    logger.info(f"Task {task_id} force-completed for branch {branch_id} ({len(roster)} employees)")
    return task


def get_task_completion_status(db: Session, task_id: int, employee_id: int) -> bool:
    """False when the employee has no completion row for the task."""
    completion = _get_completion(db, task_id, employee_id)
    return bool(completion and completion.is_completed)


# ============================================================================
# LISTING
# ============================================================================

def list_tasks(
    db: Session,
    company_id: Optional[int] = None,
    branch_id: Optional[int] = None,
    employee_id: Optional[int] = None,
    assigned_to: Optional[str] = None,
    assigned_id: Optional[int] = None,
    is_completed: Optional[bool] = None,
    assigned_by: Optional[str] = None,
    assigned_by_id: Optional[int] = None,
) -> list[Task]:
    """
    Filter tasks. Newest first.

    - company_id: tasks the company itself assigned
    - branch_id: tasks assigned to the branch
    - employee_id: tasks the employee holds a completion row for
    """
    query = db.query(Task)

    if company_id is not None:
        query = query.filter(Task.assigned_by == "company", Task.assigned_by_id == company_id)

    if branch_id is not None:
        query = query.filter(Task.assigned_to == "branch", Task.assigned_id == branch_id)

    if employee_id is not None:
        held = db.query(TaskCompletion.task_id).filter(TaskCompletion.employee_id == employee_id)
        query = query.filter(Task.id.in_(held))

    if assigned_to is not None:
        query = query.filter(Task.assigned_to == assigned_to)
        if assigned_id is not None:
            query = query.filter(Task.assigned_id == assigned_id)

    if is_completed is not None:
        query = query.filter(Task.is_completed == is_completed)

    if assigned_by is not None:
        query = query.filter(Task.assigned_by == assigned_by)
        if assigned_by_id is not None:
            query = query.filter(Task.assigned_by_id == assigned_by_id)

    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def get_task_with_details(db: Session, task_id: int) -> dict:
    """Task plus its completion rows (with employee names) and counts."""
    task = get_task(db, task_id)
    completions = db.query(TaskCompletion).options(
        joinedload(TaskCompletion.employee)
    ).filter(TaskCompletion.task_id == task_id).order_by(TaskCompletion.id).all()

    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "assigned_to": task.assigned_to,
        "assigned_id": task.assigned_id,
        "assigned_by": task.assigned_by,
        "assigned_by_id": task.assigned_by_id,
        "is_completed": task.is_completed,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "completions": completions,
        "completed_count": sum(1 for c in completions if c.is_completed),
        "total_count": len(completions),
    }


# ============================================================================
# RECONCILIATION (scheduled)
# ============================================================================

def reconcile_branch_tasks(db: Session) -> int:
    """
    Re-derive the aggregate for every open branch task.

    Picks up tasks whose last two completions raced and both read a
    "not yet done" snapshot. Returns how many tasks flipped to complete.
    """
    open_tasks = db.query(Task).filter(
        Task.assigned_to == "branch",
        Task.is_completed == False
    ).all()

    flipped = 0
    for task in open_tasks:
        if refresh_task_aggregate(db, task):
            flipped += 1
    return flipped
