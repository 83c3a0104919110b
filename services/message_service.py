"""
Message Service
===============
Messages between admins, companies, branches and employees.
Deletion is a soft delete by the sender; listings never return deleted rows.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from errors import NotFoundError
from models import Branch, Company, Employee, Message, MESSAGE_RECEIVER_TYPES, MESSAGE_SENDER_TYPES
from utils import utc_now

logger = logging.getLogger(__name__)


def send_message(
    db: Session,
    sender_type: str,
    sender_id: int,
    receiver_type: str,
    receiver_id: int,
    message_text: str,
    attachment_link: Optional[str] = None,
) -> Message:
    if sender_type not in MESSAGE_SENDER_TYPES:
        raise ValueError(f"Invalid sender type: {sender_type}")
    if receiver_type not in MESSAGE_RECEIVER_TYPES:
        raise ValueError(f"Invalid receiver type: {receiver_type}")
    if _receiver_name(db, receiver_type, receiver_id) is None:
        raise NotFoundError(f"{receiver_type.capitalize()} not found")

    now = utc_now()
    message = Message(
        sender_type=sender_type,
        sender_id=sender_id,
        receiver_type=receiver_type,
        receiver_id=receiver_id,
        message_text=message_text,
        attachment_link=attachment_link,
        is_deleted=False,
        created_at=now,
        updated_at=now,
    )
    db.add(message)
    db.flush()
    return message


def list_messages(
    db: Session,
    receiver_type: Optional[str] = None,
    receiver_id: Optional[int] = None,
    sender_type: Optional[str] = None,
    sender_id: Optional[int] = None,
) -> list[Message]:
    """Non-deleted messages, newest first. Type and id filters apply as pairs."""
    query = db.query(Message).filter(Message.is_deleted == False)

    if receiver_type and receiver_id is not None:
        query = query.filter(Message.receiver_type == receiver_type, Message.receiver_id == receiver_id)

    if sender_type and sender_id is not None:
        query = query.filter(Message.sender_type == sender_type, Message.sender_id == sender_id)

    return query.order_by(Message.created_at.desc(), Message.id.desc()).all()


def get_message(db: Session, message_id: int) -> Message:
    message = db.query(Message).filter(
        Message.id == message_id,
        Message.is_deleted == False
    ).first()
    if not message:
        raise NotFoundError("Message not found")
    return message


def delete_message(db: Session, message_id: int, sender_type: str, sender_id: int) -> Message:
    """Flag the message as deleted. Only the original sender may do this."""
    message = db.query(Message).filter(
        Message.id == message_id,
        Message.sender_type == sender_type,
        Message.sender_id == sender_id,
        Message.is_deleted == False
    ).first()
    if not message:
        raise NotFoundError("Message not found")

    message.is_deleted = True
    message.updated_at = utc_now()
    db.flush()

    logger.info(f"Message {message_id} deleted by {sender_type}:{sender_id}")
    return message


def _sender_name(db: Session, sender_type: str, sender_id: int) -> str:
    if sender_type == "admin":
        return "System Administrator"
    if sender_type == "company":
        company = db.query(Company).filter(Company.id == sender_id).first()
        return company.company_name if company else "Unknown Company"
    employee = db.query(Employee).filter(Employee.id == sender_id).first()
    return employee.employee_name if employee else "Unknown Employee"


def _receiver_name(db: Session, receiver_type: str, receiver_id: int) -> Optional[str]:
    if receiver_type == "company":
        company = db.query(Company).filter(Company.id == receiver_id).first()
        return company.company_name if company else None
    if receiver_type == "branch":
        branch = db.query(Branch).filter(Branch.id == receiver_id).first()
        return branch.branch_name if branch else None
    employee = db.query(Employee).filter(Employee.id == receiver_id).first()
    return employee.employee_name if employee else None


def get_message_with_details(db: Session, message_id: int) -> dict:
    message = get_message(db, message_id)
    receiver_name = _receiver_name(db, message.receiver_type, message.receiver_id)
    if receiver_name is None:
        receiver_name = f"Unknown {message.receiver_type.capitalize()}"

    return {
        "id": message.id,
        "sender_type": message.sender_type,
        "sender_id": message.sender_id,
        "receiver_type": message.receiver_type,
        "receiver_id": message.receiver_id,
        "message_text": message.message_text,
        "attachment_link": message.attachment_link,
        "is_deleted": message.is_deleted,
        "created_at": message.created_at,
        "updated_at": message.updated_at,
        "sender_name": _sender_name(db, message.sender_type, message.sender_id),
        "receiver_name": receiver_name,
    }
