"""
Messages Router - Internal Messaging
====================================
Any authenticated principal can send to a company, branch or employee.
Inbox = messages addressed to the caller, their branch or their company.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from db import get_db, transaction
from dependencies import get_current_principal, forbidden
from errors import NotFoundError, PersistenceError
from models import Message
from schemas import MessageCreate, MessageOut, MessageDetailOut, Principal
from services.message_service import (
    send_message,
    list_messages,
    delete_message,
    get_message,
    get_message_with_details,
)

router = APIRouter(prefix="/messages", tags=["Messages"])


def _inbox_addresses(principal: Principal) -> list[tuple[str, int]]:
    """(receiver_type, receiver_id) pairs the principal reads."""
    if principal.role == "admin":
        return []
    if principal.role == "company":
        return [("company", principal.company_id)]
    return [("employee", principal.id), ("branch", principal.branch_id)]


def _can_read(message: Message, principal: Principal) -> bool:
    if message.sender_type == principal.kind and message.sender_id == principal.id:
        return True
    return (message.receiver_type, message.receiver_id) in _inbox_addresses(principal)


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def send(
    message: MessageCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    try:
        with transaction(db):
            db_message = send_message(
                db,
                sender_type=principal.kind,
                sender_id=principal.id,
                receiver_type=message.receiver_type,
                receiver_id=message.receiver_id,
                message_text=message.message_text,
                attachment_link=message.attachment_link,
            )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    db.refresh(db_message)
    return db_message


@router.get("/inbox", response_model=List[MessageOut])
def inbox(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Non-deleted messages addressed to the caller (or their branch/company), newest first."""
    messages = []
    for receiver_type, receiver_id in _inbox_addresses(principal):
        messages.extend(list_messages(db, receiver_type=receiver_type, receiver_id=receiver_id))
    messages.sort(key=lambda m: (m.created_at, m.id), reverse=True)
    return messages


@router.get("/sent", response_model=List[MessageOut])
def sent(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    return list_messages(db, sender_type=principal.kind, sender_id=principal.id)


@router.get("", response_model=List[MessageOut])
def search_messages(
    receiver_type: Optional[str] = Query(None),
    receiver_id: Optional[int] = Query(None),
    sender_type: Optional[str] = Query(None),
    sender_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Filter messages by sender/receiver pairs. Admin only beyond the caller's own mail."""
    messages = list_messages(
        db,
        receiver_type=receiver_type,
        receiver_id=receiver_id,
        sender_type=sender_type,
        sender_id=sender_id,
    )
    if principal.role == "admin":
        return messages
    return [m for m in messages if _can_read(m, principal)]


@router.get("/{message_id}", response_model=MessageDetailOut)
def read_message(
    message_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """Message with resolved sender and receiver names."""
    try:
        message = get_message(db, message_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if principal.role != "admin" and not _can_read(message, principal):
        raise forbidden()
    return get_message_with_details(db, message_id)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_message(
    message_id: int = Path(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal)
):
    """
    Soft delete a message the caller sent.

    The row stays in the database with is_deleted=true and disappears from
    every listing.
    """
    try:
        with transaction(db):
            delete_message(db, message_id, principal.kind, principal.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")
    return None
