from fastapi import APIRouter, FastAPI, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.middleware.cors import CORSMiddleware
import os

from sqlalchemy.orm import Session
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from dotenv import load_dotenv
import logging

# Database imports
from db import get_db, engine, SessionLocal, transaction

# Model imports
from models import Base, TokenBlacklist

# Schema imports
from schemas import Token, LogoutResponse

# Auth imports
from auth import (
    create_access_token,
    decode_access_token,
    principal_subject,
    parse_subject,
    ACCESS_TOKEN_EXPIRE_MINUTES
)

# Dependency imports
from dependencies import oauth2_scheme, blacklist_cache, cleanup_expired_cache
from dependencies import router as dependencies_router

# Router imports
from router import companies, branches, employees, tasks, reports, messages, profile, admin_auth

# Service imports
from errors import AuthFailure, PersistenceError
from services.identity_service import authenticate
from services.task_service import reconcile_branch_tasks
from utils import resolve_timezone, utc_now

load_dotenv()

logger = logging.getLogger("scheduler")

SCHEDULER_TZ = resolve_timezone(os.getenv("SCHEDULER_TIMEZONE", "UTC"))
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "true").lower() in ("1", "true", "yes")

scheduler = BackgroundScheduler(timezone=SCHEDULER_TZ)


def cleanup_expired_blacklist():
    """
    Remove expired tokens from blacklist table.

    Deletes in batches to keep table locks short, then drops the same
    entries from the in-memory cache. Runs daily at 2:30.
    """
    db = SessionLocal()
    try:
        now = utc_now()

        expired_count = db.query(TokenBlacklist).filter(
            TokenBlacklist.token_exp < now
        ).count()

        if expired_count == 0:
            logger.info("✅ Token blacklist cleanup: No expired tokens")
            return

        logger.info(f"🧹 Starting cleanup: {expired_count} expired tokens to remove")

        batch_size = 1000
        total_deleted = 0

        while True:
            ids = [
                row.id for row in db.query(TokenBlacklist.id).filter(
                    TokenBlacklist.token_exp < now
                ).limit(batch_size).all()
            ]
            if not ids:
                break

            deleted = db.query(TokenBlacklist).filter(
                TokenBlacklist.id.in_(ids)
            ).delete(synchronize_session=False)
            db.commit()
            total_deleted += deleted
            logger.debug(f"Cleanup batch: Deleted {deleted} tokens, total={total_deleted}")

        cleanup_expired_cache()

        logger.info(f"✅ Cleanup complete: Removed {total_deleted} expired tokens from database and cache")

    except Exception as e:
        db.rollback()
        logger.error(f"❌ Cleanup error: {str(e)}")
    finally:
        db.close()


def reconcile_branch_tasks_job():
    db = SessionLocal()
    try:
        flipped = reconcile_branch_tasks(db)
        db.commit()
        logger.info(f"Branch task reconcile done. completed={flipped}")
    except Exception as ex:
        db.rollback()
        logger.exception("Branch task reconcile failed: %s", ex)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    if ENABLE_SCHEDULER:
        scheduler.add_job(
            cleanup_expired_blacklist,
            CronTrigger(hour=2, minute=30, timezone=SCHEDULER_TZ),
            id='cleanup_token_blacklist',
            name='Clean up expired token blacklist entries',
            replace_existing=True
        )
        scheduler.add_job(
            reconcile_branch_tasks_job,
            CronTrigger(minute=15, timezone=SCHEDULER_TZ),
            id='reconcile_branch_tasks',
            name='Re-derive completion of open branch tasks',
            replace_existing=True
        )
        scheduler.start()
    try:
        yield
    finally:
        # shutdown
        if scheduler.running:
            scheduler.shutdown()


app = FastAPI(
    title="OrgDesk API",
    version="1.0.0",
    lifespan=lifespan
)

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(status_code=500, content={"detail": f"Database error: {str(exc)}"})


router = APIRouter()


@router.post("/token", response_model=Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    role: str = Form("employee"),
    db: Session = Depends(get_db)
):
    """
    Log in as an admin, company or employee.

    The `role` form field picks which account table is searched. For
    employees the stored role is returned, whatever was claimed.
    """
    try:
        principal = authenticate(db, form_data.username, form_data.password, role)
    except AuthFailure:
        raise HTTPException(
            status_code=401,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(
        data={
            "sub": principal_subject(principal.kind, principal.id),
            "username": principal.username,
            "role": principal.role,
            "company_id": principal.company_id,
            "branch_id": principal.branch_id,
        },
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "principal": principal,
    }


@router.post("/logout", response_model=LogoutResponse)
def logout(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
):
    """
    Logout by blacklisting the current JWT.

    Calling it again with the same token is a no-op that reports
    "Already logged out".
    """
    payload = decode_access_token(token)
    subject = parse_subject(payload.get("sub"))
    jti = payload.get("jti")
    username = payload.get("username") or payload.get("sub")

    if subject is None or not jti:
        logger.warning(f"Logout attempt with untracked token: {username}")
        raise HTTPException(status_code=400, detail="Token does not contain required tracking ID")

    existing = db.query(TokenBlacklist).filter(TokenBlacklist.jti == jti).first()
    if existing:
        logger.info(f"{username} attempted logout but already logged out")
        return LogoutResponse(message="Already logged out", success=True, username=username)

    token_exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None)
    kind, principal_id = subject

    try:
        with transaction(db):
            db.add(TokenBlacklist(
                jti=jti,
                principal_type=kind,
                principal_id=principal_id,
                username=username,
                token_exp=token_exp,
                reason="user_logout"
            ))
    except PersistenceError as e:
        logger.error(f"❌ Logout failed for {username}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Logout failed: {str(e)}")

    blacklist_cache[jti] = token_exp
    logger.info(f"✅ {username} logged out successfully")

    return LogoutResponse(message="Logged out successfully", success=True, username=username)


# Routers
app.include_router(router)
app.include_router(dependencies_router)
app.include_router(companies.router)
app.include_router(companies.dashboard_router)
app.include_router(branches.router)
app.include_router(employees.router)
app.include_router(tasks.router)
app.include_router(reports.router)
app.include_router(messages.router)
app.include_router(profile.router)
app.include_router(admin_auth.router)

Base.metadata.create_all(bind=engine)
