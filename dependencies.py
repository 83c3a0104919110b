from fastapi.security import OAuth2PasswordBearer
from fastapi import Depends, HTTPException, status, APIRouter
from jose import JWTError
from sqlalchemy.orm import Session
from db import get_db
from models import TokenBlacklist
from auth import decode_access_token, parse_subject
from schemas import Principal
from services.identity_service import authorize, load_principal
from datetime import datetime, timezone
import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

# In-memory cache for blacklisted tokens
# Dictionary: {jti: expiry_datetime (naive UTC)}
blacklist_cache = {}
CACHE_MAX_SIZE = 10000  # Maximum tokens to cache in memory


def _now_naive():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def cleanup_expired_cache():
    """Remove expired tokens from memory cache"""
    now = _now_naive()
    expired_keys = [
        jti for jti, exp_time in blacklist_cache.items()
        if exp_time < now
    ]
    for key in expired_keys:
        del blacklist_cache[key]

    if expired_keys:
        logger.debug(f"Cache cleanup: Removed {len(expired_keys)} expired tokens")


def is_token_blacklisted_cached(jti: str, db: Session) -> bool:
    """
    Check if token is blacklisted, memory cache first, then the table.

    Args:
        jti: JWT ID from token
        db: Database session

    Returns:
        True if token is blacklisted, False otherwise
    """
    if jti in blacklist_cache:
        if blacklist_cache[jti] > _now_naive():
            logger.debug(f"Cache HIT: Token {jti[:8]}... is blacklisted")
            return True
        # Expired tokens fail signature validation anyway
        del blacklist_cache[jti]
        return False

    blacklisted = db.query(TokenBlacklist).filter(
        TokenBlacklist.jti == jti
    ).first()

    if blacklisted:
        blacklist_cache[jti] = blacklisted.token_exp
        if len(blacklist_cache) > CACHE_MAX_SIZE:
            cleanup_expired_cache()
        logger.debug(f"Cache MISS->STORE: Token {jti[:8]}... cached")
        return True

    return False


def get_current_principal(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Principal:
    """
    Validate the bearer token and return the principal behind it.

    The record is reloaded on every request so that deactivating a company,
    branch or employee takes effect immediately, and the stored role is used
    rather than the role claim in the token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise credentials_exception

    subject = parse_subject(payload.get("sub"))
    jti = payload.get("jti")
    if subject is None:
        logger.warning("Invalid token payload: missing or malformed sub")
        raise credentials_exception

    if jti and is_token_blacklisted_cached(jti, db):
        logger.warning(f"Revoked token used for {payload.get('sub')}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked. Please login again.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    kind, principal_id = subject
    principal = load_principal(db, kind, principal_id)
    if principal is None:
        logger.warning(f"Principal {kind}:{principal_id} missing or deactivated")
        raise credentials_exception

    if principal.role != payload.get("role"):
        logger.info(f"Role changed for {principal.username}: token={payload.get('role')}, db={principal.role}")

    return principal


class RoleChecker:
    def __init__(self, allowed_roles):
        self.allowed_roles = set(allowed_roles)

    def __call__(self, principal: Principal = Depends(get_current_principal)) -> Principal:
        if not authorize(principal, self.allowed_roles):
            logger.warning(f"Unauthorized access attempt: {principal.username} ({principal.role}) needs one of {sorted(self.allowed_roles)}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return principal


allow_admin = RoleChecker(["admin"])
allow_company = RoleChecker(["company"])
allow_supervisors = RoleChecker(["company", "manager", "asst_manager"])
allow_branch_leads = RoleChecker(["manager", "asst_manager"])
allow_employee_family = RoleChecker(["manager", "asst_manager", "employee"])
allow_report_readers = RoleChecker(["admin", "company", "manager", "asst_manager"])


def forbidden(detail: str = "Operation not permitted"):
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def assert_company_scope(principal: Principal, company_id: int) -> None:
    """Non-admin principals may only touch their own company."""
    if principal.role == "admin":
        return
    if principal.company_id != company_id:
        raise forbidden()


def assert_branch_scope(principal: Principal, branch) -> None:
    """Companies reach every branch they own; branch staff only their own branch."""
    assert_company_scope(principal, branch.company_id)
    if principal.role in ("manager", "asst_manager", "employee") and principal.branch_id != branch.id:
        raise forbidden()


router = APIRouter()

@router.get("/auth/me", response_model=Principal)
def read_current_principal(principal: Principal = Depends(get_current_principal)):
    """Get the principal behind the current token"""
    logger.debug(f"Principal requested by {principal.username}")
    return principal

@router.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.
    Returns blacklist cache statistics.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": {
            "size": len(blacklist_cache),
            "max_size": CACHE_MAX_SIZE,
            "utilization_percent": round((len(blacklist_cache) / CACHE_MAX_SIZE) * 100, 2) if CACHE_MAX_SIZE > 0 else 0
        }
    }
