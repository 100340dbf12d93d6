"""
HTTP Routes

Every response body is ``{"success": bool, ...}`` with camelCase keys.
Errors are raised as CashbookError subclasses and rendered by the
handlers registered in ``cashbook.api.app``; routes only deal with the
happy path.

Every privileged route re-validates the session token through
``current_user``; the cookie middleware only checks that one is present.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cashbook.config import get_settings
from cashbook.models.finance import (
    CategoryCreate,
    CategoryUpdate,
    RecognitionRequest,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    User,
)
from cashbook.orchestrator import AppComponents


router = APIRouter()


# ----------------------------------------------------------------------------
# Request bodies
# ----------------------------------------------------------------------------
class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class BatchRequest(BaseModel):
    # Items are validated one by one during the save
    transactions: list[dict[str, Any]] = Field(default_factory=list)


# ----------------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------------
def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(get_settings().session.cookie_name)


async def current_user(
    request: Request,
    components: AppComponents = Depends(get_components),
) -> User:
    return await components.auth_service.get_current_user(session_token(request))


def is_secure_request(request: Request) -> bool:
    """HTTPS directly, or behind a proxy that says so."""
    forwarded = request.headers.get("x-forwarded-proto", "")
    return request.url.scheme == "https" or forwarded.split(",")[0].strip().lower() == "https"


# ----------------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------------
@router.post("/auth/login")
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    components: AppComponents = Depends(get_components),
):
    user, session = await components.auth_service.login(payload.username, payload.password)

    settings = get_settings().session
    response.set_cookie(
        key=settings.cookie_name,
        value=session.token,
        max_age=settings.max_age_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=is_secure_request(request),
    )
    return {"success": True, "user": user.to_api()}


@router.post("/auth/logout")
async def logout(
    request: Request,
    response: Response,
    components: AppComponents = Depends(get_components),
):
    await components.auth_service.logout(session_token(request))
    response.delete_cookie(get_settings().session.cookie_name, path="/")
    return {"success": True}


@router.get("/auth/me")
async def me(user: User = Depends(current_user)):
    return {"success": True, "user": user.to_api()}


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
@router.get("/transactions")
async def list_transactions(
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    transactions = await components.transaction_service.list_transactions(user.id)
    return {"success": True, "transactions": [t.to_api() for t in transactions]}


@router.post("/transactions")
async def create_transaction(
    payload: TransactionCreate,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    transaction = await components.transaction_service.create_transaction(user.id, payload)
    return {"success": True, "transaction": transaction.to_api()}


@router.post("/transactions/batch")
async def create_transactions(
    payload: BatchRequest,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    transactions = await components.import_flow.confirm(user.id, payload.transactions)
    return {"success": True, "transactions": [t.to_api() for t in transactions]}


@router.patch("/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    transaction = await components.transaction_service.update_transaction(
        user.id, transaction_id, payload
    )
    return {"success": True, "transaction": transaction.to_api()}


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    await components.transaction_service.delete_transaction(user.id, transaction_id)
    return {"success": True}


# ----------------------------------------------------------------------------
# Categories
# ----------------------------------------------------------------------------
@router.get("/categories")
async def list_categories(
    category_type: Optional[TransactionType] = Query(default=None, alias="type"),
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    categories = await components.category_service.list_categories(user.id, category_type)
    return {"success": True, "categories": [c.to_api() for c in categories]}


@router.post("/categories")
async def create_category(
    payload: CategoryCreate,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    category = await components.category_service.create_category(user.id, payload)
    return {"success": True, "category": category.to_api()}


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    await components.category_service.update_category(user.id, category_id, payload)
    return {"success": True}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    await components.category_service.delete_category(user.id, category_id)
    return {"success": True}


# ----------------------------------------------------------------------------
# Recognition
# ----------------------------------------------------------------------------
@router.post("/recognize")
async def recognize(
    payload: RecognitionRequest,
    user: User = Depends(current_user),
    components: AppComponents = Depends(get_components),
):
    proposals = await components.import_flow.recognize(user.id, payload)
    return {"success": True, "transactions": [p.to_api() for p in proposals]}


# ----------------------------------------------------------------------------
# Health
# ----------------------------------------------------------------------------
@router.get("/health")
async def health(components: AppComponents = Depends(get_components)):
    if await components.database.ping():
        return {"success": True, "database": "ok"}
    return JSONResponse({"success": False, "database": "unavailable"}, status_code=503)
