import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from aggregation import current_time
from api_client import ApiClient, ApiError
from models import TransactionType
from periods import Period, resolve_period
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    CategoryIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    TransactionIn,
)
from services import (
    AuthService,
    BudgetService,
    CategoryService,
    DashboardService,
    SummaryCache,
    TransactionFilters,
    TransactionService,
)
from session import SESSION_COOKIE, decode_session, encode_session

logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Dashboard")

summary_cache = SummaryCache()
scheduler_manager = SchedulerManager(summary_cache)


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(ApiError)
def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status or 502, content={"detail": exc.detail})


def get_session_tokens(request: Request) -> dict[str, Optional[str]]:
    tokens = decode_session(request.cookies.get(SESSION_COOKIE))
    if tokens is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return tokens


def get_api_client(
    tokens: dict[str, Optional[str]] = Depends(get_session_tokens),
) -> ApiClient:
    return ApiClient(tokens["access"])


def get_public_client() -> ApiClient:
    return ApiClient()


def get_cache_key(tokens: dict[str, Optional[str]] = Depends(get_session_tokens)) -> str:
    return tokens["access"] or ""


def period_from_request(request: Request) -> Period:
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
            today=current_time().date(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> TransactionFilters:
    type_param = request.query_params.get("type")
    txn_type = None
    if type_param and type_param != "all":
        try:
            txn_type = TransactionType(type_param)
        except ValueError:
            txn_type = None
    return TransactionFilters(type=txn_type, query=request.query_params.get("q"))


def _start_session(response: Response, access: str, refresh: Optional[str]) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        encode_session(access, refresh),
        httponly=True,
        samesite="lax",
    )


@app.post("/auth/login")
def login(data: LoginIn, response: Response, client: ApiClient = Depends(get_public_client)):
    access, refresh, user = AuthService(client).login(data)
    logger.info(f"login: user_id={user.id}")
    _start_session(response, access, refresh)
    return {"user": user}


@app.post("/auth/register", status_code=201)
def register(
    data: RegisterIn, response: Response, client: ApiClient = Depends(get_public_client)
):
    try:
        access, refresh, user = AuthService(client).register(data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    _start_session(response, access, refresh)
    logger.info(f"register: user_id={user.id}")
    return {"user": user}


@app.post("/auth/logout")
def logout(request: Request, response: Response):
    tokens = decode_session(request.cookies.get(SESSION_COOKIE))
    if tokens is not None:
        summary_cache.invalidate(tokens["access"] or "")
    response.delete_cookie(SESSION_COOKIE)
    return {"ok": True}


@app.get("/profile")
def profile(client: ApiClient = Depends(get_api_client)):
    user = AuthService(client).profile()
    transactions = TransactionService(client).list_all()
    budgets = BudgetService(client).list_all()
    return {
        "user": user,
        "total_transactions": len(transactions),
        "budget": BudgetService.progress(budgets),
    }


@app.patch("/profile")
def update_profile(data: ProfileUpdateIn, client: ApiClient = Depends(get_api_client)):
    return {"user": AuthService(client).update_profile(data)}


@app.get("/dashboard")
def dashboard(
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    cached = summary_cache.get(cache_key)
    if cached is not None:
        return cached
    generation = summary_cache.generation()
    result = DashboardService(client).dashboard()
    summary_cache.put(cache_key, result, generation=generation)
    return result


@app.get("/analytics")
def analytics(request: Request, client: ApiClient = Depends(get_api_client)):
    period = period_from_request(request)
    result = DashboardService(client).analytics(
        period, category=request.query_params.get("category")
    )
    return {
        "period": period,
        "summary": result.summary,
        "category_trends": result.category_trends,
    }


@app.get("/transactions")
def list_transactions(request: Request, client: ApiClient = Depends(get_api_client)):
    filters = filters_from_request(request)
    service = TransactionService(client)
    transactions = service.list_all()
    categories = CategoryService(client).list_all()
    shown = TransactionService.filter(transactions, filters, categories)
    return {
        "transactions": shown,
        "shown": len(shown),
        "total": len(transactions),
        "totals": TransactionService.totals(transactions),
    }


@app.post("/transactions", status_code=201)
def create_transaction(
    data: TransactionIn,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    txn = TransactionService(client).create(data)
    summary_cache.invalidate(cache_key)
    return txn


@app.put("/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    data: TransactionIn,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    txn = TransactionService(client).update(transaction_id, data)
    summary_cache.invalidate(cache_key)
    return txn


@app.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: str,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    TransactionService(client).delete(transaction_id)
    summary_cache.invalidate(cache_key)
    return Response(status_code=204)


@app.get("/categories")
def list_categories(request: Request, client: ApiClient = Depends(get_api_client)):
    service = CategoryService(client)
    type_param = request.query_params.get("type")
    if type_param:
        try:
            return service.by_type(TransactionType(type_param))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Unknown category type") from exc
    return service.list_all()


@app.get("/categories/{category_id}")
def get_category(category_id: str, client: ApiClient = Depends(get_api_client)):
    try:
        return CategoryService(client).get(category_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/categories", status_code=201)
def create_category(
    data: CategoryIn,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    category = CategoryService(client).create(data)
    summary_cache.invalidate(cache_key)
    return category


@app.put("/categories/{category_id}")
def update_category(
    category_id: str,
    data: CategoryIn,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    category = CategoryService(client).update(category_id, data)
    summary_cache.invalidate(cache_key)
    return category


@app.delete("/categories/{category_id}", status_code=204)
def delete_category(
    category_id: str,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    CategoryService(client).delete(category_id)
    summary_cache.invalidate(cache_key)
    return Response(status_code=204)


@app.get("/budgets")
def list_budgets(client: ApiClient = Depends(get_api_client)):
    return BudgetService.progress(BudgetService(client).list_all())


@app.post("/budgets", status_code=201)
def create_budget(
    data: BudgetIn,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    budget = BudgetService(client).create(data)
    summary_cache.invalidate(cache_key)
    return budget


@app.put("/budgets/{budget_id}")
def update_budget(
    budget_id: str,
    data: BudgetIn,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    budget = BudgetService(client).update(budget_id, data)
    summary_cache.invalidate(cache_key)
    return budget


@app.delete("/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: str,
    client: ApiClient = Depends(get_api_client),
    cache_key: str = Depends(get_cache_key),
):
    BudgetService(client).delete(budget_id)
    summary_cache.invalidate(cache_key)
    return Response(status_code=204)
