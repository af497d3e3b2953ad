import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .models import (
    CategoryCount, CreateCustomerRequest, CreateRewardRequest, Customer,
    CustomerHistoryResponse, MonthlyStat, PointsSummary, RecordRedemptionRequest,
    RecordTransactionRequest, Redemption, RedemptionResponse, Reward,
    RewardCategory, Tier, TierCount, TierName, TierProgress, Transaction,
    TransactionResponse, UpdateCustomerRequest, UpdateRewardRequest,
)
from .service import (
    LedgerService, LedgerServiceError, CustomerNotFoundError, RewardNotFoundError,
    RewardInUseError, CustomerInUseError,
)
from .stats import StatsAggregator
from .storage import JsonFileBlobStore

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> LedgerService:
    blob_store = JsonFileBlobStore(settings.data_dir) if settings.data_dir else None
    return LedgerService(
        blob_store=blob_store,
        namespace=settings.namespace,
        seed_rewards=settings.seed_rewards,
    )


settings = get_settings()
logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title="Loyalty Ledger API",
    description="Tiered loyalty points ledger with spend-based tiers, point accrual and reward redemption",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ledger_service = build_service(settings)


def get_ledger_service() -> LedgerService:
    return ledger_service


def _http_error(error: LedgerServiceError) -> HTTPException:
    if isinstance(error, (CustomerNotFoundError, RewardNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (RewardInUseError, CustomerInUseError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    logger.info("Rejected ledger request: %s", error)
    return HTTPException(status_code=code, detail=str(error))


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "healthy", "service": "loyalty-ledger"}


@app.get("/tiers", response_model=list[Tier], tags=["System"])
def list_tiers(service: LedgerService = Depends(get_ledger_service)) -> list[Tier]:
    return list(service.tier_table.tiers)


# Customers

@app.post("/customers", response_model=Customer, status_code=status.HTTP_201_CREATED, tags=["Customers"])
def create_customer(request: CreateCustomerRequest, service: LedgerService = Depends(get_ledger_service)) -> Customer:
    return service.create_customer(request.name, request.email, request.phone)


@app.get("/customers", response_model=list[Customer], tags=["Customers"])
def list_customers(
    search: Optional[str] = None,
    tier: Optional[TierName] = None,
    sort_by: str = Query("name", pattern="^(name|points|spend|join_date)$"),
    descending: bool = False,
    service: LedgerService = Depends(get_ledger_service),
) -> list[Customer]:
    return service.search_customers(search=search, tier=tier, sort_by=sort_by, descending=descending)


@app.get("/customers/{customer_id}", response_model=Customer, tags=["Customers"])
def get_customer(customer_id: UUID, service: LedgerService = Depends(get_ledger_service)) -> Customer:
    try:
        return service.get_customer(customer_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.patch("/customers/{customer_id}", response_model=Customer, tags=["Customers"])
def update_customer(
    customer_id: UUID,
    request: UpdateCustomerRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> Customer:
    try:
        return service.update_customer(customer_id, request.name, request.email, request.phone)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.delete("/customers/{customer_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Customers"])
def delete_customer(customer_id: UUID, service: LedgerService = Depends(get_ledger_service)) -> Response:
    try:
        service.delete_customer(customer_id)
    except LedgerServiceError as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/customers/{customer_id}/history", response_model=CustomerHistoryResponse, tags=["Customers"])
def get_customer_history(
    customer_id: UUID,
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    service: LedgerService = Depends(get_ledger_service),
) -> CustomerHistoryResponse:
    try:
        return service.get_customer_history(customer_id, limit, offset)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/customers/{customer_id}/tier-progress", response_model=TierProgress, tags=["Customers"])
def get_tier_progress(customer_id: UUID, service: LedgerService = Depends(get_ledger_service)) -> TierProgress:
    try:
        return service.tier_progress(customer_id)
    except LedgerServiceError as e:
        raise _http_error(e)


# Ledger

@app.post(
    "/customers/{customer_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Ledger"],
)
def record_transaction(
    customer_id: UUID,
    request: RecordTransactionRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> TransactionResponse:
    try:
        return service.purchase(customer_id, request.amount, request.store_location)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.post(
    "/customers/{customer_id}/redemptions",
    response_model=RedemptionResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Ledger"],
)
def record_redemption(
    customer_id: UUID,
    request: RecordRedemptionRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> RedemptionResponse:
    try:
        return service.redeem(customer_id, request.reward_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.get("/transactions", response_model=list[Transaction], tags=["Ledger"])
def list_transactions(
    customer_id: Optional[UUID] = None,
    service: LedgerService = Depends(get_ledger_service),
) -> list[Transaction]:
    return service.list_transactions(customer_id)


@app.get("/redemptions", response_model=list[Redemption], tags=["Ledger"])
def list_redemptions(
    customer_id: Optional[UUID] = None,
    service: LedgerService = Depends(get_ledger_service),
) -> list[Redemption]:
    return service.list_redemptions(customer_id)


# Rewards

@app.post("/rewards", response_model=Reward, status_code=status.HTTP_201_CREATED, tags=["Rewards"])
def create_reward(request: CreateRewardRequest, service: LedgerService = Depends(get_ledger_service)) -> Reward:
    return service.create_reward(request.name, request.description, request.points_cost, request.category)


@app.get("/rewards", response_model=list[Reward], tags=["Rewards"])
def list_rewards(
    category: Optional[RewardCategory] = None,
    service: LedgerService = Depends(get_ledger_service),
) -> list[Reward]:
    return service.list_rewards(category)


@app.get("/rewards/{reward_id}", response_model=Reward, tags=["Rewards"])
def get_reward(reward_id: UUID, service: LedgerService = Depends(get_ledger_service)) -> Reward:
    try:
        return service.get_reward(reward_id)
    except LedgerServiceError as e:
        raise _http_error(e)


@app.patch("/rewards/{reward_id}", response_model=Reward, tags=["Rewards"])
def update_reward(
    reward_id: UUID,
    request: UpdateRewardRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> Reward:
    try:
        return service.update_reward(
            reward_id, request.name, request.description, request.points_cost, request.category
        )
    except LedgerServiceError as e:
        raise _http_error(e)


@app.delete("/rewards/{reward_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Rewards"])
def delete_reward(reward_id: UUID, service: LedgerService = Depends(get_ledger_service)) -> Response:
    try:
        service.delete_reward(reward_id)
    except LedgerServiceError as e:
        raise _http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Stats

@app.get("/stats/monthly", response_model=list[MonthlyStat], tags=["Stats"])
def monthly_stats(
    now: Optional[datetime] = None,
    service: LedgerService = Depends(get_ledger_service),
) -> list[MonthlyStat]:
    return StatsAggregator(service).monthly_series(now)


@app.get("/stats/tiers", response_model=list[TierCount], tags=["Stats"])
def tier_stats(service: LedgerService = Depends(get_ledger_service)) -> list[TierCount]:
    return StatsAggregator(service).tier_distribution()


@app.get("/stats/redemptions", response_model=list[CategoryCount], tags=["Stats"])
def redemption_stats(service: LedgerService = Depends(get_ledger_service)) -> list[CategoryCount]:
    return StatsAggregator(service).redemptions_by_category()


@app.get("/stats/points", response_model=PointsSummary, tags=["Stats"])
def points_stats(service: LedgerService = Depends(get_ledger_service)) -> PointsSummary:
    return StatsAggregator(service).points_summary()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
