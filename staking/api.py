from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .engine import RewardEngine
from .errors import (
    InsufficientPoolBalance,
    ReentrantCallError,
    StakingError,
    TransferFailure,
    UnknownIdentityError,
    ValidationError,
)
from .log import setup_logging
from .models import (
    BatchTransferReport,
    BatchTransferRequest,
    OwnershipRequest,
    PayoutRequest,
    PeriodicRewardReport,
    PeriodicRewardRequest,
    PoolResponse,
    ReferralTreeResponse,
    SignupRequest,
    SignupResponse,
    StakeRequest,
    Transaction,
    TransactionHistoryResponse,
    UserSummary,
)
from .ports import InMemoryValueTransfer


def build_engine() -> RewardEngine:
    settings = get_settings()
    return RewardEngine(
        InMemoryValueTransfer(pool_balance=settings.pool_seed),
        root=settings.root_identity,
        root_name=settings.root_name,
        owner=settings.owner_identity,
    )


def to_http_error(error: StakingError) -> HTTPException:
    if isinstance(error, UnknownIdentityError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, (InsufficientPoolBalance, ReentrantCallError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, TransferFailure):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def create_app(engine: Optional[RewardEngine] = None, root_path: str = "") -> FastAPI:
    engine = engine or build_engine()

    app = FastAPI(
        title="Referral Staking Ledger API",
        description="Custodial staking ledger with referral, level-up and periodic staking rewards",
        version="1.0.0",
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.engine = engine

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "staking-ledger"}

    @app.post("/users", response_model=SignupResponse, status_code=status.HTTP_201_CREATED, tags=["Users"])
    def signup(request: SignupRequest) -> SignupResponse:
        try:
            return engine.signup(request.identity, request.name, request.referrer, request.amount)
        except StakingError as e:
            raise to_http_error(e)

    @app.get("/users/{identity}", response_model=UserSummary, tags=["Users"])
    def get_user(identity: str) -> UserSummary:
        try:
            return engine.user(identity)
        except StakingError as e:
            raise to_http_error(e)

    @app.post("/users/{identity}/stake", response_model=Transaction, tags=["Users"])
    def stake(identity: str, request: StakeRequest) -> Transaction:
        try:
            return engine.stake(identity, request.amount)
        except StakingError as e:
            raise to_http_error(e)

    @app.get("/users/{identity}/referrals", response_model=ReferralTreeResponse, tags=["Users"])
    def get_referral_tree(identity: str) -> ReferralTreeResponse:
        try:
            return engine.referral_tree(identity)
        except StakingError as e:
            raise to_http_error(e)

    @app.get("/users/{identity}/transactions", response_model=TransactionHistoryResponse, tags=["Users"])
    def get_transactions(identity: str) -> TransactionHistoryResponse:
        try:
            return engine.transactions(identity)
        except StakingError as e:
            raise to_http_error(e)

    @app.get("/pool", response_model=PoolResponse, tags=["Pool"])
    def get_pool() -> PoolResponse:
        return engine.pool()

    @app.post("/admin/periodic-rewards", response_model=PeriodicRewardReport, tags=["Admin"])
    def distribute_periodic_rewards(request: PeriodicRewardRequest) -> PeriodicRewardReport:
        try:
            return engine.distribute_periodic_rewards(request.now)
        except StakingError as e:
            raise to_http_error(e)

    @app.post("/admin/payouts", response_model=PoolResponse, tags=["Admin"])
    def withdraw_pool(request: PayoutRequest) -> PoolResponse:
        try:
            engine.withdraw_pool(request.recipient, request.amount)
        except StakingError as e:
            raise to_http_error(e)
        return engine.pool()

    @app.post("/admin/batch-transfers", response_model=BatchTransferReport, tags=["Admin"])
    def batch_transfer(request: BatchTransferRequest) -> BatchTransferReport:
        groups = [[(item.recipient, item.amount) for item in group] for group in request.groups]
        try:
            return engine.batch_transfer(groups)
        except StakingError as e:
            raise to_http_error(e)

    @app.post("/admin/ownership", tags=["Admin"])
    def transfer_ownership(request: OwnershipRequest):
        try:
            previous = engine.transfer_ownership(request.new_owner)
        except StakingError as e:
            raise to_http_error(e)
        return {"previous_owner": previous, "owner": engine.owner}

    return app


setup_logging(get_settings().log_level)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
