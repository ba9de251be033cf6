"""能量路由

GET  /api/energy/balance        余额
GET  /api/energy/account        账户统计（余额、质押、累计获得/消耗）
POST /api/energy/credit         增加能量
POST /api/energy/debit          扣减能量
POST /api/energy/stake          质押 token
POST /api/energy/unstake        解除质押
POST /api/energy/purchase       用 token 兑换能量
GET  /api/energy/transactions   流水分页，最新的在前
"""

from typing import Any

from airouter.core.config import TRANSACTION_HISTORY_LIMIT
from airouter.core.ledger import EnergyLedger
from airouter.core.models import EnergyAccount, EnergySource, EnergyTransaction, StakeResult
from airouter.core.schedule import utcnow
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..deps import get_account_id, get_ledger

router = APIRouter()


class BalanceResponse(BaseModel):
    account_id: str
    balance: int


class EnergyChangeRequest(BaseModel):
    """增加 / 扣减请求体

    amount 不在请求体层做类型转换，交给账本统一校验并返回 INVALID_AMOUNT。
    """

    amount: Any = Field(description="正整数")
    source: EnergySource = Field(description="变动原因")
    details: dict[str, Any] | None = None
    reference_id: str | None = None


class StakeRequest(BaseModel):
    amount: Any = Field(description="质押 / 解除质押的 token 数量，正整数")


class PurchaseRequest(BaseModel):
    amount: Any = Field(description="兑换消耗的 token 数量，正整数")


class UnstakeResponse(BaseModel):
    account_id: str
    staked: int


class TransactionListResponse(BaseModel):
    transactions: list[EnergyTransaction]
    limit: int
    offset: int


@router.get("/api/energy/balance", response_model=BalanceResponse)
async def get_balance(
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    balance = await ledger.get_balance(account_id)
    return BalanceResponse(account_id=account_id, balance=balance)


@router.get("/api/energy/account", response_model=EnergyAccount)
async def get_account(
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    """账户统计，账户尚未创建时返回全零视图"""
    account = await ledger.get_account(account_id)
    if account is None:
        now = utcnow()
        account = EnergyAccount(account_id=account_id, created_at=now, updated_at=now)
    return account


@router.post("/api/energy/credit", response_model=BalanceResponse)
async def credit(
    body: EnergyChangeRequest,
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    balance = await ledger.credit(
        account_id,
        body.amount,
        body.source,
        details=body.details,
        reference_id=body.reference_id,
    )
    return BalanceResponse(account_id=account_id, balance=balance)


@router.post("/api/energy/debit", response_model=BalanceResponse)
async def debit(
    body: EnergyChangeRequest,
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    """扣减能量，余额不足返回 402"""
    balance = await ledger.debit(
        account_id,
        body.amount,
        body.source,
        details=body.details,
        reference_id=body.reference_id,
    )
    return BalanceResponse(account_id=account_id, balance=balance)


@router.post("/api/energy/stake", response_model=StakeResult)
async def stake(
    body: StakeRequest,
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    """质押 token，token 余额不足返回 409"""
    return await ledger.stake(account_id, body.amount)


@router.post("/api/energy/unstake", response_model=UnstakeResponse)
async def unstake(
    body: StakeRequest,
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    """解除质押，质押不足返回 409"""
    staked = await ledger.unstake(account_id, body.amount)
    return UnstakeResponse(account_id=account_id, staked=staked)


@router.post("/api/energy/purchase", response_model=BalanceResponse)
async def purchase(
    body: PurchaseRequest,
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    """按 energy_per_token 兑换能量，token 余额不足返回 409"""
    balance = await ledger.purchase(account_id, body.amount)
    return BalanceResponse(account_id=account_id, balance=balance)


@router.get("/api/energy/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(default=TRANSACTION_HISTORY_LIMIT, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    account_id: str = Depends(get_account_id),
    ledger: EnergyLedger = Depends(get_ledger),
):
    transactions = await ledger.transaction_history(account_id, limit=limit, offset=offset)
    return TransactionListResponse(transactions=transactions, limit=limit, offset=offset)
