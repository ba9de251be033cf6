"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / 账本 / 服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from airouter.core.ledger import EnergyLedger
from airouter.core.store import StoreGroup
from fastapi import Header, Request

from .errors import AccountRequiredError
from .services.task_service import TaskService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_ledger(request: Request) -> EnergyLedger:
    """从 app.state 获取 EnergyLedger 实例"""
    return request.app.state.ledger


def get_task_service(request: Request) -> TaskService:
    return TaskService(
        request.app.state.store_group,
        request.app.state.execution_loop,
    )


def get_account_id(
    x_account_id: str | None = Header(default=None, alias="X-Account-Id"),
) -> str:
    """调用方账户 ID（鉴权由上游完成，此处只信任传入的标识）"""
    if not x_account_id or not x_account_id.strip():
        raise AccountRequiredError()
    return x_account_id.strip()
