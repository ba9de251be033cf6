"""任务路由

GET    /api/tasks                    当前账户的任务列表
POST   /api/tasks                    创建任务（schedule 与 execution_time 二选一）
GET    /api/tasks/{task_id}          任务详情
PATCH  /api/tasks/{task_id}          部分更新
DELETE /api/tasks/{task_id}          删除
POST   /api/tasks/{task_id}/run      立即执行

调用方通过 X-Account-Id 标识；任务不存在 404，非所有者 403。
"""

from airouter.core.models import ScheduledTask, TaskCreate, TaskUpdate
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from starlette.responses import Response

from ..deps import get_account_id, get_task_service
from ..services.task_service import TaskService

router = APIRouter()


class TaskListResponse(BaseModel):
    """任务列表响应"""

    tasks: list[ScheduledTask]


@router.get("/api/tasks", response_model=TaskListResponse)
async def list_tasks(
    account_id: str = Depends(get_account_id),
    service: TaskService = Depends(get_task_service),
):
    """查询当前账户的任务，按下一次执行时间升序"""
    tasks = await service.list_tasks(account_id)
    return TaskListResponse(tasks=tasks)


@router.post("/api/tasks", response_model=ScheduledTask, status_code=201)
async def create_task(
    body: TaskCreate,
    account_id: str = Depends(get_account_id),
    service: TaskService = Depends(get_task_service),
):
    return await service.create_task(account_id, body)


@router.get("/api/tasks/{task_id}", response_model=ScheduledTask)
async def get_task(
    task_id: str,
    account_id: str = Depends(get_account_id),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_task(task_id, account_id)


@router.patch("/api/tasks/{task_id}", response_model=ScheduledTask)
async def update_task(
    task_id: str,
    body: TaskUpdate,
    account_id: str = Depends(get_account_id),
    service: TaskService = Depends(get_task_service),
):
    """部分更新，修改 schedule 时立即重算下一次执行时间"""
    return await service.update_task(task_id, account_id, body)


@router.delete("/api/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    account_id: str = Depends(get_account_id),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(task_id, account_id)
    return Response(status_code=204)


@router.post("/api/tasks/{task_id}/run", response_model=ScheduledTask)
async def run_task(
    task_id: str,
    account_id: str = Depends(get_account_id),
    service: TaskService = Depends(get_task_service),
):
    """立即执行任务

    - 能量不足返回 402
    - 执行失败返回 502，超时返回 504（执行结果已记录到任务上）
    """
    return await service.run_now(task_id, account_id)
