"""TaskStore SQLite 实现

scheduled_tasks 表的 CRUD、到期扫描与过期清理。
此处不提交事务，由调用方通过 write_transaction 统一提交。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.task import ScheduledTask
from .sqlite_init import format_ts, parse_ts

_COLUMNS = (
    "task_id, owner_id, agent_id, name, description, input, schedule, "
    "next_execution_time, last_execution_time, last_execution_status, "
    "last_execution_result, execution_count, energy_cost, is_active, "
    "tags, metadata, created_at, updated_at"
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: ScheduledTask) -> None:
        """创建任务记录"""
        await self._conn.execute(
            f"INSERT INTO scheduled_tasks ({_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._task_to_params(task),
        )

    async def get_task(self, task_id: str) -> ScheduledTask | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM scheduled_tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks_by_owner(self, owner_id: str) -> list[ScheduledTask]:
        """查询账户下的任务，按下一次执行时间升序"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM scheduled_tasks WHERE owner_id = ? "
            "ORDER BY next_execution_time ASC",
            (owner_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def list_due_tasks(
        self,
        now: datetime,
        limit: int | None = None,
    ) -> list[ScheduledTask]:
        """查询 is_active=1 且 next_execution_time <= now 的任务，最早到期的在前"""
        sql = (
            f"SELECT {_COLUMNS} FROM scheduled_tasks "
            "WHERE is_active = 1 AND next_execution_time <= ? "
            "ORDER BY next_execution_time ASC"
        )
        params: tuple = (format_ts(now),)
        if limit is not None:
            sql += " LIMIT ?"
            params = (format_ts(now), limit)
        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def save_task(self, task: ScheduledTask) -> None:
        """整体覆盖可变字段（task_id / owner_id / created_at 不变）"""
        await self._conn.execute(
            """
            UPDATE scheduled_tasks
            SET agent_id = ?, name = ?, description = ?, input = ?, schedule = ?,
                next_execution_time = ?, last_execution_time = ?,
                last_execution_status = ?, last_execution_result = ?,
                execution_count = ?, energy_cost = ?, is_active = ?,
                tags = ?, metadata = ?, updated_at = ?
            WHERE task_id = ?
            """,
            (
                task.agent_id,
                task.name,
                task.description,
                task.input,
                task.schedule,
                format_ts(task.next_execution_time),
                format_ts(task.last_execution_time) if task.last_execution_time else None,
                task.last_execution_status.value,
                task.last_execution_result,
                task.execution_count,
                task.energy_cost,
                int(task.is_active),
                json.dumps(task.tags, ensure_ascii=False),
                json.dumps(task.metadata, ensure_ascii=False),
                format_ts(task.updated_at),
                task.task_id,
            ),
        )

    async def delete_task(self, task_id: str) -> bool:
        """删除任务，返回是否存在并被删除"""
        cursor = await self._conn.execute(
            "DELETE FROM scheduled_tasks WHERE task_id = ?",
            (task_id,),
        )
        return cursor.rowcount > 0

    async def delete_expired_one_shot(self, cutoff: datetime) -> int:
        """删除已停用、非周期、最近执行早于 cutoff 的任务

        last_execution_time 为 NULL 的任务不会被删除。
        """
        cursor = await self._conn.execute(
            """
            DELETE FROM scheduled_tasks
            WHERE is_active = 0
              AND schedule IS NULL
              AND last_execution_time IS NOT NULL
              AND last_execution_time < ?
            """,
            (format_ts(cutoff),),
        )
        return cursor.rowcount

    @staticmethod
    def _task_to_params(task: ScheduledTask) -> tuple:
        return (
            task.task_id,
            task.owner_id,
            task.agent_id,
            task.name,
            task.description,
            task.input,
            task.schedule,
            format_ts(task.next_execution_time),
            format_ts(task.last_execution_time) if task.last_execution_time else None,
            task.last_execution_status.value,
            task.last_execution_result,
            task.execution_count,
            task.energy_cost,
            int(task.is_active),
            json.dumps(task.tags, ensure_ascii=False),
            json.dumps(task.metadata, ensure_ascii=False),
            format_ts(task.created_at),
            format_ts(task.updated_at),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> ScheduledTask:
        """将数据库行转换为 ScheduledTask 模型"""
        return ScheduledTask(
            task_id=row[0],
            owner_id=row[1],
            agent_id=row[2],
            name=row[3],
            description=row[4],
            input=row[5],
            schedule=row[6],
            next_execution_time=parse_ts(row[7]),
            last_execution_time=parse_ts(row[8]),
            last_execution_status=row[9],
            last_execution_result=row[10],
            execution_count=row[11],
            energy_cost=row[12],
            is_active=bool(row[13]),
            tags=json.loads(row[14]),
            metadata=json.loads(row[15]),
            created_at=parse_ts(row[16]),
            updated_at=parse_ts(row[17]),
        )
