"""CLI 入口模块 -- python -m airouter.core <command>

支持的命令：
  sweep-tasks               清理过期的已结束一次性任务
  apply-rewards             立即发放一次质押奖励
  verify-ledger [account]   回放流水校验余额（不指定账户时校验全部）
"""

import asyncio
import sys

from .config import get_db_path

_USAGE = """用法: python -m airouter.core <command>
命令:
  sweep-tasks               清理过期的已结束一次性任务
  apply-rewards             立即发放一次质押奖励
  verify-ledger [account]   回放流水校验余额"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "sweep-tasks":
        asyncio.run(sweep_tasks())
    elif command == "apply-rewards":
        asyncio.run(apply_rewards())
    elif command == "verify-ledger":
        account_id = sys.argv[2] if len(sys.argv) > 2 else None
        ok = asyncio.run(verify_ledger(account_id))
        if not ok:
            sys.exit(2)
    else:
        print(f"未知命令: {command}")
        print("可用命令: sweep-tasks, apply-rewards, verify-ledger")
        sys.exit(1)


async def sweep_tasks() -> int:
    """执行一次任务清理"""
    from .retention import RetentionSweeper
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        deleted = await RetentionSweeper(store_group).sweep()
        print(f"清理完成，删除 {deleted} 个任务")
        return deleted
    finally:
        await store_group.conn.close()


async def apply_rewards() -> int:
    """执行一次质押奖励发放"""
    from .ledger import EnergyLedger
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        rewarded = await EnergyLedger(store_group).apply_recurring_rewards()
        print(f"发放完成，{rewarded} 个账户获得奖励")
        return rewarded
    finally:
        await store_group.conn.close()


async def verify_ledger(account_id: str | None = None) -> bool:
    """回放流水校验余额，全部一致时返回 True"""
    from .ledger import EnergyLedger
    from .replay import verify_all
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        if account_id is not None:
            result = await EnergyLedger(store_group).verify(account_id)
            mismatches = [] if result.consistent else [result]
        else:
            mismatches = await verify_all(store_group)

        for item in mismatches:
            print(
                f"不一致: {item.account_id} 余额 {item.stored_balance} "
                f"回放 {item.replayed_balance}"
            )
        if not mismatches:
            print("校验通过")
        return not mismatches
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
