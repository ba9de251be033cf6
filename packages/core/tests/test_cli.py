"""CLI 命令测试 -- python -m airouter.core <command>"""

from pathlib import Path

import pytest
from airouter.core import __main__ as cli
from airouter.core.ledger import EnergyLedger
from airouter.core.models import EnergySource
from airouter.core.schedule import utcnow
from airouter.core.store import create_store_group


@pytest.fixture
def cli_db(tmp_path: Path, monkeypatch) -> str:
    db_path = str(tmp_path / "sqlite" / "cli.db")
    monkeypatch.setenv("AIROUTER_DB_PATH", db_path)
    return db_path


class TestCli:
    async def test_sweep_tasks_on_empty_db(self, cli_db: str, capsys):
        assert await cli.sweep_tasks() == 0
        assert "删除 0 个任务" in capsys.readouterr().out

    async def test_apply_rewards(self, cli_db: str):
        group = await create_store_group(cli_db)
        try:
            async with group.transaction():
                await group.energy_store.ensure_account("alice", utcnow())
                await group.energy_store.add_staked("alice", 500, utcnow())
        finally:
            await group.conn.close()

        assert await cli.apply_rewards() == 1

    async def test_verify_ledger(self, cli_db: str):
        group = await create_store_group(cli_db)
        try:
            await EnergyLedger(group).credit("alice", 10, EnergySource.MINT)
        finally:
            await group.conn.close()

        assert await cli.verify_ledger() is True
        assert await cli.verify_ledger("alice") is True

    def test_unknown_command(self, monkeypatch):
        monkeypatch.setattr("sys.argv", ["airouter.core", "bogus"])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1
