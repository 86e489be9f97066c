"""CLI 入口模块 -- python -m tasklog.core <command>

支持的命令：
  init-db                         初始化 SQLite 数据库
  summary <today|week|month> [owner]  输出汇总 JSON
"""

import asyncio
import json
import sys

from .config import get_db_path, load_backend_config

_USAGE = """用法: python -m tasklog.core <command>
命令:
  init-db                             初始化 SQLite 数据库
  summary <today|week|month> [owner]  输出汇总 JSON"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "summary":
        range_name = sys.argv[2] if len(sys.argv) > 2 else "today"
        owner_id = sys.argv[3] if len(sys.argv) > 3 else None
        asyncio.run(print_summary(range_name, owner_id))
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, summary")
        sys.exit(1)


async def init_database() -> None:
    """创建表结构与索引"""
    from .store import open_sqlite_backend

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    backend = await open_sqlite_backend(db_path)
    await backend.close()
    print("初始化完成")


async def print_summary(range_name: str, owner_id: str | None) -> None:
    """按配置的后端输出汇总"""
    from .aggregator import TimeAggregator
    from .store import create_backend

    config = load_backend_config()
    backend = await create_backend(config)
    try:
        aggregator = TimeAggregator(backend, tz=config.tzinfo)
        name, summary = await aggregator.get_range_summary(
            owner_id or config.default_owner,
            range_name,
            config.week_start,
        )
        payload = {"range": name, **summary.model_dump(mode="json", by_alias=True)}
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    finally:
        await backend.close()


if __name__ == "__main__":
    main()
