"""服务装配 -- 后端 + 时钟 + 三个引擎组件

在 lifespan 中构建一次，挂在 app.state.services 上。
"""

from tasklog.core.aggregator import TimeAggregator
from tasklog.core.clock import Clock, SystemClock
from tasklog.core.config import BackendConfig
from tasklog.core.ledger import SessionLedger
from tasklog.core.store import Backend
from tasklog.core.task_service import TaskService


class ServiceGroup:
    """共享同一个后端与时钟的服务实例组"""

    def __init__(
        self,
        backend: Backend,
        config: BackendConfig,
        clock: Clock | None = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self.clock = clock or SystemClock()
        self.ledger = SessionLedger(backend, self.clock)
        self.tasks = TaskService(backend, self.ledger, self.clock)
        self.aggregator = TimeAggregator(backend, self.clock, config.tzinfo)
