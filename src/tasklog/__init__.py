"""tasklog -- 任务与工作时长记录"""

__version__ = "0.1.0"
