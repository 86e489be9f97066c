"""tasklog core -- 计时引擎、领域模型与存储后端"""
