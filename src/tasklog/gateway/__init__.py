"""tasklog gateway -- HTTP API（FastAPI）"""
