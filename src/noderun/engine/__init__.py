"""Execution strategies and the engine facade."""

from noderun.engine.api_call import ApiCallStrategy
from noderun.engine.db import DbQueryStrategy
from noderun.engine.engine import ExecutionEngine
from noderun.engine.script import ScriptStrategy, classify

__all__ = [
    "ApiCallStrategy",
    "DbQueryStrategy",
    "ExecutionEngine",
    "ScriptStrategy",
    "classify",
]
