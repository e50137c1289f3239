"""Database query strategy and per-backend drivers."""

from noderun.engine.db.coercion import coerce_row, coerce_value
from noderun.engine.db.strategy import DbQueryStrategy

__all__ = ["DbQueryStrategy", "coerce_row", "coerce_value"]
