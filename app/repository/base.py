from datetime import datetime
from enum import Enum
from typing import Any, Dict

from supabase import AsyncClient


def serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Turn python values into something PostgREST accepts as json."""
    result = {}
    for k, v in data.items():
        if isinstance(v, datetime):
            result[k] = v.isoformat()
        elif isinstance(v, Enum):
            result[k] = v.value
        else:
            result[k] = v
    return result


class BaseRepository:
    table_name: str

    def __init__(self, db: AsyncClient):
        self.db = db
        self.repository = self.db.table(self.table_name)
