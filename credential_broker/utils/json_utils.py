import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        # Pydantic models (broker responses, flow outcomes)
        elif hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        elif isinstance(obj, BaseException):
            return {"type": type(obj).__name__, "message": str(obj)}
        return super().default(obj)


def dumps(obj: Any, **kwargs) -> str:
    """JSON dumps with Decimal, datetime, enum and pydantic support."""
    return json.dumps(obj, cls=EnhancedJSONEncoder, **kwargs)
