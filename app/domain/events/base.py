"""
Domain Event 기본 클래스

이벤트는 Kafka로 오가므로 JSON으로 표현 가능한 dict와 서로 변환할 수 있어야 합니다.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict
import json

EVENT_TYPE_FIELD = '__event_type__'


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass
class DomainEvent:
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        """필드 값을 JSON 호환 값으로 바꾸고, Consumer 라우팅용 이벤트 이름을 붙임"""
        data = {field.name: _to_json_value(getattr(self, field.name)) for field in fields(self)}
        data[EVENT_TYPE_FIELD] = type(self).__name__
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        values = {key: value for key, value in data.items() if key != EVENT_TYPE_FIELD}
        if isinstance(values.get('timestamp'), str):
            values['timestamp'] = datetime.fromisoformat(values['timestamp'])
        return cls(**values)
