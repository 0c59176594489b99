from typing import Any, Dict
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """클라이언트와 camelCase 필드명으로 주고받는 기본 스키마"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        """WebSocket/JSON 전송용 dict"""
        return self.model_dump(by_alias=True, mode="json")
