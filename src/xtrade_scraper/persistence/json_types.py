# ABOUTME: SQLAlchemy column type storing pydantic values (including discriminated unions) as JSON text
# ABOUTME: Validates on the way out of the database so rows always come back as typed models

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter
from sqlalchemy import Text, TypeDecorator
from sqlalchemy.engine import Dialect


class PydanticJson(TypeDecorator[Any]):
    """Store a pydantic-validated value as JSON text.

    Values are serialized with ``TypeAdapter.dump_json`` on write and parsed with
    ``validate_json`` on read, so a discriminated union column round-trips to the
    right variant.

    See: https://github.com/fastapi/sqlmodel/issues/63#issuecomment-2727480036
    """

    impl = Text
    cache_ok = True

    def __init__(self, pydantic_type: Any) -> None:
        super().__init__()
        self.type_adapter = TypeAdapter(pydantic_type)

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return self.type_adapter.dump_json(self.type_adapter.validate_python(value)).decode("utf-8")

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return self.type_adapter.validate_json(value)
