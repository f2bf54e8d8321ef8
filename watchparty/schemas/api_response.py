"""
watchparty.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

REST 应答信封 ``{"code", "data", "msg"}``。

成功时 ``code`` 为 200；失败时 ``code`` 与 HTTP 状态码一致，``data`` 为 None。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from watchparty.core.errors import WatchPartyError

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    code: int = 200
    data: T | None = None
    msg: str = "success"

    @classmethod
    def ok(cls, data: T) -> ApiResponse[T]:
        return cls(data=data)

    @classmethod
    def from_error(cls, exc: WatchPartyError) -> ApiResponse[Any]:
        """业务异常 → 失败应答，状态码取自异常类型。"""
        return cls(code=exc.status_code, msg=exc.message)

    @classmethod
    def internal_error(cls, detail: str) -> ApiResponse[Any]:
        return cls(code=500, msg=detail)
