"""
JSON response sink for the FastAPI host.
"""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from gatedcrud.responses import ResponseSink


class JSONResponseSink(ResponseSink):
    """Sink producing ``JSONResponse`` objects."""

    def send(self, status: int, body: Any = None) -> JSONResponse:
        return JSONResponse(status_code=status, content=jsonable_encoder(body))
