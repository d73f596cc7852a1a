"""FastAPI REST API server for dupgate."""

import json
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .errors import GateError, InvalidRequest, iso_now
from .gate import DuplicateGate


app = FastAPI(title="dupgate API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
gate_instance: Optional[DuplicateGate] = None


class ValidateResponse(BaseModel):
    message: str
    timestamp: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str


def set_gate(gate: Optional[DuplicateGate]):
    """Set the gate instance for the API."""
    global gate_instance
    gate_instance = gate


async def read_payload(request: Request) -> Any:
    """Decode the request body into a payload.

    An empty body is an absent payload; JSON content types are parsed; any
    other content is taken as text, so a JSON body sent without a JSON
    content type keeps its top-level key order in the fingerprint.
    """
    body = await request.body()
    if not body:
        return None

    content_type = request.headers.get("content-type", "").lower()
    if "json" in content_type:
        try:
            return json.loads(body)
        except ValueError as e:
            raise InvalidRequest("invalid JSON body") from e
    return body.decode("utf-8", errors="replace")


@app.exception_handler(GateError)
async def gate_error_handler(request: Request, exc: GateError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.post("/validate", response_model=ValidateResponse)
async def validate(request: Request):
    """Admit the request unless an equivalent one was seen within the TTL."""
    if gate_instance is None:
        raise HTTPException(status_code=503, detail="gate not available")

    payload = await read_payload(request)
    await gate_instance.validate(payload, request.headers)
    return ValidateResponse(message="request processed successfully", timestamp=iso_now())


@app.post("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(status="ok", timestamp=iso_now())
