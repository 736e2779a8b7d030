"""
FastAPI Application

HTTP surface for persisted conversations:
- CRUD routes for conversations
- message route that relays one turn to the completion service
- BusinessError handler mapping domain errors to JSON responses

Usage:
    uvicorn chat_core.api.app:create_app --factory --port 3000
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chat_core.api.service import ChatService, build_service
from chat_core.domain.exceptions import BusinessError
from chat_core.infrastructure.logging.logger import logger


class ConversationUpdateRequest(BaseModel):
    title: Optional[str] = None


class MessageRequest(BaseModel):
    message: Optional[str] = None


router = APIRouter()


def _service(request: Request) -> ChatService:
    return request.app.state.chat_service


@router.get("/conversations")
def list_conversations(request: Request) -> List[Dict[str, Any]]:
    """List conversation summaries, most recently updated first."""
    return _service(request).list_conversations()


@router.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: str, request: Request) -> Dict[str, Any]:
    return _service(request).get_conversation(conversation_id)


@router.post("/conversations")
def create_conversation(request: Request) -> Dict[str, Any]:
    return _service(request).create_conversation()


@router.put("/conversations/{conversation_id}")
def rename_conversation(
    conversation_id: str,
    request: Request,
    payload: Optional[ConversationUpdateRequest] = None,
) -> Dict[str, Any]:
    """Rename a conversation; an empty or missing title leaves it unchanged."""
    title = payload.title if payload else None
    return _service(request).rename_conversation(conversation_id, title)


@router.delete("/conversations/{conversation_id}")
def delete_conversation(conversation_id: str, request: Request) -> Dict[str, Any]:
    return _service(request).delete_conversation(conversation_id)


@router.post("/conversations/{conversation_id}/message")
def send_message(
    conversation_id: str,
    request: Request,
    payload: Optional[MessageRequest] = None,
) -> Dict[str, Any]:
    """Append a user turn and return the assistant reply."""
    message = payload.message if payload else None
    return _service(request).send_message(conversation_id, message)


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    store = _service(request).store
    return {"status": "ok", "storage": str(store.path), "storage_status": store.last_load_status}


async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    level = "error" if exc.http_status >= 500 else "info"
    getattr(logger, level)(
        f"Request failed: {exc.message}",
        extra={"extra": {"code": exc.code, "path": request.url.path, "status": exc.http_status}},
    )
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.message, "code": exc.code},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are client errors like any other ValidationError."""
    logger.info(
        "Request failed: invalid body",
        extra={"extra": {"code": "INVALID_REQUEST", "path": request.url.path, "status": 400}},
    )
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "code": "INVALID_REQUEST"},
    )


def create_app(service: Optional[ChatService] = None) -> FastAPI:
    app = FastAPI(title="chat_core", version="0.1.0")
    app.state.chat_service = service or build_service()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(BusinessError, business_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router, prefix="/api")
    return app
