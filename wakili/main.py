"""
Wakili Chat Service - FastAPI Application

법률 서비스 마켓플레이스의 실시간 채팅/알림 서비스
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from wakili.api import chat_room, health, message, notification, websocket
from wakili.core.config import settings
from wakili.core.logging import get_logger, setup_logging
from wakili.database import init_databases, close_databases
from wakili.middleware.error_handler import ErrorHandlerMiddleware, create_http_exception_handler
from wakili.websockets.server import ChatSocketServer

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} starting up...")
    await init_databases()
    yield
    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")
    await app.state.chat_server.shutdown()
    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

# 연결 레지스트리를 소유하는 실시간 채팅 서버 (프로세스 수명과 동일)
app.state.chat_server = ChatSocketServer()

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(StarletteHTTPException, create_http_exception_handler())

# Include routers
app.include_router(health.router)
app.include_router(chat_room.router)
app.include_router(message.router)
app.include_router(notification.router)
app.include_router(websocket.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }
