from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from database import Base, SessionLocal, engine, get_settings
from api import events, websocket
from core.admin_gate import AdminGate
from core.broadcast_hub import BroadcastHub
from core.session_manager import SessionManager
from core.session_registry import DatabaseSessionRepository, InMemorySessionRepository
from services.draw_service import DrawEngine


def build_session_manager(settings) -> SessionManager:
    if settings.session_store == "database":
        repository = DatabaseSessionRepository(SessionLocal)
    else:
        repository = InMemorySessionRepository()

    return SessionManager(
        repository,
        BroadcastHub(),
        AdminGate(settings.admin_secret),
        DrawEngine(settings.reveal_delay_seconds),
        reset_clears_history=settings.reset_clears_history,
        test_account_prefixes=settings.test_account_prefixes,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料表與抽獎 Session 管理器
    Base.metadata.create_all(bind=engine)
    app.state.session_manager = build_session_manager(get_settings())
    yield
    # Shutdown: 取消尚未揭曉的任務
    await app.state.session_manager.shutdown()


app = FastAPI(
    title="Lucky Draw API",
    description="Backend for live prize-draw sessions",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(events.router)
app.include_router(websocket.router)


@app.get("/")
def root():
    return {"message": "Lucky Draw API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
