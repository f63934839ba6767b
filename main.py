import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import CORS_ORIGINS, configure_logging

# IMPORTANTE: Importar Base y Engine para que funcione la creación de tablas
from app.db.session import engine, Base

# Importar modelos para que SQLAlchemy los "vea" antes de crear las tablas
from app.db.models import _all

# Importar las rutas (los routers)
from app.api.auth import router as auth_router
from app.api.vote import router as vote_router
from app.api.results import router as results_router
from app.api.admin import router as admin_router
from app.api.derbynet import router as derbynet_router
from app.services.errors import VoteServiceError, StorageError

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Derby Vote",
    version="1.0.0"
)

# Creamos las tablas en la base de datos
Base.metadata.create_all(bind=engine)

# Conectamos las piezas (routers)
app.include_router(auth_router)
app.include_router(vote_router)
app.include_router(results_router)
app.include_router(admin_router)
app.include_router(derbynet_router)


# Errores de los servicios -> {"detail": ...} con su código HTTP
@app.exception_handler(VoteServiceError)
def vote_service_error_handler(request: Request, exc: VoteServiceError):
    if isinstance(exc, StorageError):
        logger.error("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Configuramos el permiso para que el frontend pueda hablar con Python
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
def read_root():
    return {"message": "API Derby Vote funcionando 🏁"}
