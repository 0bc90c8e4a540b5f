from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from .db import init_db
from .api.routers import health, auth, companies, accounts, journal, reports, periods, ventas, partners, webhooks
from .infrastructure.logging_config import setup_logging, get_logger
from .config import settings as app_settings

# Configurar logging al iniciar la aplicación
setup_logging()
logger = get_logger("main")

# Inicializar BD (no fallar si conexión no está configurada - primer arranque)
try:
    init_db()
except Exception as e:
    logger.warning("No se pudo inicializar la base de datos: %s. Puede requerir configuración inicial.", e)

app = FastAPI(
    title="Contaliados - Núcleo Contable",
    version="0.1.0",
    description="Contabilidad multiempresa: asientos automáticos, períodos, comisiones de partners y webhooks de pedidos",
    docs_url="/docs" if app_settings.is_dev else None,  # Deshabilitar docs en producción
    redoc_url="/redoc" if app_settings.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Webhook-Secret"],
)

# Middleware para agregar headers de seguridad HTTP
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if app_settings.environment == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(companies.router)
app.include_router(accounts.router)
app.include_router(journal.router)
app.include_router(reports.router)
app.include_router(periods.router)
app.include_router(ventas.router)
app.include_router(partners.router)
app.include_router(webhooks.router)
