from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from idvflow.api.routes import router
from idvflow.api.admin_routes import router as admin_router
from idvflow.core.errors import ConfigurationError
from idvflow.observability.logging import log
from idvflow.settings import settings

app = FastAPI(title="Identity Verification Registration Flow")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "IDV flow is running. Use /health and POST /idv/registration.",
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# The flow itself never raises (errors become the "error" outcome); only an
# unusable configuration can surface here, while the flow is being built.
@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    log(event="idv_configuration_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Identity verification is not configured"})
