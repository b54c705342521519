from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from estate_settlement.core.config import settings
from estate_settlement.routers import invoices, messages, settlements

OPENAPI_TAGS = [
    {"name": "Invoices", "description": "Generate, list and download settlement invoices."},
    {"name": "Agents", "description": "Agent property assignments and status changes."},
    {"name": "Settlements", "description": "Track settlement runs and select buyers."},
    {"name": "Messages", "description": "Relay conversation messages to the marketplace."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Property settlement service for the real-estate marketplace. "
        "Settles properties, issues seller commission invoices, records "
        "payment records and notifies sellers."
    ),
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", "Content-Disposition"],
)


@app.middleware("http")
async def options_handler(request: Request, call_next):  # type: ignore[no-untyped-def]
    if request.method == "OPTIONS":
        origin = request.headers.get("origin", "*")
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Allow-Credentials": "true",
                "Access-Control-Max-Age": "86400",
            },
        )
    return await call_next(request)


app.include_router(invoices.router, prefix="/api/invoices", tags=["Invoices"])
app.include_router(settlements.agents_router, prefix="/api/agents", tags=["Agents"])
app.include_router(settlements.router, prefix="/api/settlements", tags=["Settlements"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
