# /guided_flows/main.py

import os
import time
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from guided_flows.config.settings import settings
from guided_flows.routes import flows, public
from guided_flows.utils.lifecycle import lifespan
from guided_flows.utils.metrics import response_time_histogram

app = FastAPI(
    title="Guided Flow Engine",
    version="1.0.0",
    description="Deterministic engine for conversational, multi-step guided flows",
    lifespan=lifespan,
    openapi_url=f"/api/{settings.api_version}/openapi.json" if settings.environment != "production" else None,
    docs_url=f"/api/{settings.api_version}/docs" if settings.environment != "production" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def performance_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    # Label by route template so session ids don't explode cardinality
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    response_time_histogram.labels(endpoint=endpoint).observe(process_time)
    response.headers["X-Process-Time"] = str(process_time)
    return response


# --- API Routers ---
app.include_router(public.router)
app.include_router(flows.router, prefix=f"/api/{settings.api_version}")


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "127.0.0.1")

    uvicorn.run(
        "guided_flows.main:app",
        host=host,
        port=port,
        reload=True if settings.environment == "development" else False,
    )
