import logging

from fastapi import FastAPI

from discocache.core.dependencies import get_disco_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Disco catalog cache",
    version="0.1.0",
    description="FastAPI host serving JDK package queries from a cached foojay disco catalog.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Start the catalog cache: one major version fetch right away, then the
    periodic catalog refresh.
    """
    get_disco_client().start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await get_disco_client().stop()


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


try:
    from discocache.api.packages import router as packages_router

    app.include_router(packages_router, prefix="/disco", tags=["disco"])
    logger.info("Successfully loaded disco router")
except ImportError as e:
    logger.warning(f"Failed to import disco router: {e}")


if __name__ == "__main__":
    """
    Allow running `python discocache/main.py` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run(
        "discocache.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
