from prometheus_fastapi_instrumentator import Instrumentator

from lab_inventory import create_app
from lab_inventory.core.config import get_settings
from lab_inventory.core.logging import configure_logging

settings = get_settings()
configure_logging(settings.LOG_LEVEL)
app = create_app(settings)
instrumentator = Instrumentator()


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


instrumentator.instrument(app).expose(app)
