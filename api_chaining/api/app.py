from fastapi import FastAPI

from api_chaining.api.routes import router
from api_chaining.config.settings import Settings, load_settings
from api_chaining.executor.api_client import HttpRequestExecutor, RequestExecutor
from api_chaining.storage.json_store import JsonStore


def create_app(
    data_dir: str | None = None,
    settings: Settings | None = None,
    request_executor: RequestExecutor | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="API Chaining Workflows")
    app.include_router(router)

    app.state.store = JsonStore(data_dir or settings.data_dir)
    app.state.request_executor = request_executor or HttpRequestExecutor(settings.http)
    # execution id -> cancellation token, for executions still in flight
    app.state.running = {}
    return app
