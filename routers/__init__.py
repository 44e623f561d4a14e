"""Router package -- one APIRouter per domain, included by app.py."""

from routers.openrouter import router as openrouter_router
from routers.benchmarks import router as benchmarks_router
from routers.configs import router as configs_router
from routers.results import router as results_router
from routers.ollama import router as ollama_router
from routers.advanced import router as advanced_router
from routers.evaluation import router as evaluation_router
from routers.jobs import router as jobs_router
from routers.websocket import router as websocket_router

all_routers = [
    openrouter_router,
    benchmarks_router,
    configs_router,
    results_router,
    ollama_router,
    advanced_router,
    evaluation_router,
    jobs_router,
    websocket_router,
]
