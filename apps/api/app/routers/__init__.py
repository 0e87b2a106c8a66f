from .routes_recommendations import router as recommendations_router
from .routes_insights import router as insights_router
from .routes_cache import router as cache_router

all_routers = [
    recommendations_router,
    insights_router,
    cache_router,
]
