"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from app.api.properties import router as properties_router
from app.api.issues import router as issues_router
from app.api.handymen import router as handymen_router
from app.api.dispatch import router as dispatch_router
from app.api.webhooks import router as webhooks_router
from app.api.websocket import router as websocket_router

api_router = APIRouter()
api_router.include_router(properties_router)
api_router.include_router(issues_router)
api_router.include_router(handymen_router)
api_router.include_router(dispatch_router)
api_router.include_router(webhooks_router)
api_router.include_router(websocket_router)
