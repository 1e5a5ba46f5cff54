"""
FastAPI routers grouped by concern (management, capture, meta).

Each module exposes an APIRouter included by relay.app.create_app.
"""
