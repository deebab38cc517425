"""
Task Manager API Layer

REST API over the task service.

Run:
    python run_api.py
    # or
    uvicorn taskmanager.api.app:app --reload

Endpoints:
    GET    /health                          - Health check
    GET    /api                             - API info

    GET    /api/tasks                       - List tasks (newest first)
    POST   /api/tasks                       - Create task
    GET    /api/tasks/{id}                  - Get task
    PUT    /api/tasks/{id}                  - Update task (If-Match: ETag)
    DELETE /api/tasks/{id}                  - Delete task
    PATCH  /api/tasks/{id}/complete         - Mark complete (idempotent)
    GET    /api/tasks/status/{completed}    - Filter by completion
    GET    /api/tasks/priority/{priority}   - Filter by priority (1-5)
    GET    /api/tasks/overdue               - Overdue tasks
    GET    /api/tasks/statistics            - Counts and completion rate
"""

from .app import create_app, app
from .tasks import router as tasks_router

__all__ = [
    "create_app",
    "app",
    "tasks_router",
]
