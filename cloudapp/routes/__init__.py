from typing import List

from fastapi import APIRouter

from cloudapp.routes import health


def default_routers() -> List[APIRouter]:
    """Routers served by the `webserver` command."""
    return [health.router]
