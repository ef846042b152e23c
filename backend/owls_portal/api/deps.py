from fastapi import Request

from owls_portal.core.config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
