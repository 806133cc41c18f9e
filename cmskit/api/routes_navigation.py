from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from starlette.routing import NoMatchFound
from cmskit.api.deps import AdminUser, require_admin_user
from cmskit.navigation import Navigation

router = APIRouter()

@router.get("/navigation", name="twill.navigation")
def get_navigation(
    request: Request,
    route: Optional[str] = Query(None, description="Current route name, e.g. twill.events.index"),
    user: AdminUser = Depends(require_admin_user),
):
    def url_for(name: str) -> Optional[str]:
        try:
            return str(request.app.url_path_for(name))
        except NoMatchFound:
            return None

    navigation = Navigation.from_config(
        request.app.state.registry.navigation,
        name_prefix=request.app.state.settings.route_name_prefix,
        url_for=url_for,
    )
    active = navigation.active_primary_link(route)
    return {
        "primary": [link.to_dict(route) for link in navigation.links],
        "active": active.title if active else None,
        "secondary": [link.to_dict(route) for link in navigation.secondary_links(route)],
    }
