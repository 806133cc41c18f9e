"""Admin route table for a resource and its registration on a FastAPI router."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple
from fastapi import APIRouter
from cmskit.core.workflow import BootStage
from cmskit.modules.schema import ResourceSchema

log = logging.getLogger(__name__)

CATALOG_OPERATIONS: Tuple[str, ...] = (
    "reorder",
    "publish",
    "bulkPublish",
    "browser",
    "feature",
    "bulkFeature",
    "tags",
    "preview",
    "restore",
    "bulkRestore",
    "forceDelete",
    "bulkForceDelete",
    "bulkDelete",
    "restoreRevision",
    "duplicate",
)

# operation -> (HTTP method, takes an id suffix)
CATALOG_METHODS: Dict[str, Tuple[str, bool]] = {
    "browser": ("GET", False),
    "tags": ("GET", False),
    "restoreRevision": ("GET", True),
    "publish": ("PUT", False),
    "feature": ("PUT", False),
    "restore": ("PUT", False),
    "forceDelete": ("PUT", False),
    "duplicate": ("PUT", True),
    "preview": ("PUT", True),
    "reorder": ("POST", False),
    "bulkPublish": ("POST", False),
    "bulkFeature": ("POST", False),
    "bulkDelete": ("POST", False),
    "bulkRestore": ("POST", False),
    "bulkForceDelete": ("POST", False),
}

# operation -> (HTTP method, path suffix, uses the record key); {key} is the singular name
CRUD_ROUTES: Tuple[Tuple[str, str, str, bool], ...] = (
    ("index", "GET", "/", False),
    ("edit", "GET", "/{key}/edit", True),
    ("create", "POST", "/create", False),
    ("store", "POST", "/store", False),
    ("destroy", "DELETE", "/{key}", True),
    ("update", "PUT", "/{key}", True),
)


@dataclass(frozen=True)
class RouteSpec:
    method: str
    path: str
    name: str
    operation: str
    param: Optional[str] = None
    middleware: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteTable:
    routes: Tuple[RouteSpec, ...]
    resource: str = "-"

    def __iter__(self) -> Iterator[RouteSpec]:
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    def names(self) -> List[str]:
        return [r.name for r in self.routes]

    def get(self, name: str) -> RouteSpec:
        for route in self.routes:
            if route.name == name:
                return route
        raise KeyError(name)


def admin_prefix(admin_path: str) -> str:
    path = admin_path.strip("/")
    return f"/{path}" if path else ""


def select_operations(options: Optional[Mapping[str, Any]] = None) -> List[str]:
    """Catalog operations narrowed by ``only`` or, failing that, ``except``."""
    options = options or {}
    if options.get("only") is not None:
        only = _as_list(options["only"])
        return [op for op in CATALOG_OPERATIONS if op in only]
    if options.get("except") is not None:
        excluded = _as_list(options["except"])
        return [op for op in CATALOG_OPERATIONS if op not in excluded]
    return list(CATALOG_OPERATIONS)


def _as_list(value: Any) -> Sequence[str]:
    return [value] if isinstance(value, str) else list(value)


def build_route_table(
    schema: ResourceSchema,
    admin_path: str,
    options: Optional[Mapping[str, Any]] = None,
    name_prefix: str = "twill",
    guard: str = "twill_users",
) -> RouteTable:
    """Catalog routes come first so ``/publish`` is matched before ``/{key}``."""
    base = f"{admin_prefix(admin_path)}/{schema.path_slug}"
    middleware = ("web", f"twill_auth:{guard}")
    routes: List[RouteSpec] = []

    for operation in select_operations(options):
        method, with_id = CATALOG_METHODS[operation]
        path = f"{base}/{operation}" + ("/{id}" if with_id else "")
        routes.append(RouteSpec(
            method=method,
            path=path,
            name=f"{name_prefix}.{schema.slug}.{operation}",
            operation=operation,
            param="id" if with_id else None,
            middleware=middleware,
        ))

    key = schema.route_key
    for operation, method, suffix, keyed in CRUD_ROUTES:
        routes.append(RouteSpec(
            method=method,
            path=base + suffix.replace("{key}", "{" + key + "}"),
            name=f"{name_prefix}.{schema.slug}.{operation}",
            operation=operation,
            param=key if keyed else None,
            middleware=middleware,
        ))

    return RouteTable(routes=tuple(routes), resource=schema.name_plural)


def bind_routes(
    router: APIRouter,
    table: RouteTable,
    endpoint_factory: Callable[[RouteSpec], Callable[..., Any]],
    tags: Optional[List[str]] = None,
) -> None:
    """Register every route in ``table``.

    A name already present on the router is not rejected: the earlier route
    is replaced, so the last registration wins, and a warning is logged.
    """
    for route in table:
        if any(getattr(r, "name", None) == route.name for r in router.routes):
            log.warning("Route name %s is already registered, replacing it", route.name,
                        extra={"resource": table.resource, "stage": BootStage.BIND_ROUTES.value})
            router.routes[:] = [r for r in router.routes if getattr(r, "name", None) != route.name]
        router.add_api_route(
            route.path,
            endpoint_factory(route),
            methods=[route.method],
            name=route.name,
            tags=tags,
        )
