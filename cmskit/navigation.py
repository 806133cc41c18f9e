"""Admin navigation built from the navigation config map.

Booting a module adds ``{"title": ..., "module": True}`` under its plural
name. Entries may also carry a ``route`` name and nested
``secondary_navigation`` entries of the same shape.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional


@dataclass
class NavigationLink:
    title: str
    route_name: Optional[str] = None
    url: Optional[str] = None
    module: bool = False
    children: List["NavigationLink"] = field(default_factory=list)

    def matches(self, route_name: Optional[str]) -> bool:
        if not route_name or not self.route_name:
            return False
        if route_name == self.route_name:
            return True
        # twill.events.index is active for every twill.events.* route
        if self.module:
            return route_name.startswith(self.route_name.rsplit(".", 1)[0] + ".")
        return False

    def is_active(self, route_name: Optional[str]) -> bool:
        return self.matches(route_name) or any(c.is_active(route_name) for c in self.children)

    def to_dict(self, route_name: Optional[str] = None) -> Dict[str, Any]:
        return {
            "title": self.title,
            "route": self.route_name,
            "url": self.url,
            "active": self.is_active(route_name),
            "children": [c.to_dict(route_name) for c in self.children],
        }


class Navigation:
    def __init__(self, links: List[NavigationLink]):
        self.links = links

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Mapping[str, Any]],
        name_prefix: str = "twill",
        url_for: Optional[Callable[[str], Optional[str]]] = None,
    ) -> "Navigation":
        return cls([_link(key, entry, name_prefix, url_for) for key, entry in config.items()])

    def active_primary_link(self, route_name: Optional[str]) -> Optional[NavigationLink]:
        return next((link for link in self.links if link.is_active(route_name)), None)

    def secondary_links(self, route_name: Optional[str]) -> List[NavigationLink]:
        active = self.active_primary_link(route_name)
        return active.children if active else []


def _link(key: str, entry: Mapping[str, Any], name_prefix: str,
          url_for: Optional[Callable[[str], Optional[str]]]) -> NavigationLink:
    module = bool(entry.get("module", False))
    route_name = entry.get("route") or (f"{name_prefix}.{key}.index" if module else None)
    children = [
        _link(child_key, child, name_prefix, url_for)
        for child_key, child in (entry.get("secondary_navigation") or {}).items()
    ]
    return NavigationLink(
        title=entry.get("title") or key.title(),
        route_name=route_name,
        url=url_for(route_name) if url_for and route_name else None,
        module=module,
        children=children,
    )
