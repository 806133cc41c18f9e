"""Boot modules declared in a YAML file.

    modules:
      events:
        fields:
          title: {translatable: true}
          startsAt: {type: dateTime}
        setup_methods: [enable_reorder]
        additional_props: {feature_field: isFeatured}
        routes: {except: [tags]}
"""
import logging
from pathlib import Path
from typing import Any, Dict, List
import yaml
from fastapi import FastAPI
from cmskit.core.errors import InvalidSchema
from cmskit.core.workflow import BootStage
from cmskit.modules.module import AnonymousModule

log = logging.getLogger(__name__)


def load_modules_file(path: Path) -> Dict[str, Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    modules = data.get("modules", {}) if isinstance(data, dict) else None
    if not isinstance(modules, dict):
        raise InvalidSchema(f"{path}: expected a 'modules' mapping")
    for name, entry in modules.items():
        if entry is not None and not isinstance(entry, dict):
            raise InvalidSchema(f"{path}: module '{name}' must be a mapping")
    return {name: entry or {} for name, entry in modules.items()}


def boot_modules(app: FastAPI, modules: Dict[str, Dict[str, Any]]) -> List[AnonymousModule]:
    booted = []
    for name, entry in modules.items():
        module = AnonymousModule.make(name, app)
        if entry.get("fields") is not None:
            module.with_fields(entry["fields"])
        if entry.get("setup_methods"):
            module.with_setup_methods(entry["setup_methods"])
        for prop, value in (entry.get("additional_props") or {}).items():
            module.with_additional_prop(prop, value)
        routes = entry.get("routes") or {}
        if routes:
            module.with_route_options(only=routes.get("only"), exclude=routes.get("except"))
        booted.append(module.boot())
    log.info("Booted %d modules from config", len(booted), extra={"resource": "-", "stage": BootStage.DONE.value})
    return booted
