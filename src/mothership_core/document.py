"""
Config document helpers: defaults, merging, and device-local asset splitting.

The storage layer treats the document as opaque JSON. These helpers hold the
few rules the application applies around it: how a stored document is merged
over the defaults, and which values (uploaded ``data:`` images) are kept on the
device instead of consuming sync quota.

License: MIT
"""

import copy
import uuid
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_CONFIG: Dict[str, Any] = {
    "sections": ["Primary", "Secondary", "Tertiary"],
    "links": [],
    "quotes": [],
    "backgrounds": [],
    "search": {"defaultEngine": "google", "engines": []},
}


def default_config() -> Dict[str, Any]:
    """Fresh copy of the fallback document."""
    return copy.deepcopy(DEFAULT_CONFIG)


def _list_or(override: Dict[str, Any], base: Dict[str, Any], field: str) -> List[Any]:
    value = override.get(field)
    return copy.deepcopy(value if isinstance(value, list) else base.get(field, []))


def merge_config(base: Dict[str, Any], override: Optional[Any]) -> Dict[str, Any]:
    """
    Overlay a stored document on the defaults, field by field.

    List fields are taken from ``override`` only when they are lists; the
    default engine is taken when it is a non-empty string. Unknown fields in
    ``override`` are dropped.

    Args:
        base: Default document
        override: Stored document (may be None or malformed)

    Returns:
        New merged document; neither argument is modified
    """
    if not isinstance(override, dict):
        return copy.deepcopy(base)

    base_search = base.get("search") or {}
    override_search = override.get("search")
    if not isinstance(override_search, dict):
        override_search = {}

    default_engine = override_search.get("defaultEngine")
    if not isinstance(default_engine, str) or not default_engine:
        default_engine = base_search.get("defaultEngine")

    return {
        "sections": _list_or(override, base, "sections"),
        "links": _list_or(override, base, "links"),
        "quotes": _list_or(override, base, "quotes"),
        "backgrounds": _list_or(override, base, "backgrounds"),
        "search": {
            "defaultEngine": default_engine,
            "engines": _list_or(override_search, base_search, "engines"),
        },
    }


def is_data_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("data:")


def ensure_link_ids(links: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Copy of ``links`` where every link has an ``id``."""
    return [link if link.get("id") else {**link, "id": str(uuid.uuid4())} for link in links]


def split_config(config: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Separate device-local assets from the synced document.

    Uploaded backgrounds and link icon overrides stored as ``data:`` URLs are
    moved into a local assets dict keyed by link id.

    Returns:
        (sync_config, local_assets)
    """
    local_assets: Dict[str, Any] = {"backgroundUploads": [], "linkIcons": {}}

    backgrounds = []
    for background in config.get("backgrounds") or []:
        if is_data_url(background):
            local_assets["backgroundUploads"].append(background)
        else:
            backgrounds.append(background)

    links = []
    for link in ensure_link_ids(config.get("links") or []):
        entry = dict(link)
        if is_data_url(link.get("iconOverride")):
            local_assets["linkIcons"][link["id"]] = link["iconOverride"]
            entry["iconOverride"] = ""
        links.append(entry)

    return {**config, "links": links, "backgrounds": backgrounds}, local_assets


def apply_local_assets(
    config: Dict[str, Any], local_assets: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Inverse of split_config: put device-local assets back into the document.

    Inline ``data:`` icon overrides left in the synced document are ignored in
    favour of the local copy.
    """
    assets = local_assets or {}
    uploads = assets.get("backgroundUploads")
    uploads = uploads if isinstance(uploads, list) else []
    icons = assets.get("linkIcons") or {}

    links = []
    for link in ensure_link_ids(config.get("links") or []):
        inline = link.get("iconOverride") or ""
        if is_data_url(inline):
            inline = ""
        links.append({**link, "iconOverride": icons.get(link["id"]) or inline})

    backgrounds = [*(config.get("backgrounds") or []), *uploads]
    return {**config, "links": links, "backgrounds": backgrounds}
