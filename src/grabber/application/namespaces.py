from typing import Any

from src.config.logger_config import logger

from src.grabber.domain.errors import InvalidOptionError, RemoteContractError
from src.grabber.domain.models import api_list
from src.grabber.domain.rules import FANDOM_COMMENT_NAMESPACES


def parse_namespace_names(siteinfo: dict[str, Any]) -> dict[int, str]:
    names: dict[int, str] = {}
    for item in api_list(siteinfo.get("namespaces")):
        if not isinstance(item, dict) or item.get("id") is None:
            continue
        # formatversion=2 uses "name", formatversion=1 the "*" key
        names[int(item["id"])] = str(item.get("name", item.get("*", "")))
    return names


def select_namespaces(
    siteinfo: dict[str, Any],
    requested: tuple[int, ...] | list[int] | None,
    *,
    skip_fandom_comments: bool = False,
) -> list[int]:
    """Namespaces to grab: the requested ones known to the remote, or every non-special one."""
    names = parse_namespace_names(siteinfo)
    if not names:
        raise RemoteContractError("No namespaces found in siteinfo")

    if requested is None:
        selected = sorted(ns for ns in names if ns >= 0)
    else:
        selected = []
        for ns in requested:
            if ns < 0 or ns not in names:
                logger.warning("Ignoring namespace {}: special or unknown on the remote wiki", ns)
                continue
            if ns not in selected:
                selected.append(ns)

    if skip_fandom_comments:
        selected = [ns for ns in selected if ns not in FANDOM_COMMENT_NAMESPACES]
    if not selected:
        raise InvalidOptionError("Got no namespaces")
    return selected


def split_start_title(start: str, namespace_names: dict[int, str]) -> tuple[int, str]:
    """Split an operator supplied title into its namespace id and the title text.

    ``gapfrom`` does not take a namespace, so the prefix has to be resolved
    against the remote namespace names.
    """
    text = start.strip().replace("_", " ")
    if not text:
        raise InvalidOptionError("Invalid title provided for the start parameter")
    if ":" in text:
        prefix, rest = text.split(":", 1)
        wanted = prefix.strip().replace("_", " ").casefold()
        for ns, name in namespace_names.items():
            if ns != 0 and name and name.casefold() == wanted:
                if not rest.strip():
                    raise InvalidOptionError("Invalid title provided for the start parameter")
                return ns, rest.strip()
    return 0, text
