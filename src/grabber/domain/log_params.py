"""Log parameter transcoding.

The API hands log parameters back in a normalised shape, while the local
``logging.log_params`` column keeps the per-type storage format, whose field
names changed around MediaWiki 1.25. Every rule below accepts both generations
of input and emits a single canonical mapping:

=============  ==========================================  =====================
log type       API field (current / legacy)                stored key
=============  ==========================================  =====================
move           target_title / new_title                    4::target
               suppressredirect / suppressedredirect       5::noredir (0|1)
patrol         curid / cur                                 4::curid
               previd / prev                               5::previd
               auto                                        6::auto (0|1)
rights         oldgroups / old (comma list)                4::oldgroups (list)
               newgroups / new (comma list)                5::newgroups (list)
               oldmetadata, newmetadata                    same, expiry only
block          duration                                    5::duration
               flags (list / comma list)                   6::flags (comma list)
protect        description                                 4::description
               oldtitle_ns + oldtitle_title                4::oldtitle
               cascade                                     5:bool:cascade
               details                                     details
delete         count, type, ids, old, new                  :assoc:count, 4::type,
                                                           5::ids, 6::ofield, 7::nfield
upload         img_sha1, img_timestamp                     img_sha1, img_timestamp
merge          dest_title, mergepoint                      4::dest, 5::mergepoint
contentmodel   oldmodel, newmodel                          4::oldmodel, 5::newmodel
tag            revid, logid, tagsAdded, tagsAddedCount,    4::revid, 5::logid,
               tagsRemoved, tagsRemovedCount, initialTags  6:list:tagsAdded, ...
managetags     tag, count                                  4::tag, 5:number:count
renameuser     olduser, newuser, edits                     4::olduser, 5::newuser,
                                                           6::edits
=============  ==========================================  =====================

Optional fields missing from the input are left out of the output. Types
without a rule are passed through unchanged.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable

from src.grabber.domain.models import api_flag
from src.grabber.domain.rules import is_infinity, prefixed_db_key, sanitise_title, to_mw_timestamp

_MISSING = object()


@dataclass(frozen=True)
class TranscodeContext:
    namespace_names: dict[int, str] = field(default_factory=dict)


LogParamRule = Callable[[dict[str, Any], TranscodeContext], dict[str, Any]]

LOG_PARAM_RULES: dict[str, LogParamRule] = {}


def log_param_rule(log_type: str) -> Callable[[LogParamRule], LogParamRule]:
    def register(func: LogParamRule) -> LogParamRule:
        LOG_PARAM_RULES[log_type] = func
        return func

    return register


def _pick(params: dict[str, Any], *names: str) -> Any:
    for name in names:
        if params.get(name) is not None:
            return params[name]
    return _MISSING


def _copy(out: dict[str, Any], params: dict[str, Any], source: str, target: str, convert: Callable[[Any], Any] | None = None) -> None:
    value = _pick(params, source)
    if value is not _MISSING:
        out[target] = convert(value) if convert else value


def _group_list(groups: Any) -> list[str]:
    if groups == "":
        return []
    if isinstance(groups, str):
        return [g.strip() for g in groups.split(",")]
    return list(groups)


def map_to_transformations(
    origin: Any,
    pass_through: tuple[str, ...] = (),
    timestamps: dict[str, str | None] | None = None,
    booleans: tuple[str, ...] = (),
) -> list[dict[str, Any]]:
    """Rebuild a list of mappings keeping only the listed keys.

    ``timestamps`` maps a key to the value used when the item holds an
    infinite expiry; other timestamps become 14-digit strings.
    """
    result = []
    for item in origin.values() if isinstance(origin, dict) else origin:
        row: dict[str, Any] = {}
        for key in pass_through:
            if item.get(key) is not None:
                row[key] = item[key]
        for key, infinity in (timestamps or {}).items():
            if item.get(key) is not None:
                row[key] = infinity if is_infinity(item[key]) else to_mw_timestamp(item[key])
        for key in booleans:
            row[key] = api_flag(item, key)
        result.append(row)
    return result


@log_param_rule("move")
def _move(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    target = _pick(params, "target_title", "new_title")
    if target is not _MISSING:
        out["4::target"] = target
    out["5::noredir"] = int(api_flag(params, "suppressredirect") or api_flag(params, "suppressedredirect"))
    return out


@log_param_rule("patrol")
def _patrol(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    cur = _pick(params, "curid", "cur")
    if cur is not _MISSING:
        out["4::curid"] = int(cur)
    prev = _pick(params, "previd", "prev")
    if prev is not _MISSING:
        out["5::previd"] = int(prev)
    out["6::auto"] = int(api_flag(params, "auto"))
    return out


@log_param_rule("rights")
def _rights(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    old = _pick(params, "oldgroups", "old")
    if old is not _MISSING:
        out["4::oldgroups"] = _group_list(old)
    new = _pick(params, "newgroups", "new")
    if new is not _MISSING:
        out["5::newgroups"] = _group_list(new)
    # Group names are dropped from the metadata, only the expiry is kept
    for key in ("oldmetadata", "newmetadata"):
        if params.get(key) is not None:
            out[key] = map_to_transformations(params[key], timestamps={"expiry": None})
    return out


@log_param_rule("block")
def _block(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "duration", "5::duration")
    flags = _pick(params, "flags")
    if flags is not _MISSING:
        out["6::flags"] = ",".join(flags) if isinstance(flags, list) else flags
    return out


@log_param_rule("protect")
def _protect(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if params.get("description") is not None:
        out["4::description"] = params["description"]
    elif params.get("oldtitle_title") is not None:
        ns = int(params.get("oldtitle_ns") or 0)
        out["4::oldtitle"] = prefixed_db_key(ns, sanitise_title(ns, params["oldtitle_title"]), ctx.namespace_names)
    out["5:bool:cascade"] = api_flag(params, "cascade")
    if params.get("details") is not None:
        out["details"] = map_to_transformations(
            params["details"],
            pass_through=("type", "level"),
            timestamps={"expiry": "infinite"},
            booleans=("cascade",),
        )
    return out


@log_param_rule("delete")
def _delete(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "count", ":assoc:count")
    _copy(out, params, "type", "4::type")
    _copy(out, params, "ids", "5::ids")
    _copy(out, params, "old", "6::ofield", lambda v: v["bitmask"])
    _copy(out, params, "new", "7::nfield", lambda v: v["bitmask"])
    return out


@log_param_rule("upload")
def _upload(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "img_sha1", "img_sha1")
    _copy(out, params, "img_timestamp", "img_timestamp", to_mw_timestamp)
    return out


@log_param_rule("merge")
def _merge(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "dest_title", "4::dest")
    _copy(out, params, "mergepoint", "5::mergepoint", to_mw_timestamp)
    return out


@log_param_rule("contentmodel")
def _contentmodel(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "oldmodel", "4::oldmodel")
    _copy(out, params, "newmodel", "5::newmodel")
    return out


@log_param_rule("tag")
def _tag(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "revid", "4::revid")
    _copy(out, params, "logid", "5::logid")
    _copy(out, params, "tagsAdded", "6:list:tagsAdded")
    _copy(out, params, "tagsAddedCount", "7:number:tagsAddedCount")
    _copy(out, params, "tagsRemoved", "8:list:tagsRemoved")
    _copy(out, params, "tagsRemovedCount", "9:number:tagsRemovedCount")
    _copy(out, params, "initialTags", "initialTags")
    return out


@log_param_rule("managetags")
def _managetags(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "tag", "4::tag")
    _copy(out, params, "count", "5:number:count")
    return out


@log_param_rule("renameuser")
def _renameuser(params: dict[str, Any], ctx: TranscodeContext) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _copy(out, params, "olduser", "4::olduser")
    _copy(out, params, "newuser", "5::newuser")
    _copy(out, params, "edits", "6::edits")
    return out


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else ""
    if value is None:
        return ""
    return str(value)


def is_sequential_list(params: Any) -> bool:
    """True when the parameters are an unnamed list: every key a 0-based sequential index."""
    if isinstance(params, list):
        return True
    if not isinstance(params, dict) or not params:
        return False
    keys = [str(k) for k in params]
    if not all(k.isdigit() for k in keys):
        return False
    return sorted(int(k) for k in keys) == list(range(len(keys)))


def _numbered_lines(source: dict[str, Any] | list[Any]) -> list[str]:
    if isinstance(source, list):
        return [_scalar(v) for v in source]
    lines = []
    index = 0
    while str(index) in source or index in source:
        lines.append(_scalar(source.get(str(index), source.get(index))))
        index += 1
    return lines


class LogParamsTranscoder:
    def __init__(self, context: TranscodeContext | None = None, rules: dict[str, LogParamRule] | None = None) -> None:
        self.context = context or TranscodeContext()
        self.rules = LOG_PARAM_RULES if rules is None else rules

    def encode(self, entry: dict[str, Any]) -> str:
        log_type = str(entry.get("type") or "")
        explicit = entry.get("params")
        if explicit is None:
            # Older wikis put the parameters under a property named after the log type
            explicit = entry.get(log_type)
        if isinstance(explicit, (dict, list)) and len(explicit) > 0:
            if is_sequential_list(explicit):
                return "\n".join(_numbered_lines(explicit))
            rule = self.rules.get(log_type)
            canonical = rule(explicit, self.context) if rule else dict(explicit)
            return json.dumps(canonical, ensure_ascii=False, separators=(",", ":"))

        return "\n".join(_numbered_lines(entry))
