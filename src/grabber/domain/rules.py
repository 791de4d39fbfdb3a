import hashlib
import ipaddress
import re
from datetime import datetime, timedelta, timezone

MW_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
ISO_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

IMPORTED_USER_PREFIX = "imported>"
UNKNOWN_ACTOR_NAME = "Unknown user"
MAX_USERNAME_LENGTH = 255
INVALID_USERNAME_CHARS = frozenset("#<>[]|{}@:=/")
INFINITY_VALUES = frozenset({"infinite", "indefinite", "infinity", "never"})

# Comment pseudo-pages and namespaces created by Fandom's article comment system
FANDOM_COMMENT_TITLE_RE = re.compile(r"^(.*)(/@comment-.*-20\d{12}){1,2}$")
FANDOM_COMMENT_NAMESPACES = frozenset({500, 501, 1200, 1201, 1202, 2000, 2001, 2002})

FILE_EXTENSION_ALIASES = {"jpeg": "jpg", "ogv": "ogg"}

_NAMESPACE_PREFIX_RE = re.compile(r"^[^:]*?:")
_MW_TIMESTAMP_RE = re.compile(r"^\d{14}$")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def sanitise_title(namespace: int, title: str) -> str:
    """Strip the namespace prefix (outside the main namespace) and convert spaces to underscores."""
    if int(namespace) != 0:
        title = _NAMESPACE_PREFIX_RE.sub("", title, count=1)
    return title.replace(" ", "_")


def prefixed_db_key(namespace: int, db_key: str, namespace_names: dict[int, str]) -> str:
    db_key = db_key.replace(" ", "_")
    if int(namespace) == 0:
        return db_key
    prefix = namespace_names.get(int(namespace), "").replace(" ", "_")
    return f"{prefix}:{db_key}" if prefix else db_key


def is_ip_address(name: str) -> bool:
    try:
        ipaddress.ip_address(name.strip())
    except ValueError:
        return False
    return True


def is_valid_username(name: str) -> bool:
    if not name or name != name.strip():
        return False
    if len(name) > MAX_USERNAME_LENGTH or is_ip_address(name):
        return False
    if any(ch in INVALID_USERNAME_CHARS for ch in name):
        return False
    return name[0] == name[0].upper()


def is_fandom_comment_title(title: str) -> bool:
    return bool(FANDOM_COMMENT_TITLE_RE.match(title or ""))


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def sha1_base36(text: str) -> str:
    # Local checksums are stored the way MediaWiki stores rev_sha1: base 36, padded to 31 chars
    digest = hashlib.sha1((text or "").encode("utf-8")).hexdigest()
    return to_base36(int(digest, 16)).rjust(31, "0")


def base36_to_hex(value: str | None) -> str | None:
    if not value:
        return None
    return format(int(value, 36), "040x")


def hex_to_base36(value: str | None) -> str | None:
    if not value:
        return None
    return to_base36(int(value, 16)).rjust(31, "0")


def file_storage_key(sha1_hex: str, file_name: str) -> str:
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    ext = FILE_EXTENSION_ALIASES.get(ext, ext)
    return f"{to_base36(int(sha1_hex, 16))}.{ext}"


def parse_timestamp(value: str) -> datetime:
    """Accept 14-digit MediaWiki timestamps and ISO 8601 strings; raise ValueError otherwise."""
    raw = str(value or "").strip()
    if _MW_TIMESTAMP_RE.match(raw):
        return datetime.strptime(raw, MW_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_mw_timestamp(value: str) -> str:
    return parse_timestamp(value).strftime(MW_TIMESTAMP_FORMAT)


def to_iso_timestamp(value: str) -> str:
    return parse_timestamp(value).strftime(ISO_TIMESTAMP_FORMAT)


def one_second_before(value: str) -> str:
    # Resume points are moved back one second so that entries sharing the last timestamp are re-read
    return (parse_timestamp(value) - timedelta(seconds=1)).strftime(ISO_TIMESTAMP_FORMAT)


def is_infinity(value: str | None) -> bool:
    return str(value or "").strip().lower() in INFINITY_VALUES


def ip_to_hex(name: str) -> str | None:
    """Hex form used by ip_changes: 8 upper-case digits for IPv4, ``v6-`` + 32 for IPv6."""
    try:
        address = ipaddress.ip_address(name.strip())
    except ValueError:
        return None
    if address.version == 4:
        return format(int(address), "08X")
    return "v6-" + format(int(address), "032X")
