import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

DEFAULT_PAGE_FORMAT = "A4"
PAGE_FORMAT_ENV_KEYS = (
    "REPORT_PAGE_FORMAT",
    "PDF_PAGE_FORMAT",
    "PDF_PAGE_SIZE",
    "PAGE_FORMAT",
)
PAGE_FORMAT_ALIASES = {
    "LETTER": "Letter",
    "US-LETTER": "Letter",
    "US_LETTER": "Letter",
    "A4": "A4",
    "LEGAL": "Legal",
    "A3": "A3",
    "TABLOID": "Tabloid",
}
# (width, height) in millimetres, portrait.
PAGE_DIMENSIONS_MM: Dict[str, Tuple[float, float]] = {
    "A4": (210.0, 297.0),
    "A3": (297.0, 420.0),
    "Letter": (215.9, 279.4),
    "Legal": (215.9, 355.6),
    "Tabloid": (279.4, 431.8),
}

BACKEND_URL_ENV_KEYS = ("REPORT_BACKEND_URL", "SUPABASE_URL")
BACKEND_KEY_ENV_KEYS = ("REPORT_BACKEND_KEY", "SUPABASE_ANON_KEY", "SUPABASE_KEY")

DEFAULT_BATCH_TIERS = "50:3:1.5,20:5:1.5,0:10:2"


@dataclass(frozen=True)
class BatchTier:
    """Batch size and capture scale used once a report reaches ``min_records``."""

    min_records: int
    batch_size: int
    scale: float


@dataclass(frozen=True)
class PageFormat:
    name: str
    width_mm: float
    height_mm: float


@dataclass
class ReportSettings:
    page: PageFormat = field(default_factory=lambda: PageFormat("A4", *PAGE_DIMENSIONS_MM["A4"]))
    batch_tiers: Tuple[BatchTier, ...] = field(default_factory=lambda: parse_batch_tiers(DEFAULT_BATCH_TIERS))
    backend_url: str = ""
    backend_key: str = ""
    backend_timeout: float = 15.0
    resource_timeout_ms: int = 3000
    capture_format: str = "jpeg"
    jpeg_quality: int = 92
    viewport_width: int = 794
    s3_bucket: Optional[str] = None
    storage_dir: str = ""
    placeholder: str = "N/A"


def _standardize_page_key(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"[^A-Z0-9]+", "-", value.upper()).strip('-')


def _first_env(env: Mapping[str, str], keys) -> Tuple[Optional[str], Optional[str]]:
    for key in keys:
        val = env.get(key)
        if val and val.strip():
            return key, val.strip()
    return None, None


def resolve_page_format(env: Mapping[str, str] | None = None) -> PageFormat:
    env = os.environ if env is None else env
    source_key, raw_value = _first_env(env, PAGE_FORMAT_ENV_KEYS)
    name = DEFAULT_PAGE_FORMAT

    if raw_value:
        resolved = PAGE_FORMAT_ALIASES.get(_standardize_page_key(raw_value))
        if resolved:
            name = resolved
        else:
            logger.warning(
                "Unrecognized report page format '%s' from %s; using %s.",
                raw_value,
                source_key,
                DEFAULT_PAGE_FORMAT,
            )

    width, height = PAGE_DIMENSIONS_MM[name]
    return PageFormat(name, width, height)


def parse_batch_tiers(raw: str | None) -> Tuple[BatchTier, ...]:
    """Parse ``"min:size:scale,..."`` into tiers sorted by descending threshold.

    Invalid entries are skipped with a warning; when nothing usable remains
    the built-in tiers are returned.
    """
    tiers = []
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        parts = chunk.split(":")
        try:
            if len(parts) not in (2, 3):
                raise ValueError("expected min:size[:scale]")
            min_records = int(parts[0])
            batch_size = int(parts[1])
            scale = float(parts[2]) if len(parts) == 3 else 2.0
            if min_records < 0 or batch_size < 1 or scale <= 0:
                raise ValueError("values out of range")
        except ValueError as exc:
            logger.warning("Ignoring invalid batch tier '%s': %s", chunk, exc)
            continue
        tiers.append(BatchTier(min_records, batch_size, scale))

    if not tiers:
        if raw and raw != DEFAULT_BATCH_TIERS:
            logger.warning("No usable batch tiers in '%s'; using defaults.", raw)
        return parse_batch_tiers(DEFAULT_BATCH_TIERS)

    tiers.sort(key=lambda t: t.min_records, reverse=True)
    if tiers[-1].min_records != 0:
        last = tiers[-1]
        tiers.append(BatchTier(0, last.batch_size, last.scale))
    return tuple(tiers)


def _int_setting(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning("Invalid integer for %s: '%s'. Falling back to %s.", key, raw, default)
        return default
    if value < minimum:
        logger.warning("%s=%s below minimum %s. Falling back to %s.", key, value, minimum, default)
        return default
    return value


def resolve_report_settings(env: Mapping[str, str] | None = None) -> ReportSettings:
    env = os.environ if env is None else env

    _, backend_url = _first_env(env, BACKEND_URL_ENV_KEYS)
    _, backend_key = _first_env(env, BACKEND_KEY_ENV_KEYS)

    capture_format = (env.get("REPORT_CAPTURE_FORMAT") or "jpeg").strip().lower()
    if capture_format == "jpg":
        capture_format = "jpeg"
    if capture_format not in ("jpeg", "png"):
        logger.warning("Unsupported capture format '%s'; using jpeg.", capture_format)
        capture_format = "jpeg"

    timeout_raw = env.get("REPORT_BACKEND_TIMEOUT")
    backend_timeout = 15.0
    if timeout_raw:
        try:
            backend_timeout = max(float(timeout_raw), 1.0)
        except ValueError:
            logger.warning("Invalid REPORT_BACKEND_TIMEOUT '%s'; using %.0fs.", timeout_raw, backend_timeout)

    settings = ReportSettings(
        page=resolve_page_format(env),
        batch_tiers=parse_batch_tiers(env.get("REPORT_BATCH_TIERS") or DEFAULT_BATCH_TIERS),
        backend_url=(backend_url or "").rstrip("/"),
        backend_key=backend_key or "",
        backend_timeout=backend_timeout,
        resource_timeout_ms=_int_setting(env, "REPORT_RESOURCE_TIMEOUT_MS", 3000, minimum=100),
        capture_format=capture_format,
        jpeg_quality=min(_int_setting(env, "REPORT_JPEG_QUALITY", 92, minimum=1), 100),
        viewport_width=_int_setting(env, "REPORT_VIEWPORT_WIDTH", 794, minimum=320),
        s3_bucket=(env.get("S3_BUCKET") or "").strip() or None,
        storage_dir=(env.get("REPORT_STORAGE_DIR") or os.path.join(os.getcwd(), "generated_reports")),
    )

    logger.info(
        "Using report page format '%s' (%.1fx%.1fmm), %d batch tier(s), capture=%s",
        settings.page.name,
        settings.page.width_mm,
        settings.page.height_mm,
        len(settings.batch_tiers),
        settings.capture_format,
    )
    return settings


__all__ = [
    "BatchTier",
    "PageFormat",
    "ReportSettings",
    "parse_batch_tiers",
    "resolve_page_format",
    "resolve_report_settings",
]
