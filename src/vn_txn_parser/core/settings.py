import os

from dotenv import find_dotenv, load_dotenv

from vn_txn_parser.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "MIN_AUTO_CONFIDENCE",
    "INTENT_CONFIDENCE_THRESHOLD",
    "FALLBACK_AMOUNT_CONFIDENCE",
    "HEURISTIC_MIN_SCORE",
    "MAX_ALTERNATIVES",
    "MIN_RETRAIN_SAMPLES",
    "PRIOR_WINDOW_DAYS",
    "PARSE_TIMEOUT_SECONDS",
    "BOOTSTRAP_SEED",
)


def _resolve_dotenv_path() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        candidate = os.path.join(config_dir, ".env")
        if os.path.exists(candidate):
            return candidate
    resolved = find_dotenv(usecwd=True)
    return resolved or None


def _resolve_config_path() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    cwd = os.getcwd()
    candidate = os.path.join(cwd, "config", CONFIG_FILENAME)
    if os.path.exists(candidate):
        return candidate
    return os.path.join(cwd, CONFIG_FILENAME)


def _strip_inline_comment(raw_value: str) -> str:
    in_single = False
    in_double = False
    for index, char in enumerate(raw_value):
        if char == '"' and not in_single:
            in_double = not in_double
        elif char == "'" and not in_double:
            in_single = not in_single
        elif char == "#" and not in_single and not in_double:
            return raw_value[:index].rstrip()
    return raw_value


def _unquote_value(raw_value: str) -> str:
    if len(raw_value) >= 2 and raw_value[0] == raw_value[-1] and raw_value[0] in {'"', "'"}:
        return raw_value[1:-1]
    return raw_value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat ``KEY: value`` lines; nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            key = key.strip()
            cleaned = _strip_inline_comment(raw_value).strip()
            if key and cleaned:
                values[key] = _unquote_value(cleaned)
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    for key in _CONFIG_KEYS:
        if key not in os.environ and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def get_config_path() -> str | None:
    return _CONFIG_FILE_PATH


def ensure_dir(path: str | None) -> None:
    if path and path not in {".", "./"}:
        os.makedirs(path, exist_ok=True)


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning(
            "[ENV] %s='%s' below minimum %s, using default %s.",
            name,
            raw,
            min_value,
            default,
        )
        return default
    return value


def get_env_float(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning(
            "[ENV] %s='%s' outside [%s, %s], using default %s.",
            name,
            raw,
            min_value,
            max_value,
            default,
        )
        return default
    return value


def min_auto_confidence() -> float:
    return get_env_float("MIN_AUTO_CONFIDENCE", 0.6, min_value=0.0, max_value=1.0)


def intent_confidence_threshold() -> float:
    return get_env_float("INTENT_CONFIDENCE_THRESHOLD", 0.6, min_value=0.0, max_value=1.0)


def fallback_amount_confidence() -> float:
    # Capped at 0.25 so a fallback never outranks a genuine span extraction.
    return min(get_env_float("FALLBACK_AMOUNT_CONFIDENCE", 0.25, min_value=0.0, max_value=1.0), 0.25)


def heuristic_min_score() -> float:
    return get_env_float("HEURISTIC_MIN_SCORE", 0.1, min_value=0.0, max_value=1.0)


def max_alternatives() -> int:
    return get_env_int("MAX_ALTERNATIVES", 3, min_value=0)


def min_retrain_samples() -> int:
    return get_env_int("MIN_RETRAIN_SAMPLES", 5, min_value=1)


def prior_window_days() -> int:
    return get_env_int("PRIOR_WINDOW_DAYS", 90, min_value=1)


def parse_timeout_seconds() -> float:
    return get_env_float("PARSE_TIMEOUT_SECONDS", 10.0, min_value=0.0)


def bootstrap_seed() -> int:
    return get_env_int("BOOTSTRAP_SEED", 42)


_ENV_KEYS_TO_LOG = _CONFIG_KEYS + ("CONFIG_DIR",)


def log_environment() -> None:
    logger.info("[ENV] Logging configured environment variables (config file: %s).", get_config_path())
    for key in _ENV_KEYS_TO_LOG:
        raw_value = os.getenv(key)
        logger.info("[ENV] %s=%s", key, "<unset>" if raw_value is None else raw_value)


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")

for _path in (DATA_DIR, LOG_DIR, CONFIG_DIR):
    ensure_dir(_path)
