import os

from dotenv import find_dotenv, load_dotenv

from envelope_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}

_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "ACCOUNT_MODEL_MIN_SAMPLES",
    "PREDICTION_MIN_PROBABILITY",
    "RETRAIN_INTERVAL_SECONDS",
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
    """Read a flat ``KEY: value`` config file. Nested YAML is not supported."""
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
            value = _unquote_value(_strip_inline_comment(raw_value).strip())
            if key and value:
                values[key] = value
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
    default: float = 0.0,
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


def log_environment() -> None:
    logger.info("[ENV] Config file: %s", _CONFIG_FILE_PATH or "<none>")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        logger.info("[ENV] %s=%s", key, "<unset>" if raw_value is None else raw_value)


DEFAULT_ACCOUNT_MODEL_MIN_SAMPLES = 50
DEFAULT_PREDICTION_MIN_PROBABILITY = 0.05
DEFAULT_RETRAIN_INTERVAL_SECONDS = 24 * 60 * 60


load_environment()

LOG_DIR = os.getenv("LOG_DIR")

ACCOUNT_MODEL_MIN_SAMPLES = get_env_int(
    "ACCOUNT_MODEL_MIN_SAMPLES",
    DEFAULT_ACCOUNT_MODEL_MIN_SAMPLES,
    min_value=1,
)
PREDICTION_MIN_PROBABILITY = get_env_float(
    "PREDICTION_MIN_PROBABILITY",
    DEFAULT_PREDICTION_MIN_PROBABILITY,
    min_value=0.0,
    max_value=1.0,
)
RETRAIN_INTERVAL_SECONDS = get_env_int(
    "RETRAIN_INTERVAL_SECONDS",
    DEFAULT_RETRAIN_INTERVAL_SECONDS,
    min_value=1,
)
