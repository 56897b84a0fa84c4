import re
from functools import lru_cache

# nginx log_format the parser is built for
LOG_SCHEMA = '$remote_addr - $remote_user [$time_local] "$request" $status $bytes_sent "$http_referer" "$http_user_agent"'

# Anything shorter cannot hold a request line
MIN_LINE_LENGTH = 9

DEFAULT_BATCH_SIZE = 50_000

TIME_LOCAL_FORMAT = "%d/%b/%Y %H:%M:%S %z"

ALLOWED_GEOIP_LOCALES = ["de", "en", "es", "fr", "ja", "pt-BR", "ru", "zh-CN"]
GEOIP_LOCALES_DEFAULT = ["en"]

_SCHEMA_VARIABLE = re.compile(r"\$(\w+)")


def _field_pattern(delimiter: str) -> str:
    """Character class for a variable that ends at delimiter (the next literal character)."""
    if not delimiter:
        return ".*"
    if delimiter.isspace():
        return r"\S*"
    return f"[^{re.escape(delimiter)}]*"


def compile_schema(schema: str) -> re.Pattern[str]:
    """Turn an nginx log_format string into a regex with one named group per variable.

    Literal text between variables is escaped, so brackets and quotes act as delimiters.
    Each group excludes the character that follows it in the schema, which keeps
    matching linear on lines that do not fit.
    """
    variables = list(_SCHEMA_VARIABLE.finditer(schema))
    parts: list[str] = []
    position = 0
    for index, variable in enumerate(variables):
        parts.append(re.escape(schema[position:variable.start()]))
        end = variables[index + 1].start() if index + 1 < len(variables) else len(schema)
        delimiter = schema[variable.end():end][:1]
        parts.append(f"(?P<{variable.group(1)}>{_field_pattern(delimiter)})")
        position = variable.end()
    parts.append(re.escape(schema[position:]))
    return re.compile("".join(parts))


@lru_cache(maxsize=1)
def log_pattern() -> re.Pattern[str]:
    """Compiled pattern for LOG_SCHEMA."""
    return compile_schema(LOG_SCHEMA)


def schema_fields() -> tuple[str, ...]:
    """Variable names of LOG_SCHEMA in order of appearance."""
    return tuple(_SCHEMA_VARIABLE.findall(LOG_SCHEMA))
