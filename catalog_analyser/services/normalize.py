"""Column normalisation: catalog column rows to ColumnInfo."""

import re
from typing import Optional, Union

from catalog_analyser.models.rows import ColumnRow
from catalog_analyser.models.schema import ColumnInfo

TYPE_NAME_MAP: dict[str, str] = {
    "character varying": "varchar",
    "character": "char",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
    "time with time zone": "timetz",
    "double precision": "float8",
    "bit varying": "varbit",
}

STRING_TYPE_PATTERN = re.compile(r"char|binary", re.IGNORECASE)
NUMERIC_TYPE_PATTERN = re.compile(r"numeric|decimal", re.IGNORECASE)

# Heuristic: sequence-backed defaults are engine managed (serial columns).
AUTO_INCREMENT_PREFIX = "nextval("


def normalize_type_name(data_type: str) -> str:
    return TYPE_NAME_MAP.get(data_type, data_type)


def is_string_type(data_type: str) -> bool:
    return bool(STRING_TYPE_PATTERN.search(data_type))


def is_numeric_type(data_type: str) -> bool:
    return bool(NUMERIC_TYPE_PATTERN.search(data_type))


def full_data_type(
    data_type: str,
    char_max_length: Optional[int] = None,
    numeric_precision: Optional[int] = None,
    numeric_scale: Optional[int] = None
) -> str:
    """Build the parameterised type name, e.g. ``varchar(50)`` or ``numeric(10,2)``."""
    normalized = normalize_type_name(data_type)
    if char_max_length and is_string_type(normalized):
        return f"{normalized}({char_max_length})"
    if numeric_precision and numeric_scale is not None and is_numeric_type(normalized):
        return f"{normalized}({numeric_precision},{numeric_scale})"
    return normalized


def is_not_null(is_nullable: Union[bool, str, None]) -> bool:
    """Catalogs report nullability as a boolean or as ``YES``/``NO`` text; blank means missing."""
    if isinstance(is_nullable, str):
        flag = is_nullable.strip().upper()
        return flag in ("NO", "")
    return not is_nullable


def is_auto_increment(default_value: Optional[str]) -> bool:
    return bool(default_value) and default_value.startswith(AUTO_INCREMENT_PREFIX)


def normalize_column(row: ColumnRow) -> ColumnInfo:
    """Map a decoded catalog column row to a ColumnInfo."""
    auto_increment = is_auto_increment(row.default_value)
    return ColumnInfo(
        column_name=row.column_name,
        data_type=full_data_type(
            row.data_type,
            row.char_max_length,
            row.numeric_precision,
            row.numeric_scale,
        ),
        not_null=is_not_null(row.is_nullable),
        default_value=None if auto_increment else row.default_value,
        auto_increment=auto_increment,
    )
