"""PostgreSQL catalog queries and capability descriptor.

Every template filters on ``'<kind>:' || schema || '.' || name`` followed
by the ``=OBJECT_ID_CONDITION`` marker, which the executor replaces with
either `` is not null`` (full analysis) or `` = '<object id>'`` (single
object analysis).
"""

from catalog_analyser.dialects.base import (
    DialectDescriptor,
    QueryTemplate,
    TABLES,
    VIEWS,
    MATVIEWS,
    PROCEDURES,
    FUNCTIONS,
)


def _user_schema(column: str) -> str:
    return (
        f"{column} not in ('pg_catalog', 'information_schema') "
        f"and {column} not like 'pg_toast%' and {column} not like 'pg_temp%'"
    )


TABLE_LIST_SQL = f"""
select
    infoTables.table_schema as schema_name,
    infoTables.table_name as pure_name
from information_schema.tables infoTables
where infoTables.table_type = 'BASE TABLE'
    and {_user_schema("infoTables.table_schema")}
    and ('tables:' || infoTables.table_schema || '.' || infoTables.table_name) =OBJECT_ID_CONDITION
order by infoTables.table_schema, infoTables.table_name
"""

TABLE_MODIFICATIONS_SQL = f"""
select
    infoTables.table_schema as schema_name,
    infoTables.table_name as pure_name,
    (
        select md5(string_agg(
            infoColumns.column_name || '~' || infoColumns.data_type || '~' ||
            coalesce(infoColumns.udt_schema || '.' || infoColumns.udt_name, '') || '~' ||
            coalesce(infoColumns.character_maximum_length::text, '') || '~' ||
            coalesce(infoColumns.numeric_precision::text, '') || '~' ||
            coalesce(infoColumns.numeric_scale::text, '') || '~' ||
            infoColumns.is_nullable || '~' || coalesce(infoColumns.column_default, ''),
            '|' order by infoColumns.ordinal_position
        ))
        from information_schema.columns infoColumns
        where infoColumns.table_schema = infoTables.table_schema
            and infoColumns.table_name = infoTables.table_name
    ) as hash_code_columns,
    md5(
        coalesce((
            select string_agg(pgConstraint.conname || '~' || pg_get_constraintdef(pgConstraint.oid), '|' order by pgConstraint.conname)
            from pg_catalog.pg_constraint pgConstraint
            where pgConstraint.conrelid = format('%I.%I', infoTables.table_schema, infoTables.table_name)::regclass
        ), '') || '#' ||
        coalesce((
            select string_agg(pgIndexes.indexname || '~' || pgIndexes.indexdef, '|' order by pgIndexes.indexname)
            from pg_catalog.pg_indexes pgIndexes
            where pgIndexes.schemaname = infoTables.table_schema
                and pgIndexes.tablename = infoTables.table_name
        ), '')
    ) as hash_code_constraints
from information_schema.tables infoTables
where infoTables.table_type = 'BASE TABLE'
    and {_user_schema("infoTables.table_schema")}
    and ('tables:' || infoTables.table_schema || '.' || infoTables.table_name) =OBJECT_ID_CONDITION
order by infoTables.table_schema, infoTables.table_name
"""

COLUMNS_SQL = f"""
select
    table_schema as schema_name,
    table_name as pure_name,
    column_name,
    is_nullable,
    case when data_type = 'USER-DEFINED' then udt_name else data_type end as data_type,
    character_maximum_length as char_max_length,
    numeric_precision,
    numeric_scale,
    column_default as default_value
from information_schema.columns
where {_user_schema("table_schema")}
    and (
        ('tables:' || table_schema || '.' || table_name) =OBJECT_ID_CONDITION
        or ('views:' || table_schema || '.' || table_name) =OBJECT_ID_CONDITION
    )
order by table_schema, table_name, ordinal_position
"""

PRIMARY_KEYS_SQL = """
select
    tableConstraints.constraint_schema,
    tableConstraints.constraint_name,
    tableConstraints.table_schema as schema_name,
    tableConstraints.table_name as pure_name,
    keyColumns.column_name
from information_schema.table_constraints tableConstraints
inner join information_schema.key_column_usage keyColumns
    on tableConstraints.table_name = keyColumns.table_name
    and tableConstraints.constraint_name = keyColumns.constraint_name
    and tableConstraints.table_schema = keyColumns.table_schema
where tableConstraints.constraint_type = 'PRIMARY KEY'
    and ('tables:' || tableConstraints.table_schema || '.' || tableConstraints.table_name) =OBJECT_ID_CONDITION
order by tableConstraints.table_schema, tableConstraints.table_name, keyColumns.ordinal_position
"""

FOREIGN_KEYS_SQL = """
select
    fk.constraint_schema,
    fk.constraint_name,
    base.table_schema as schema_name,
    base.table_name as pure_name,
    base.column_name,
    ref.table_schema as ref_schema_name,
    ref.table_name as ref_table_name,
    ref.column_name as ref_column_name,
    fk.update_rule as update_action,
    fk.delete_rule as delete_action
from information_schema.referential_constraints fk
inner join information_schema.key_column_usage base
    on fk.constraint_name = base.constraint_name
    and fk.constraint_schema = base.constraint_schema
inner join information_schema.key_column_usage ref
    on fk.unique_constraint_name = ref.constraint_name
    and fk.unique_constraint_schema = ref.constraint_schema
    and base.position_in_unique_constraint = ref.ordinal_position
    #REFTABLECOND#
where ('tables:' || base.table_schema || '.' || base.table_name) =OBJECT_ID_CONDITION
order by base.table_schema, base.table_name, fk.constraint_name, base.ordinal_position
"""

VIEWS_SQL = f"""
select
    table_name as pure_name,
    table_schema as schema_name,
    view_definition as create_sql,
    md5(view_definition) as hash_code
from information_schema.views
where {_user_schema("table_schema")}
    and ('views:' || table_schema || '.' || table_name) =OBJECT_ID_CONDITION
order by table_schema, table_name
"""

VIEW_MODIFICATIONS_SQL = f"""
select
    table_name as pure_name,
    table_schema as schema_name,
    md5(view_definition) as hash_code
from information_schema.views
where {_user_schema("table_schema")}
    and ('views:' || table_schema || '.' || table_name) =OBJECT_ID_CONDITION
order by table_schema, table_name
"""

MATVIEWS_SQL = f"""
select
    matviewname as pure_name,
    schemaname as schema_name,
    definition,
    md5(definition) as hash_code
from pg_catalog.pg_matviews
where {_user_schema("schemaname")}
    and ('matviews:' || schemaname || '.' || matviewname) =OBJECT_ID_CONDITION
order by schemaname, matviewname
"""

MATVIEW_MODIFICATIONS_SQL = f"""
select
    matviewname as pure_name,
    schemaname as schema_name,
    md5(definition) as hash_code
from pg_catalog.pg_matviews
where {_user_schema("schemaname")}
    and ('matviews:' || schemaname || '.' || matviewname) =OBJECT_ID_CONDITION
order by schemaname, matviewname
"""

MATVIEW_COLUMNS_SQL = """
select
    pgNamespace.nspname as schema_name,
    pgClass.relname as pure_name,
    pgAttribute.attname as column_name,
    not pgAttribute.attnotnull as is_nullable,
    format_type(pgAttribute.atttypid, null) as data_type,
    case
        when pgAttribute.atttypid in (1042, 1043) and pgAttribute.atttypmod > 0
        then pgAttribute.atttypmod - 4
    end as char_max_length,
    case
        when pgAttribute.atttypid = 1700 and pgAttribute.atttypmod > 0
        then ((pgAttribute.atttypmod - 4) >> 16) & 65535
    end as numeric_precision,
    case
        when pgAttribute.atttypid = 1700 and pgAttribute.atttypmod > 0
        then (pgAttribute.atttypmod - 4) & 65535
    end as numeric_scale
from pg_catalog.pg_class pgClass
inner join pg_catalog.pg_namespace pgNamespace on pgNamespace.oid = pgClass.relnamespace
inner join pg_catalog.pg_attribute pgAttribute on pgAttribute.attrelid = pgClass.oid
where pgClass.relkind = 'm'
    and pgAttribute.attnum > 0
    and not pgAttribute.attisdropped
    and ('matviews:' || pgNamespace.nspname || '.' || pgClass.relname) =OBJECT_ID_CONDITION
order by pgNamespace.nspname, pgClass.relname, pgAttribute.attnum
"""

# Every overload row of a routine carries the same hash, covering all overloads.
ROUTINE_HASH_SQL = """(
        select md5(string_agg(
            coalesce(overloads.routine_definition, '') || '~' || coalesce(overloads.data_type, '') || '~' ||
            coalesce(overloads.external_language, ''),
            '|' order by overloads.specific_name
        ))
        from information_schema.routines overloads
        where overloads.routine_schema = routines.routine_schema
            and overloads.routine_name = routines.routine_name
            and overloads.routine_type = routines.routine_type
    )"""

ROUTINES_SQL = f"""
select
    routines.routine_name as pure_name,
    routines.routine_schema as schema_name,
    routines.specific_name,
    routines.routine_definition as definition,
    #ROUTINEHASH# as hash_code,
    routines.routine_type as object_type,
    routines.data_type,
    routines.external_language as language
from information_schema.routines routines
where {_user_schema("routines.routine_schema")}
    and routines.routine_type in ('PROCEDURE', 'FUNCTION')
    and (
        ('procedures:' || routines.routine_schema || '.' || routines.routine_name) =OBJECT_ID_CONDITION
        or ('functions:' || routines.routine_schema || '.' || routines.routine_name) =OBJECT_ID_CONDITION
    )
order by routines.routine_schema, routines.routine_name, routines.specific_name
"""

ROUTINE_MODIFICATIONS_SQL = f"""
select
    routines.routine_name as pure_name,
    routines.routine_schema as schema_name,
    routines.specific_name,
    {ROUTINE_HASH_SQL} as hash_code,
    routines.routine_type as object_type
from information_schema.routines routines
where {_user_schema("routines.routine_schema")}
    and routines.routine_type in ('PROCEDURE', 'FUNCTION')
    and (
        ('procedures:' || routines.routine_schema || '.' || routines.routine_name) =OBJECT_ID_CONDITION
        or ('functions:' || routines.routine_schema || '.' || routines.routine_name) =OBJECT_ID_CONDITION
    )
order by routines.routine_schema, routines.routine_name, routines.specific_name
"""

INDEXES_SQL = f"""
select
    pgTable.relname as table_name,
    pgIndexClass.relname as index_name,
    pgIndex.indisunique as is_unique,
    pgIndex.indexrelid as oid,
    pgIndex.indkey::text as indkey,
    pgNamespace.nspname as schema_name
from pg_catalog.pg_class pgTable
inner join pg_catalog.pg_index pgIndex on pgTable.oid = pgIndex.indrelid
inner join pg_catalog.pg_class pgIndexClass on pgIndexClass.oid = pgIndex.indexrelid
inner join pg_catalog.pg_namespace pgNamespace on pgNamespace.oid = pgTable.relnamespace
where pgTable.relkind in ('r', 'p')
    and not pgIndex.indisprimary
    and {_user_schema("pgNamespace.nspname")}
    and ('tables:' || pgNamespace.nspname || '.' || pgTable.relname) =OBJECT_ID_CONDITION
order by pgNamespace.nspname, pgTable.relname, pgIndexClass.relname
"""

INDEX_COLUMNS_SQL = f"""
select
    pgIndex.indexrelid as oid,
    pgAttribute.attnum,
    pgAttribute.attname as column_name
from pg_catalog.pg_class pgTable
inner join pg_catalog.pg_index pgIndex on pgTable.oid = pgIndex.indrelid
inner join pg_catalog.pg_namespace pgNamespace on pgNamespace.oid = pgTable.relnamespace
inner join pg_catalog.pg_attribute pgAttribute
    on pgAttribute.attrelid = pgTable.oid and pgAttribute.attnum = any(pgIndex.indkey)
where pgTable.relkind in ('r', 'p')
    and not pgIndex.indisprimary
    and {_user_schema("pgNamespace.nspname")}
    and ('tables:' || pgNamespace.nspname || '.' || pgTable.relname) =OBJECT_ID_CONDITION
"""

UNIQUE_NAMES_SQL = """
select constraint_name
from information_schema.table_constraints
where constraint_type = 'UNIQUE'
    and ('tables:' || table_schema || '.' || table_name) =OBJECT_ID_CONDITION
"""

POSTGRES_QUERIES = {
    "tables": QueryTemplate(TABLE_LIST_SQL, (TABLES,)),
    "tableModifications": QueryTemplate(TABLE_MODIFICATIONS_SQL, (TABLES,)),
    "columns": QueryTemplate(COLUMNS_SQL, (TABLES, VIEWS)),
    "primaryKeys": QueryTemplate(PRIMARY_KEYS_SQL, (TABLES,)),
    "foreignKeys": QueryTemplate(FOREIGN_KEYS_SQL, (TABLES,)),
    "views": QueryTemplate(VIEWS_SQL, (VIEWS,)),
    "viewModifications": QueryTemplate(VIEW_MODIFICATIONS_SQL, (VIEWS,)),
    "matviews": QueryTemplate(MATVIEWS_SQL, (MATVIEWS,)),
    "matviewColumns": QueryTemplate(MATVIEW_COLUMNS_SQL, (MATVIEWS,)),
    "matviewModifications": QueryTemplate(MATVIEW_MODIFICATIONS_SQL, (MATVIEWS,)),
    "routines": QueryTemplate(ROUTINES_SQL, (PROCEDURES, FUNCTIONS)),
    "routineModifications": QueryTemplate(ROUTINE_MODIFICATIONS_SQL, (PROCEDURES, FUNCTIONS)),
    "indexes": QueryTemplate(INDEXES_SQL, (TABLES,)),
    "indexcols": QueryTemplate(INDEX_COLUMNS_SQL, (TABLES,)),
    "uniqueNames": QueryTemplate(UNIQUE_NAMES_SQL, (TABLES,)),
}

POSTGRES = DialectDescriptor(
    name="postgres",
    queries=POSTGRES_QUERIES,
    supports_aggregate_hash=True,
    supports_materialized_views=True,
    supports_index_enumeration=True,
    substitutions={
        "#REFTABLECOND#": "and ref.constraint_catalog = fk.unique_constraint_catalog",
        "#ROUTINEHASH#": ROUTINE_HASH_SQL,
    },
)
