# File: data_sources/rdbms.py

"""
Engine factory for the insurance warehouse.

Tables are declared under two logical schemas, "stage" and "star_schema".
The engine maps them onto the configured physical schemas through
schema_translate_map, so the same Table objects work on Postgres (real schemas)
and on SQLite (no schema at all).
"""

from sqlalchemy import create_engine, text

from warehouse import config

STAGE = "stage"
STAR = "star_schema"


def get_engine(url: str = None, stage_schema=config.STAGE_SCHEMA,
               star_schema=config.STAR_SCHEMA, echo: bool = False):
    engine = create_engine(url or config.DATABASE_URL, echo=echo)
    return engine.execution_options(
        schema_translate_map={STAGE: stage_schema, STAR: star_schema}
    )


def physical_schema(engine, logical: str):
    translate = engine.get_execution_options().get("schema_translate_map") or {}
    return translate.get(logical, logical)


def ensure_schema(engine, logical: str) -> None:
    """CREATE SCHEMA IF NOT EXISTS for backends that have schemas."""
    schema = physical_schema(engine, logical)
    if schema is None or engine.dialect.name == "sqlite":
        return
    with engine.begin() as conn:
        conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
