"""Declarative base and portable column types"""

from sqlalchemy import JSON, MetaData, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# Matches the names used by the Alembic migrations
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class PortableJSONB(TypeDecorator):
    """JSONB on PostgreSQL, plain JSON elsewhere (the SQLite test database).

    Attachment slots use this type; legacy slot values (bare strings) round
    trip unchanged so the migration can read them.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())
