"""
CRUD operations for cached resource tables
Generic over the resource policy: table and column identifiers come from the
registry, every value is bound as a query parameter.
"""
from typing import Any, Dict, List, Mapping, Union

from sqlalchemy import Table, delete, insert, select
from sqlalchemy.orm import Session

from city_explorer.cache.core import CachedRow, KeyKind, ResourcePolicy
from city_explorer.models import Base

KeyValue = Union[str, int]


def table_for(policy: ResourcePolicy) -> Table:
    """
    Resolve the declared table for a policy.
    Raises KeyError if the registry names a table that is not declared.
    """
    return Base.metadata.tables[policy.table]


def to_cached_row(policy: ResourcePolicy, mapping: Mapping[str, Any]) -> CachedRow:
    """Convert a result row mapping to a CachedRow"""
    return CachedRow(
        id=mapping["id"],
        location_key=mapping["location_id"],
        search_key=mapping["search_query"],
        fields={name: mapping[name] for name in policy.fields},
        created_at=mapping["created_at"],
    )


# ===== READ =====

def find_rows(db: Session, policy: ResourcePolicy, key: KeyValue) -> List[CachedRow]:
    """
    Get all rows stored under a key, oldest first
    """
    table = table_for(policy)
    stmt = (
        select(table)
        .where(table.c[policy.key_column] == key)
        .order_by(table.c.id)
    )
    return [to_cached_row(policy, row) for row in db.execute(stmt).mappings()]


# ===== WRITE =====

def insert_row(
    db: Session,
    policy: ResourcePolicy,
    fields: Mapping[str, Any],
    key: KeyValue,
    created_at: int,
) -> CachedRow:
    """
    Insert one normalized record under a key
    Unknown field names raise ValueError; missing ones are stored as NULL
    """
    unknown = set(fields) - set(policy.fields)
    if unknown:
        raise ValueError(
            f"Fields not registered for {policy.resource_type}: {sorted(unknown)}"
        )

    table = table_for(policy)
    values: Dict[str, Any] = {name: fields.get(name) for name in policy.fields}
    values["search_query"] = key if policy.key_kind is KeyKind.SEARCH_QUERY else None
    values["location_id"] = key if policy.key_kind is KeyKind.LOCATION_ID else None
    values["created_at"] = created_at

    result = db.execute(insert(table).values(**values))
    db.commit()

    row_id = result.inserted_primary_key[0]
    return CachedRow(
        id=row_id,
        location_key=values["location_id"],
        search_key=values["search_query"],
        fields={name: values[name] for name in policy.fields},
        created_at=created_at,
    )


def delete_rows(db: Session, policy: ResourcePolicy, key: KeyValue) -> int:
    """
    Delete all rows stored under a key
    Returns the number of rows removed (0 if the key was absent)
    """
    table = table_for(policy)
    result = db.execute(delete(table).where(table.c[policy.key_column] == key))
    db.commit()
    return result.rowcount
