import uuid

from fastapi import HTTPException

ORDER_DIRECTIONS = ("asc", "desc")


def coerce_uuid(value, label: str = "identifier"):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label}: {value}")


def apply_ordering(query, order_by, order_dir, allowed_columns):
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    if order_dir not in ORDER_DIRECTIONS:
        raise HTTPException(status_code=400, detail="order_dir must be asc or desc")
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc(), *_tiebreak(query))
    return query.order_by(column.asc(), *_tiebreak(query))


def _tiebreak(query):
    # Stable paging when the sort column has duplicates
    entity = query.column_descriptions[0].get("entity")
    primary_key = getattr(entity, "id", None) if entity is not None else None
    return (primary_key,) if primary_key is not None else ()


def apply_pagination(query, limit, offset):
    return query.limit(limit).offset(offset)
