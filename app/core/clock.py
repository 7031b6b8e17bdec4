from datetime import datetime, timezone


def utcnow() -> datetime:
    """UTC naive: es lo que guardamos en las columnas DateTime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value):
    """
    Convierte un ISO-8601 del proveedor (o un datetime) a UTC naive.
    Devuelve None si no hay valor.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif not isinstance(value, datetime):
        raise ValueError(f"Fecha no reconocida: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
