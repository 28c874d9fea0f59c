import functools

from googleapiclient.errors import HttpError

from day_planner.errors import ExternalStoreError


def store_call(what: str):
    """Re-raise Google API errors as ``ExternalStoreError`` naming the failed operation."""

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except HttpError as e:
                raise ExternalStoreError(f"{what} failed: {e}") from e

        return wrapper

    return decorator
