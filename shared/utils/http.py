"""
shared/utils/http.py
Translation of persistence failures into HTTP errors.
Reads surface as 502 (the store is upstream of us), writes as 500.
"""

from fastapi import HTTPException, status

from shared.backend.protocol import BackendError


def read_failed(exc: BackendError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Unable to load data ({exc.operation})",
    )


def write_failed(exc: BackendError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Update failed ({exc.operation})",
    )


def not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")
