"""
Storage relay API endpoints.

Exposed endpoints:
- GET /api/v{version}/storage/file/{new_file_name} - Copy an internal blob and return a read-only SAS URI
- DELETE /api/v{version}/storage/container - Delete a per-request external container
"""

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from loguru import logger

from storage.exceptions import InvalidRequestError, StorageRelayError
from sharing.fetcher import Fetcher
from sharing.issuer import CapabilityIssuer
from sharing.observability import redact_uri

router = APIRouter(prefix="/api/v{version}/storage", tags=["storage"])

SUPPORTED_VERSIONS = {"1", "1.0"}

# 3-63 chars, lowercase letters, digits and single hyphens, alphanumeric at both ends
CONTAINER_NAME_PATTERN = re.compile(r"^(?!.*--)[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")
MAX_BLOB_NAME_LENGTH = 1024


def validate_version(version: str) -> str:
    if version not in SUPPORTED_VERSIONS:
        raise InvalidRequestError(f"Unsupported API version: {version}", {"version": version})
    return version


def validate_container_name(name: Optional[str], field: str) -> str:
    if not name:
        raise InvalidRequestError(f"{field} is required", {"field": field})
    if not CONTAINER_NAME_PATTERN.match(name):
        raise InvalidRequestError(f"{field} is not a valid container name: {name}", {"field": field})
    return name


def validate_blob_name(name: Optional[str], field: str) -> str:
    if not name or not name.strip():
        raise InvalidRequestError(f"{field} is required", {"field": field})
    if len(name) > MAX_BLOB_NAME_LENGTH:
        raise InvalidRequestError(f"{field} exceeds {MAX_BLOB_NAME_LENGTH} characters", {"field": field})
    if name.endswith((".", "/")):
        raise InvalidRequestError(f"{field} must not end with '.' or '/'", {"field": field})
    return name


def get_fetcher(request: Request) -> Fetcher:
    return request.app.state.fetcher


def get_issuer(request: Request) -> CapabilityIssuer:
    return request.app.state.issuer


def to_http_exception(error: StorageRelayError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.get("/file/{new_file_name}", response_model=str)
async def get_file_uri(
    version: str,
    new_file_name: str,
    response: Response,
    internal_container_name: Optional[str] = Query(None, alias="internalContainerName"),
    internal_file_name: Optional[str] = Query(None, alias="internalFileName"),
    fetcher: Fetcher = Depends(get_fetcher),
    issuer: CapabilityIssuer = Depends(get_issuer),
):
    """
    Copy an internal blob into a fresh external container.

    Returns:
        Read-only SAS URI for the copy, as a JSON string
    """
    try:
        validate_version(version)
        validate_blob_name(new_file_name, "newFileName")
        validate_container_name(internal_container_name, "internalContainerName")
        validate_blob_name(internal_file_name, "internalFileName")

        content = await fetcher.fetch(internal_container_name, internal_file_name)
        read_only_uri = await issuer.issue(new_file_name, content)

        logger.info(f"Successful GET File call: {new_file_name}, Uri: {redact_uri(read_only_uri)}")
        response.headers["Cache-Control"] = "no-store"
        return read_only_uri

    except StorageRelayError as e:
        logger.warning(f"GET File call failed for {new_file_name}: {e.message} {e.details}")
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("GET File call error: {}", e)
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/container")
async def delete_container(
    version: str,
    container_name: Optional[str] = Query(None, alias="containerName"),
    issuer: CapabilityIssuer = Depends(get_issuer),
):
    """Delete an external container created by an earlier GET File call."""
    try:
        validate_version(version)
        validate_container_name(container_name, "containerName")

        await issuer.delete_container(container_name)
        return Response(status_code=200)

    except StorageRelayError as e:
        logger.warning(f"Delete container {container_name} failed: {e.message}")
        raise to_http_exception(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Delete container error: {}", e)
        raise HTTPException(status_code=500, detail=str(e))
