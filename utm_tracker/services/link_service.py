"""Link management: create, list, get, update and delete UTM links."""

from __future__ import annotations

import logging
from typing import Optional

from ..async_db import run_sync
from ..datastore import LinkDatastore
from ..dto import Link
from ..errors import CodeGenerationError, InvalidRequestError, LinkNotFoundError
from ..schemas import (
    INVALID_URL_MESSAGE,
    MISSING_FIELDS_MESSAGE,
    CreateLinkRequest,
    UpdateLinkRequest,
)
from ..utils.code_generator import (
    DEFAULT_CODE_LENGTH,
    DEFAULT_MAX_RETRIES,
    generate_unique_code,
)

logger = logging.getLogger(__name__)

# Insert attempts when the unique constraint rejects a generated code
MAX_INSERT_ATTEMPTS = 3


def _check_fields(payload: CreateLinkRequest | UpdateLinkRequest) -> None:
    if payload.missing_required():
        raise InvalidRequestError(MISSING_FIELDS_MESSAGE)
    if not payload.has_valid_destination():
        raise InvalidRequestError(INVALID_URL_MESSAGE)


class LinkService:
    """CRUD operations over UTM links."""

    __slots__ = ("_store", "_code_length", "_max_retries")

    def __init__(
        self,
        store: LinkDatastore,
        code_length: int = DEFAULT_CODE_LENGTH,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self._store = store
        self._code_length = code_length
        self._max_retries = max_retries

    def _insert_with_unique_code(self, fields: dict) -> Link:
        """Generate a code and insert, retrying on a lost uniqueness race.

        Runs in a worker thread.
        """
        store = self._store
        for attempt in range(1, MAX_INSERT_ATTEMPTS + 1):
            code = generate_unique_code(store.link_exists, self._code_length, self._max_retries)
            try:
                return store.create_link(code=code, **fields)
            except Exception:
                # Anything other than a code collision is a real failure
                if not store.link_exists(code):
                    raise
                logger.warning(f"Code {code} taken at insert (attempt {attempt}), regenerating")

        raise CodeGenerationError("Could not generate unique code")

    async def create(self, payload: CreateLinkRequest, created_by: Optional[str] = None) -> Link:
        """Create a link with a server-generated code.

        Raises:
            InvalidRequestError: Missing required fields or invalid URL.
            CodeGenerationError: Every insert attempt collided.
        """
        _check_fields(payload)

        fields = payload.to_db_fields()
        fields["is_active"] = True
        fields["created_by"] = created_by

        link = await run_sync(self._insert_with_unique_code, fields)
        logger.info(f"Created UTM link {link.code} -> {link.destination_url}")
        return link

    async def list_page(self, offset: int, limit: int) -> tuple[list[Link], int]:
        """Links newest first with the total count."""
        return await run_sync(self._store.list_links, offset, limit)

    async def get(self, link_id: int) -> Link:
        link = await run_sync(self._store.get_link, link_id)
        if link is None:
            raise LinkNotFoundError("UTM link not found")
        return link

    async def update(self, link_id: int, payload: UpdateLinkRequest) -> Link:
        """Overwrite a link's destination and UTM fields.

        Raises:
            LinkNotFoundError: No link with this id.
            InvalidRequestError: Missing required fields or invalid URL.
        """
        await self.get(link_id)
        _check_fields(payload)

        link = await run_sync(self._store.update_link, link_id, **payload.to_db_fields())
        logger.info(f"Updated UTM link {link_id}")
        return link

    async def delete(self, link_id: int) -> None:
        """Delete a link and its tracking events."""
        if not await run_sync(self._store.delete_link, link_id):
            raise LinkNotFoundError("UTM link not found")
        logger.info(f"Deleted UTM link {link_id}")
