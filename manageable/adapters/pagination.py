"""Offset pagination: page number and size become LIMIT / OFFSET."""

from __future__ import annotations

from sqlalchemy import Select

from manageable.registry import get_configuration


class OffsetPagination:
    """Pages are 1-based.  A missing size uses the configured default page size."""

    def paginate(self, scope: Select, page_number: int | None, page_size: int | None) -> Select:
        number = max(int(page_number or 1), 1)
        size = int(page_size or get_configuration().default_page_size)
        return scope.limit(size).offset((number - 1) * size)
