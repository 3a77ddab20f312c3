"""Helpers for reading whole result sets through Protean querysets.

A Protean queryset returns at most the aggregate's ``limit`` (100 by
default) records per ``all()``. Sweeps and listings that must see every
match page through with ``offset`` until ``has_next`` is false.
"""

DEFAULT_PAGE_SIZE = 100


def fetch_all(queryset, page_size: int = DEFAULT_PAGE_SIZE) -> list:
    """Every record matching ``queryset``, read ``page_size`` at a time."""
    queryset = queryset.order_by("id").limit(page_size)
    records = []
    offset = 0
    while True:
        page = queryset.offset(offset).all()
        records.extend(page.items)
        if not page.has_next or not page.items:
            return records
        offset += page_size
