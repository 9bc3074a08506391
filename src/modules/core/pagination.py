"""Pagination classes shared by the API modules."""

from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-number pagination with a client-tunable ``page_size``.

    The default comes from ``REST_FRAMEWORK["PAGE_SIZE"]``; the query
    parameter may lower or raise it up to ``max_page_size``.
    """

    page_size_query_param = "page_size"
    max_page_size = 100
