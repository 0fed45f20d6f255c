from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Pagination for product, invoice, payment and return lists.

    ``?page_size=`` is honoured up to ``max_page_size`` so stock sheets can be
    pulled in one request without unbounded payloads.
    """

    page_size_query_param = "page_size"
    max_page_size = 500
