# vattenmiljo_crm/pagination.py
from rest_framework.pagination import PageNumberPagination


class DefaultPagination(PageNumberPagination):
    """
    Page-number pagination matching the board client's defaults
    (?page=<n>&limit=<size>, 25 per page, capped at 200).
    """

    page_size = 25
    page_size_query_param = "limit"
    max_page_size = 200
