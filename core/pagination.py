"""
Core — Pagination

Page-number paginator. Clients size pages with ``per_page`` (capped at
MAX_PAGE_SIZE) and receive ``meta = {current_page, last_page, per_page,
total}`` alongside the results.

@file core/pagination.py
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


class StandardPagination(PageNumberPagination):
    page_size = DEFAULT_PAGE_SIZE
    page_size_query_param = 'per_page'
    max_page_size = MAX_PAGE_SIZE

    def get_paginated_response(self, data):
        return Response({
            'results': data,
            'meta': {
                'current_page': self.page.number,
                'last_page': self.page.paginator.num_pages,
                'per_page': self.page.paginator.per_page,
                'total': self.page.paginator.count,
            },
        })

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'results': schema,
                'meta': {
                    'type': 'object',
                    'properties': {
                        'current_page': {'type': 'integer'},
                        'last_page': {'type': 'integer'},
                        'per_page': {'type': 'integer'},
                        'total': {'type': 'integer'},
                    },
                },
            },
        }
