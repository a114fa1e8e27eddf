"""
Page-number pagination that renders the success envelope.

Query parameters: ``page`` (>= 1) and ``limit`` (>= 1, capped per endpoint).
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from .exceptions import ValidationFailed


class EnvelopePagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'limit'
    max_page_size = 100

    def get_page_number(self, request, paginator):
        page_number = super().get_page_number(request, paginator)
        if page_number in self.last_page_strings:
            return page_number
        try:
            page_number = int(page_number)
        except (TypeError, ValueError):
            page_number = 0
        if page_number < 1:
            raise ValidationFailed('Invalid page', errors={'page': ['Must be a positive integer.']})
        return page_number

    def get_paginated_response(self, data, extra=None):
        body = {
            'success': True,
            'data': data,
            'pagination': {
                'page': self.page.number,
                'limit': self.get_page_size(self.request),
                'total': self.page.paginator.count,
                'pages': self.page.paginator.num_pages,
            },
        }
        if extra:
            body.update(extra)
        return Response(body)


class ResourcePagination(EnvelopePagination):
    max_page_size = 50


class NotificationPagination(EnvelopePagination):
    page_size = 50
    max_page_size = 100


class ReviewPagination(EnvelopePagination):
    page_size = 10
    max_page_size = 50
