from rest_framework.response import Response


class PaginationMixin:
    """Page a queryset when the view paginates, else return it whole."""

    def paginate_and_respond(self, queryset, serializer_cls=None):
        page = self.paginate_queryset(queryset)
        items = queryset if page is None else page
        if serializer_cls is None:
            serializer = self.get_serializer(items, many=True)
        else:
            serializer = serializer_cls(items, many=True)
        if page is None:
            return Response(serializer.data)
        return self.get_paginated_response(serializer.data)
