"""
Success envelope helpers shared by the API views.
"""

from rest_framework import status
from rest_framework.response import Response


def success_response(data=None, message=None, status_code=status.HTTP_200_OK, **extra):
    """
    Build ``{"success": true, "data": ..., "message": ...}``.

    Keys with a None value are omitted; extra keyword arguments are merged
    into the top level of the body.
    """
    body = {'success': True}
    if data is not None:
        body['data'] = data
    if message:
        body['message'] = message
    body.update(extra)
    return Response(body, status=status_code)

