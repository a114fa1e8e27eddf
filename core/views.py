"""
API views for BorrowBase.

Views validate the request shape with a serializer, call the service layer
and wrap the result in the success envelope. Service errors propagate to
core.exceptions.api_exception_handler, which renders the error envelope.
"""

import logging

from django.apps import apps
from django.contrib.auth import get_user_model
from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer as RotatingRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken

from .exceptions import Unauthorized, ValidationFailed
from .models import Resource
from .pagination import EnvelopePagination, NotificationPagination, ResourcePagination, ReviewPagination
from .permissions import IsStaffUser, ReadOnlyOrAuthenticated
from .responses import success_response
from .serializers import (
    AnnouncementSerializer,
    BorrowRequestCancelSerializer,
    BorrowRequestCreateSerializer,
    BorrowRequestSerializer,
    BorrowRequestStatusSerializer,
    BorrowRequestUpdateSerializer,
    ChangePasswordSerializer,
    ChatCreateSerializer,
    ChatSerializer,
    LocationUpdateSerializer,
    LoginSerializer,
    LogoutSerializer,
    MarkAllReadSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    NotificationBulkCreateSerializer,
    NotificationCreateSerializer,
    NotificationIdsSerializer,
    NotificationSerializer,
    PendingReviewSerializer,
    PhotoReorderSerializer,
    PickupSerializer,
    PublicUserSerializer,
    ResourceAvailabilitySerializer,
    ResourceListQuerySerializer,
    ResourcePhotoSerializer,
    ResourceSerializer,
    ResourceWriteSerializer,
    ReturnSerializer,
    ReviewCreateSerializer,
    ReviewFlagSerializer,
    ReviewModerateSerializer,
    ReviewResponseSerializer,
    ReviewSerializer,
    ReviewUpdateSerializer,
    ReviewVoteSerializer,
    TokenRefreshSerializer,
    TypingSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)

TRUE_VALUES = ('true', '1', 'yes')
FALSE_VALUES = ('false', '0', 'no')


def bool_param(request, name):
    """Parse an optional boolean query parameter."""
    value = request.query_params.get(name)
    if value is None or value == '':
        return None
    if value.lower() in TRUE_VALUES:
        return True
    if value.lower() in FALSE_VALUES:
        return False
    raise ValidationFailed(f'{name} must be true or false')


def int_param(request, name, default):
    value = request.query_params.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationFailed(f'{name} must be an integer')


class BaseAPIView(APIView):
    """
    Shared helpers: the service container, client IP lookup and paginated
    envelope responses.
    """

    @property
    def services(self):
        return apps.get_app_config('core').services

    def get_client_ip(self, request):
        """
        Get client IP address from request.
        Handles proxy headers for accurate IP detection.
        """
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR')

    def paginated(self, request, items, serializer_class, pagination_class=EnvelopePagination,
                  extra=None, **context):
        paginator = pagination_class()
        page = paginator.paginate_queryset(items, request, view=self)
        serializer = serializer_class(page, many=True, context={'request': request, **context})
        return paginator.get_paginated_response(serializer.data, extra=extra)

    def validated(self, serializer_class, data, **kwargs):
        serializer = serializer_class(data=data, **kwargs)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


# Health

class HealthView(BaseAPIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return success_response({'status': 'ok'})


# Authentication

class UserRegistrationView(BaseAPIView):
    """
    POST /api/auth/register/

    Creates the account and returns its profile with a token pair.
    Concurrent registrations with the same email are caught by the
    database uniqueness constraint.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'register'

    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user = serializer.save()
        except IntegrityError:
            raise ValidationFailed(
                'Validation failed',
                errors={'email': ['A user with that email already exists.']},
            )

        refresh = RefreshToken.for_user(user)
        logger.info(f"User registered. User ID: {user.id}, IP: {self.get_client_ip(request)}")
        return success_response(
            {
                'user': UserProfileSerializer(user, context={'request': request}).data,
                'access': str(refresh.access_token),
                'refresh': str(refresh),
            },
            message='Registration successful',
            status_code=status.HTTP_201_CREATED,
        )


class LoginView(BaseAPIView):
    """
    POST /api/auth/login/

    Every failure (unknown email, wrong password, closed or inactive
    account) returns the same 401 so accounts cannot be enumerated.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request):
        data = self.validated(LoginSerializer, request.data)
        email = data['email'].lower().strip()
        client_ip = self.get_client_ip(request)

        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            logger.warning(f"Failed login attempt for non-existent user. Email: {email}, IP: {client_ip}")
            raise AuthenticationFailed('Invalid credentials')

        if not user.check_password(data['password']):
            logger.warning(f"Failed login attempt with incorrect password. Email: {email}, IP: {client_ip}")
            raise AuthenticationFailed('Invalid credentials')

        if not user.is_active or user.is_closed:
            logger.warning(f"Failed login attempt for inactive account. Email: {email}, IP: {client_ip}")
            raise AuthenticationFailed('Invalid credentials')

        refresh = RefreshToken.for_user(user)
        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")
        return success_response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': UserProfileSerializer(user, context={'request': request}).data,
        }, message='Login successful')


class CustomTokenRefreshView(BaseAPIView):
    """
    POST /api/auth/refresh/

    Returns a new access token and, with rotation enabled, a new refresh
    token; the old refresh token is blacklisted.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'

    def post(self, request):
        self.validated(TokenRefreshSerializer, request.data)
        client_ip = self.get_client_ip(request)

        serializer = RotatingRefreshSerializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            logger.warning(f"Failed token refresh attempt. Error: {e}, IP: {client_ip}")
            raise InvalidToken(e.args[0])

        logger.info(f"Successful token refresh. IP: {client_ip}")
        return success_response(serializer.validated_data)


class LogoutView(BaseAPIView):
    """POST /api/auth/logout/ blacklists the caller's refresh token."""

    def post(self, request):
        data = self.validated(LogoutSerializer, request.data)
        try:
            token = RefreshToken(data['refresh'])
        except TokenError:
            raise ValidationFailed('Invalid or expired refresh token')

        if str(token.get('user_id')) != str(request.user.id):
            logger.warning(f"User {request.user.id} attempted to revoke another user's token. IP: {self.get_client_ip(request)}")
            raise Unauthorized('You can only log out your own session')

        token.blacklist()
        logger.info(f"User {request.user.id} logged out")
        return success_response(message='Logged out successfully')


class UserProfileView(BaseAPIView):
    """
    GET    /api/auth/profile/  own profile
    PATCH  /api/auth/profile/  update profile fields (multipart for images)
    DELETE /api/auth/profile/  close the account
    """

    def get(self, request):
        return success_response(UserProfileSerializer(request.user, context={'request': request}).data)

    def patch(self, request):
        serializer = UserProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info(f"Profile updated. User ID: {user.id}")
        return success_response(
            UserProfileSerializer(user, context={'request': request}).data,
            message='Profile updated successfully',
        )

    put = patch

    def delete(self, request):
        self.services.users.close_account(request.user.id)
        logger.info(f"Account closed. User ID: {request.user.id}, IP: {self.get_client_ip(request)}")
        return success_response(message='Account closed successfully')


class CompleteProfileView(BaseAPIView):
    """GET /api/auth/profile/complete/"""

    def get(self, request):
        profile = self.services.users.complete_profile(request.user.id)
        context = {'request': request}
        return success_response({
            'user': UserProfileSerializer(profile['user'], context=context).data,
            'statistics': profile['statistics'],
            'resources': ResourceSerializer(profile['resources'], many=True, context=context).data,
            'borrowHistory': BorrowRequestSerializer(profile['borrow_history'], many=True, context=context).data,
            'lendHistory': BorrowRequestSerializer(profile['lend_history'], many=True, context=context).data,
            'reviewsReceived': ReviewSerializer(profile['reviews_received'], many=True, context=context).data,
            'reviewsGiven': ReviewSerializer(profile['reviews_given'], many=True, context=context).data,
        })


class UpdateLocationView(BaseAPIView):
    """PUT /api/auth/update-location/"""

    def put(self, request):
        data = self.validated(LocationUpdateSerializer, request.data)
        user = self.services.users.update_location(request.user.id, **data)
        return success_response(
            UserProfileSerializer(user, context={'request': request}).data,
            message='Location updated successfully',
        )


class ChangePasswordView(BaseAPIView):
    """POST /api/auth/change-password/"""

    def post(self, request):
        data = self.validated(ChangePasswordSerializer, request.data)
        self.services.users.change_password(request.user.id, data['current_password'], data['new_password'])
        return success_response(message='Password changed successfully')


class PublicUserView(BaseAPIView):
    """GET /api/users/<id>/"""

    def get(self, request, pk):
        user = self.services.users.get_user(pk)
        return success_response(PublicUserSerializer(user, context={'request': request}).data)


# Resources

class ResourceListCreateView(BaseAPIView):
    """
    GET  /api/resources/  public listings (filters, sort, optional radius)
    POST /api/resources/  create a listing
    """
    permission_classes = [ReadOnlyOrAuthenticated]

    def get(self, request):
        filters = self.validated(ResourceListQuerySerializer, request.query_params.dict())
        if request.user.is_authenticated and bool_param(request, 'exclude_mine'):
            filters['exclude_owner_id'] = request.user.id
        resources = self.services.resources.list_resources(filters)
        return self.paginated(request, resources, ResourceSerializer, ResourcePagination)

    def post(self, request):
        data = self.validated(ResourceWriteSerializer, request.data)
        resource = self.services.resources.create_resource(request.user.id, data)
        return success_response(
            ResourceSerializer(resource, context={'request': request}).data,
            message='Resource created successfully',
            status_code=status.HTTP_201_CREATED,
        )


class ResourceSearchView(BaseAPIView):
    """GET /api/resources/search/?q=..."""
    permission_classes = [AllowAny]

    def get(self, request):
        filters = self.validated(ResourceListQuerySerializer, request.query_params.dict())
        query = request.query_params.get('q') or request.query_params.get('query')
        resources = self.services.resources.search_resources(query, filters)
        return self.paginated(request, resources, ResourceSerializer, ResourcePagination)


class NearbyResourcesView(BaseAPIView):
    """GET /api/resources/nearby/?latitude=..&longitude=..&radius=.."""
    permission_classes = [AllowAny]

    def get(self, request):
        filters = self.validated(ResourceListQuerySerializer, request.query_params.dict())
        latitude = filters.pop('latitude', None)
        longitude = filters.pop('longitude', None)
        radius = filters.pop('radius', None)
        resources = self.services.resources.nearby_resources(latitude, longitude, radius, filters)
        return self.paginated(request, resources, ResourceSerializer, ResourcePagination)


class ResourceCategoriesView(BaseAPIView):
    """GET /api/resources/categories/"""
    permission_classes = [AllowAny]

    def get(self, request):
        return success_response({
            'categories': self.services.resources.categories(),
            'allCategories': [value for value, _ in Resource.CATEGORY_CHOICES],
        })


class MyResourcesView(BaseAPIView):
    """GET /api/resources/mine/"""

    def get(self, request):
        resources = self.services.resources.my_resources(request.user.id, request.query_params.get('status'))
        return self.paginated(request, resources, ResourceSerializer, ResourcePagination)


class UserResourcesView(BaseAPIView):
    """GET /api/users/<id>/resources/"""
    permission_classes = [AllowAny]

    def get(self, request, pk):
        resources = self.services.resources.user_resources(pk)
        return self.paginated(request, resources, ResourceSerializer, ResourcePagination)


class ResourceDetailView(BaseAPIView):
    """
    GET    /api/resources/<id>/  detail (counts a view for non-owners)
    PUT    /api/resources/<id>/  owner update
    PATCH  /api/resources/<id>/  owner partial update
    DELETE /api/resources/<id>/  owner soft delete
    """
    permission_classes = [ReadOnlyOrAuthenticated]

    def get(self, request, pk):
        viewer_id = request.user.id if request.user.is_authenticated else None
        resource = self.services.resources.get_resource(pk, viewer_id=viewer_id)
        return success_response(ResourceSerializer(resource, context={'request': request}).data)

    def patch(self, request, pk):
        data = self.validated(ResourceWriteSerializer, request.data, partial=True)
        resource = self.services.resources.update_resource(pk, request.user.id, data)
        return success_response(
            ResourceSerializer(resource, context={'request': request}).data,
            message='Resource updated successfully',
        )

    put = patch

    def delete(self, request, pk):
        self.services.resources.delete_resource(pk, request.user.id)
        return success_response(message='Resource deleted successfully')


class ResourceViewCountView(BaseAPIView):
    """POST /api/resources/<id>/view/"""
    permission_classes = [AllowAny]

    def post(self, request, pk):
        self.services.resources.record_view(pk)
        return success_response(message='View recorded')


class ResourceAvailabilityView(BaseAPIView):
    """PATCH /api/resources/<id>/availability/"""

    def patch(self, request, pk):
        data = self.validated(ResourceAvailabilitySerializer, request.data)
        resource = self.services.resources.set_availability(pk, request.user.id, data['is_available'])
        return success_response(
            ResourceSerializer(resource, context={'request': request}).data,
            message='Availability updated successfully',
        )

    put = patch


class ResourcePhotosView(BaseAPIView):
    """
    GET  /api/resources/<id>/photos/
    POST /api/resources/<id>/photos/  multipart ``photos`` files, optional ``alt_texts``
    """
    permission_classes = [ReadOnlyOrAuthenticated]

    def get(self, request, pk):
        photos = self.services.resources.list_photos(pk)
        return success_response(ResourcePhotoSerializer(photos, many=True, context={'request': request}).data)

    def post(self, request, pk):
        files = request.FILES.getlist('photos')
        alt_texts = request.data.getlist('alt_texts') if hasattr(request.data, 'getlist') else None
        photos = self.services.resources.upload_photos(pk, request.user.id, files, alt_texts)
        return success_response(
            ResourcePhotoSerializer(photos, many=True, context={'request': request}).data,
            message=f'{len(photos)} photo(s) uploaded successfully',
            status_code=status.HTTP_201_CREATED,
        )


class ResourcePhotoReorderView(BaseAPIView):
    """PUT /api/resources/<id>/photos/reorder/"""

    def put(self, request, pk):
        data = self.validated(PhotoReorderSerializer, request.data)
        photos = self.services.resources.reorder_photos(pk, request.user.id, data['photo_order'])
        return success_response(ResourcePhotoSerializer(photos, many=True, context={'request': request}).data)


class ResourcePhotoDetailView(BaseAPIView):
    """DELETE /api/resources/photos/<photo_id>/"""

    def delete(self, request, photo_id):
        self.services.resources.delete_photo(photo_id, request.user.id)
        return success_response(message='Photo deleted successfully')


class ResourcePhotoPrimaryView(BaseAPIView):
    """PUT /api/resources/photos/<photo_id>/primary/"""

    def put(self, request, photo_id):
        photos = self.services.resources.set_primary_photo(photo_id, request.user.id)
        return success_response(ResourcePhotoSerializer(photos, many=True, context={'request': request}).data)


class ResourceBorrowRequestsView(BaseAPIView):
    """GET /api/resources/<id>/borrow-requests/ (owner only)"""

    def get(self, request, pk):
        requests = self.services.borrow_requests.resource_requests(
            pk, request.user.id, request.query_params.get('status')
        )
        return self.paginated(request, requests.order_by('-created_at'), BorrowRequestSerializer)


# Borrow requests

class BorrowRequestListCreateView(BaseAPIView):
    """
    GET  /api/borrow-requests/  requests made by the caller
    POST /api/borrow-requests/  request to borrow a resource
    """

    def get(self, request):
        requests = self.services.borrow_requests.my_requests(request.user.id, request.query_params.get('status'))
        return self.paginated(request, requests.order_by('-created_at'), BorrowRequestSerializer)

    def post(self, request):
        data = self.validated(BorrowRequestCreateSerializer, request.data)
        borrow_request = self.services.borrow_requests.create_request(
            request.user.id,
            data['resource_id'],
            data['start_date'],
            data['end_date'],
            message=data['message'],
            pickup_location=data['pickup_location'],
            emergency_contact=data['emergency_contact'],
        )
        return success_response(
            BorrowRequestSerializer(borrow_request, context={'request': request}).data,
            message='Borrow request created successfully',
            status_code=status.HTTP_201_CREATED,
        )


class IncomingBorrowRequestsView(BaseAPIView):
    """GET /api/borrow-requests/incoming/ requests for the caller's resources"""

    def get(self, request):
        requests = self.services.borrow_requests.incoming_requests(
            request.user.id, request.query_params.get('status')
        )
        return self.paginated(request, requests.order_by('-created_at'), BorrowRequestSerializer)


class BorrowRequestStatsView(BaseAPIView):
    """GET /api/borrow-requests/stats/"""

    def get(self, request):
        return success_response(self.services.borrow_requests.stats(request.user.id))


class OverdueBorrowRequestsView(BaseAPIView):
    """GET /api/borrow-requests/overdue/"""

    def get(self, request):
        requests = self.services.borrow_requests.overdue_for_user(request.user.id)
        return success_response(BorrowRequestSerializer(requests, many=True, context={'request': request}).data)


class BorrowRequestDetailView(BaseAPIView):
    """
    GET   /api/borrow-requests/<id>/  participants only
    PATCH /api/borrow-requests/<id>/  role-limited detail update
    """

    def get(self, request, pk):
        borrow_request = self.services.borrow_requests.get_request(pk, request.user.id)
        return success_response(BorrowRequestSerializer(borrow_request, context={'request': request}).data)

    def patch(self, request, pk):
        data = self.validated(BorrowRequestUpdateSerializer, request.data)
        borrow_request = self.services.borrow_requests.update_details(pk, request.user.id, data)
        return success_response(
            BorrowRequestSerializer(borrow_request, context={'request': request}).data,
            message='Borrow request updated successfully',
        )

    put = patch


class BorrowRequestTransitionView(BaseAPIView):
    """Base for the lifecycle endpoints; subclasses implement transition()."""

    success_message = ''

    def transition(self, request, pk):
        raise NotImplementedError

    def post(self, request, pk):
        borrow_request = self.transition(request, pk)
        return success_response(
            BorrowRequestSerializer(borrow_request, context={'request': request}).data,
            message=self.success_message,
        )

    put = post


class BorrowRequestStatusView(BorrowRequestTransitionView):
    """PUT /api/borrow-requests/<id>/status/ approve or reject"""

    success_message = 'Borrow request updated successfully'

    def transition(self, request, pk):
        data = self.validated(BorrowRequestStatusSerializer, request.data)
        logger.info(f"Owner {request.user.id} set borrow request {pk} to {data['status']}. IP: {self.get_client_ip(request)}")
        return self.services.borrow_requests.update_status(
            pk, request.user.id, data['status'], data['response_message']
        )


class BorrowRequestCancelView(BorrowRequestTransitionView):
    """POST /api/borrow-requests/<id>/cancel/"""

    success_message = 'Borrow request cancelled successfully'

    def transition(self, request, pk):
        data = self.validated(BorrowRequestCancelSerializer, request.data)
        return self.services.borrow_requests.cancel(pk, request.user.id, data['reason'])


class BorrowRequestPickupView(BorrowRequestTransitionView):
    """POST /api/borrow-requests/<id>/pickup/"""

    success_message = 'Pickup recorded successfully'

    def transition(self, request, pk):
        data = self.validated(PickupSerializer, request.data)
        return self.services.borrow_requests.pickup(pk, request.user.id, **data)


class BorrowRequestReturnView(BorrowRequestTransitionView):
    """POST /api/borrow-requests/<id>/return/"""

    success_message = 'Return recorded successfully'

    def transition(self, request, pk):
        data = self.validated(ReturnSerializer, request.data)
        return self.services.borrow_requests.return_item(pk, request.user.id, **data)


class BorrowRequestCompleteView(BorrowRequestTransitionView):
    """POST /api/borrow-requests/<id>/complete/"""

    success_message = 'Borrow request completed'

    def transition(self, request, pk):
        return self.services.borrow_requests.complete(pk, request.user.id)


# Chat

class ChatListCreateView(BaseAPIView):
    """
    GET  /api/chats/  the caller's chats (?include_archived=true)
    POST /api/chats/  open or fetch the chat with another user
    """

    def get(self, request):
        chats = self.services.chat.list_chats(request.user.id, bool_param(request, 'include_archived') or False)
        return self.paginated(request, chats, ChatSerializer, user=request.user)

    def post(self, request):
        data = self.validated(ChatCreateSerializer, request.data)
        chat, created = self.services.chat.create_or_get_chat(
            request.user.id, data['participant_id'], data['resource_id'], data['subject']
        )
        return success_response(
            ChatSerializer(chat, context={'request': request, 'user': request.user}).data,
            message='Chat created successfully' if created else None,
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class ChatUnreadCountView(BaseAPIView):
    """GET /api/chats/unread-count/"""

    def get(self, request):
        return success_response({'unreadCount': self.services.chat.unread_total(request.user.id)})


class ChatDetailView(BaseAPIView):
    """GET /api/chats/<id>/"""

    def get(self, request, pk):
        chat = self.services.chat.get_chat(pk, request.user.id)
        return success_response(ChatSerializer(chat, context={'request': request, 'user': request.user}).data)


class ChatMessagesView(BaseAPIView):
    """
    GET  /api/chats/<id>/messages/?page=&limit=  chronological page, marks read
    POST /api/chats/<id>/messages/               send a message
    """

    def get(self, request, pk):
        page = int_param(request, 'page', 1)
        limit = int_param(request, 'limit', 50)
        messages, total = self.services.chat.get_messages(pk, request.user.id, page, limit)
        limit = min(limit, 100)
        return success_response(
            MessageSerializer(messages, many=True, context={'request': request}).data,
            pagination={
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
        )

    def post(self, request, pk):
        data = self.validated(MessageCreateSerializer, request.data)
        message = self.services.chat.send_message(
            pk, request.user.id, data['content'], data['message_type'], data['reply_to_id']
        )
        return success_response(
            MessageSerializer(message, context={'request': request}).data,
            message='Message sent successfully',
            status_code=status.HTTP_201_CREATED,
        )


class ChatReadView(BaseAPIView):
    """PUT /api/chats/<id>/read/"""

    def put(self, request, pk):
        marked = self.services.chat.mark_chat_read(pk, request.user.id)
        return success_response({'markedCount': marked})


class ChatArchiveView(BaseAPIView):
    """PUT /api/chats/<id>/archive/ toggles the caller's archive flag"""

    def put(self, request, pk):
        chat = self.services.chat.toggle_archive(pk, request.user.id)
        return success_response(ChatSerializer(chat, context={'request': request, 'user': request.user}).data)


class ChatMuteView(BaseAPIView):
    """PUT /api/chats/<id>/mute/ toggles the caller's mute flag"""

    def put(self, request, pk):
        chat = self.services.chat.toggle_mute(pk, request.user.id)
        return success_response(ChatSerializer(chat, context={'request': request, 'user': request.user}).data)


class ChatTypingView(BaseAPIView):
    """POST /api/chats/<id>/typing/"""

    def post(self, request, pk):
        data = self.validated(TypingSerializer, request.data)
        self.services.chat.typing(pk, request.user.id, data['is_typing'])
        return success_response()


class MessageDetailView(BaseAPIView):
    """DELETE /api/messages/<id>/ (sender only, soft delete)"""

    def delete(self, request, pk):
        self.services.chat.delete_message(pk, request.user.id)
        return success_response(message='Message deleted successfully')


# Reviews

class ReviewCreateView(BaseAPIView):
    """POST /api/reviews/"""

    def post(self, request):
        data = dict(self.validated(ReviewCreateSerializer, request.data))
        review = self.services.reviews.create_review(
            request.user.id,
            data.pop('reviewee_id'),
            data.pop('rating'),
            data.pop('review_type'),
            **data
        )
        return success_response(
            ReviewSerializer(review, context={'request': request}).data,
            message='Review created successfully',
            status_code=status.HTTP_201_CREATED,
        )


class PendingReviewsView(BaseAPIView):
    """GET /api/reviews/pending/"""

    def get(self, request):
        pending = self.services.reviews.pending_reviews(request.user.id)
        return success_response(PendingReviewSerializer(pending, many=True, context={'request': request}).data)


class ReviewStatisticsView(BaseAPIView):
    """GET /api/reviews/stats/"""

    def get(self, request):
        return success_response(self.services.reviews.statistics(request.user.id))


class ReviewDetailView(BaseAPIView):
    """
    GET   /api/reviews/<id>/
    PATCH /api/reviews/<id>/  reviewer only, within the edit window
    """
    permission_classes = [ReadOnlyOrAuthenticated]

    def get(self, request, pk):
        viewer = request.user if request.user.is_authenticated else None
        review = self.services.reviews.get_review(pk, viewer)
        return success_response(ReviewSerializer(review, context={'request': request}).data)

    def patch(self, request, pk):
        data = self.validated(ReviewUpdateSerializer, request.data)
        review = self.services.reviews.update_review(pk, request.user.id, data)
        return success_response(
            ReviewSerializer(review, context={'request': request}).data,
            message='Review updated successfully',
        )

    put = patch


class ReviewResponseView(BaseAPIView):
    """POST /api/reviews/<id>/response/"""

    def post(self, request, pk):
        data = self.validated(ReviewResponseSerializer, request.data)
        review = self.services.reviews.add_response(pk, request.user.id, data['response'])
        return success_response(
            ReviewSerializer(review, context={'request': request}).data,
            message='Response added successfully',
        )


class ReviewFlagView(BaseAPIView):
    """POST /api/reviews/<id>/flag/"""

    def post(self, request, pk):
        data = self.validated(ReviewFlagSerializer, request.data)
        self.services.reviews.flag(pk, request.user.id, data['reason'])
        logger.info(f"Review {pk} flagged. User ID: {request.user.id}, IP: {self.get_client_ip(request)}")
        return success_response(message='Review flagged for moderation')


class ReviewVoteView(BaseAPIView):
    """POST /api/reviews/<id>/vote/"""

    def post(self, request, pk):
        data = self.validated(ReviewVoteSerializer, request.data)
        review = self.services.reviews.vote(pk, request.user.id, data['is_helpful'])
        return success_response({
            'helpfulVotes': review.helpful_votes,
            'totalVotes': review.total_votes,
        }, message='Vote recorded')


class ReviewModerateView(BaseAPIView):
    """PUT /api/reviews/admin/<id>/moderate/"""
    permission_classes = [IsAuthenticated, IsStaffUser]

    def put(self, request, pk):
        data = self.validated(ReviewModerateSerializer, request.data)
        review = self.services.reviews.moderate(pk, request.user, data['action'])
        return success_response(
            ReviewSerializer(review, context={'request': request}).data,
            message='Review moderated successfully',
        )


class UserReviewsView(BaseAPIView):
    """GET /api/users/<id>/reviews/ visible reviews received, with a summary"""
    permission_classes = [AllowAny]

    def get(self, request, pk):
        self.services.users.get_user(pk)
        rating = int_param(request, 'rating', None)
        reviews = self.services.reviews.reviews_for_user(pk, rating=rating)
        summary = self.services.reviews.rating_summary(pk)
        summary['averageRating'] = str(summary['averageRating'])
        summary['categoryAverages'] = {
            field: str(value) if value is not None else None
            for field, value in summary['categoryAverages'].items()
        }
        return self.paginated(request, reviews, ReviewSerializer, ReviewPagination, extra={'summary': summary})


class UserReviewsGivenView(BaseAPIView):
    """GET /api/users/<id>/reviews/given/"""
    permission_classes = [AllowAny]

    def get(self, request, pk):
        self.services.users.get_user(pk)
        include_hidden = request.user.is_authenticated and request.user.id == pk
        reviews = self.services.reviews.reviews_by_user(pk, include_hidden=include_hidden)
        return self.paginated(request, reviews, ReviewSerializer, ReviewPagination)


# Notifications

class NotificationListCreateView(BaseAPIView):
    """
    GET    /api/notifications/  the caller's notifications
    POST   /api/notifications/  create one (staff)
    DELETE /api/notifications/  delete many of the caller's notifications
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsStaffUser()]
        return [IsAuthenticated()]

    def get(self, request):
        notifications = self.services.notifications.list_for_user(
            request.user.id,
            is_read=bool_param(request, 'is_read'),
            type=request.query_params.get('type') or None,
            priority=request.query_params.get('priority') or None,
            include_expired=bool_param(request, 'include_expired') or False,
        )
        return self.paginated(
            request,
            notifications,
            NotificationSerializer,
            NotificationPagination,
            extra={'unreadCount': self.services.notifications.unread_count(request.user.id)},
        )

    def post(self, request):
        data = dict(self.validated(NotificationCreateSerializer, request.data))
        notification = self.services.notifications.create_notification(
            data.pop('user_id'), data.pop('type'), data.pop('title'), data.pop('message'), data.pop('priority'), **data
        )
        return success_response(
            NotificationSerializer(notification).data,
            message='Notification created successfully',
            status_code=status.HTTP_201_CREATED,
        )

    def delete(self, request):
        data = self.validated(NotificationIdsSerializer, request.data)
        deleted = self.services.notifications.delete_many(data['notification_ids'], request.user.id)
        return success_response({'deletedCount': deleted}, message='Notifications deleted successfully')


class NotificationBulkCreateView(BaseAPIView):
    """POST /api/notifications/bulk/ (staff)"""
    permission_classes = [IsAuthenticated, IsStaffUser]

    def post(self, request):
        data = dict(self.validated(NotificationBulkCreateSerializer, request.data))
        created = self.services.notifications.create_bulk(
            data.pop('user_ids'), data.pop('type'), data.pop('title'), data.pop('message'), data.pop('priority'), **data
        )
        return success_response(
            {'createdCount': len(created)},
            message='Notifications created successfully',
            status_code=status.HTTP_201_CREATED,
        )


class AnnouncementView(BaseAPIView):
    """POST /api/notifications/announce/ (staff)"""
    permission_classes = [IsAuthenticated, IsStaffUser]

    def post(self, request):
        data = self.validated(AnnouncementSerializer, request.data)
        created = self.services.notifications.announce(**data)
        logger.info(f"System announcement sent by {request.user.id} to {len(created)} users")
        return success_response(
            {'recipientCount': len(created)},
            message='Announcement sent successfully',
            status_code=status.HTTP_201_CREATED,
        )


class NotificationUnreadCountView(BaseAPIView):
    """GET /api/notifications/unread-count/"""

    def get(self, request):
        return success_response({'unreadCount': self.services.notifications.unread_count(request.user.id)})


class NotificationStatsView(BaseAPIView):
    """GET /api/notifications/stats/"""

    def get(self, request):
        return success_response(self.services.notifications.stats(request.user.id))


class NotificationMarkManyReadView(BaseAPIView):
    """PUT /api/notifications/read/ body: notification_ids"""

    def put(self, request):
        data = self.validated(NotificationIdsSerializer, request.data)
        updated = self.services.notifications.mark_many_as_read(data['notification_ids'], request.user.id)
        return success_response({'updatedCount': updated}, message='Notifications marked as read')


class NotificationMarkAllReadView(BaseAPIView):
    """PUT /api/notifications/read-all/ optional body: type"""

    def put(self, request):
        data = self.validated(MarkAllReadSerializer, request.data)
        updated = self.services.notifications.mark_all_as_read(request.user.id, data['type'] or None)
        return success_response({'updatedCount': updated}, message='All notifications marked as read')


class NotificationDetailView(BaseAPIView):
    """
    GET    /api/notifications/<id>/
    DELETE /api/notifications/<id>/
    """

    def get(self, request, pk):
        notification = self.services.notifications.get_for_user(pk, request.user.id)
        return success_response(NotificationSerializer(notification).data)

    def delete(self, request, pk):
        self.services.notifications.delete(pk, request.user.id)
        return success_response(message='Notification deleted successfully')


class NotificationMarkReadView(BaseAPIView):
    """PUT /api/notifications/<id>/read/"""

    def put(self, request, pk):
        notification = self.services.notifications.mark_as_read(pk, request.user.id)
        return success_response(NotificationSerializer(notification).data, message='Notification marked as read')


class ScheduledNotificationsView(BaseAPIView):
    """
    GET  /api/notifications/scheduled/  ready-to-send notifications (staff)
    POST /api/notifications/scheduled/  dispatch them (staff)
    """
    permission_classes = [IsAuthenticated, IsStaffUser]

    def get(self, request):
        ready = self.services.notifications.scheduled_ready(limit=int_param(request, 'limit', 100))
        return success_response(NotificationSerializer(ready, many=True).data)

    def post(self, request):
        sent = self.services.notifications.process_scheduled(limit=int_param(request, 'limit', 100))
        return success_response({'sentCount': sent}, message='Scheduled notifications processed')


class CleanupExpiredNotificationsView(BaseAPIView):
    """POST /api/notifications/cleanup-expired/ (staff)"""
    permission_classes = [IsAuthenticated, IsStaffUser]

    def post(self, request):
        deleted = self.services.notifications.cleanup_expired()
        return success_response({'deletedCount': len(deleted)}, message='Expired notifications cleaned up')
