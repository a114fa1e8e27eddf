"""
Serializers for request validation and response representation.

Input serializers only check the shape of incoming data; business rules
(ownership, state transitions, rating ranges, conflicts) live in the service
layer so every entry point enforces them the same way.
"""

import re

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers

from core.models import (
    BorrowRequest,
    Chat,
    Message,
    Notification,
    Resource,
    ResourcePhoto,
    Review,
)

User = get_user_model()

PHONE_PATTERN = re.compile(r'^\+?\d{10,15}$')


def absolute_url(serializer, file_field):
    """Full URL for a stored file, or the relative URL outside a request."""
    if not file_field:
        return None
    request = serializer.context.get('request')
    if request is not None:
        return request.build_absolute_uri(file_field.url)
    return file_field.url


def validate_phone(value):
    if not value:
        return value
    cleaned = re.sub(r'[\s\-\(\)]', '', value)
    if not PHONE_PATTERN.match(cleaned):
        raise serializers.ValidationError(
            "Phone number must be between 10-15 digits and may start with '+'."
        )
    return value


# Accounts

class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.

    Fields:
    - first_name, last_name: Required
    - email: Required, unique (case-insensitive)
    - password / confirm_password: Required, must match, Django validators apply
    - phone_number, address, neighborhood, postal_code: Optional
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = [
            'id', 'first_name', 'last_name', 'email', 'password', 'confirm_password',
            'phone_number', 'address', 'neighborhood', 'postal_code', 'created_at',
        ]
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
            'first_name': {'required': True, 'allow_blank': False},
            'last_name': {'required': True, 'allow_blank': False},
        }

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "A user with that email already exists."
            )
        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def validate_phone_number(self, value):
        return validate_phone(value)

    def validate(self, attrs):
        if attrs.get('password') != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })
        return attrs

    @staticmethod
    def unique_username(email):
        """Derive a username from the email's local part, suffixed until unique."""
        base = re.sub(r'[^\w.@+-]', '', email.split('@')[0])[:140] or 'user'
        username = base
        suffix = 1
        while User.objects.filter(username=username).exists():
            suffix += 1
            username = f'{base}{suffix}'
        return username

    def create(self, validated_data):
        validated_data.pop('confirm_password', None)
        password = validated_data.pop('password')

        for field in ('is_superuser', 'is_staff', 'is_active', 'groups', 'user_permissions'):
            validated_data.pop(field, None)

        with transaction.atomic():
            user = User(username=self.unique_username(validated_data['email']), **validated_data)
            user.set_password(password)
            user.save()
        return user


class LoginSerializer(serializers.Serializer):
    """
    Login credentials. Authentication itself happens in the view so that
    every failure produces the same response.
    """
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


class TokenRefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=True)


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField(required=True)


class PublicUserSerializer(serializers.ModelSerializer):
    """What other users may see about a user."""

    full_name = serializers.CharField(read_only=True)
    profile_image_url = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id',
            'first_name',
            'last_name',
            'full_name',
            'neighborhood',
            'bio',
            'profile_image_url',
            'average_rating',
            'total_ratings',
            'items_shared',
            'successful_borrows',
            'is_location_verified',
            'created_at',
        ]
        read_only_fields = fields

    def get_profile_image_url(self, obj):
        return absolute_url(self, obj.profile_image)


class UserProfileSerializer(PublicUserSerializer):
    """
    The authenticated user's own profile.

    Excludes credentials and permission flags.
    """

    class Meta(PublicUserSerializer.Meta):
        fields = PublicUserSerializer.Meta.fields + [
            'username',
            'email',
            'phone_number',
            'address',
            'postal_code',
            'latitude',
            'longitude',
            'is_email_verified',
            'verification_status',
        ]
        read_only_fields = fields


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Profile fields a user may change on their own account.

    Email, password, verification flags and counters are not writable here.
    """

    class Meta:
        model = User
        fields = [
            'first_name', 'last_name', 'phone_number', 'bio',
            'address', 'neighborhood', 'postal_code', 'profile_image',
        ]
        extra_kwargs = {field: {'required': False} for field in fields}

    def validate_phone_number(self, value):
        return validate_phone(value)

    def update(self, instance, validated_data):
        """
        Apply the changes, removing a replaced profile image from storage.
        """
        new_image = validated_data.get('profile_image')
        if new_image and instance.profile_image:
            instance.profile_image.delete(save=False)

        fields_to_update = []
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
            fields_to_update.append(attr)

        if fields_to_update:
            instance.save(update_fields=fields_to_update + ['updated_at'])
        return instance


class LocationUpdateSerializer(serializers.Serializer):
    latitude = serializers.FloatField(required=True)
    longitude = serializers.FloatField(required=True)
    neighborhood = serializers.CharField(required=False, allow_blank=True, max_length=100)
    postal_code = serializers.CharField(required=False, allow_blank=True, max_length=20)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(required=True, write_only=True)
    new_password = serializers.CharField(required=True, write_only=True)
    confirm_password = serializers.CharField(required=True, write_only=True)

    def validate(self, attrs):
        if attrs['new_password'] != attrs['confirm_password']:
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })
        return attrs


# Resources

class ResourcePhotoSerializer(serializers.ModelSerializer):
    image = serializers.SerializerMethodField()
    is_primary = serializers.BooleanField(read_only=True)

    class Meta:
        model = ResourcePhoto
        fields = [
            'id', 'image', 'alt_text', 'display_order', 'is_primary',
            'width', 'height', 'file_size', 'mime_type', 'created_at',
        ]
        read_only_fields = fields

    def get_image(self, obj):
        return absolute_url(self, obj.image)


class ResourceSummarySerializer(serializers.ModelSerializer):
    """Compact resource representation embedded in requests, chats and reviews."""

    owner_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Resource
        fields = ['id', 'title', 'category', 'condition', 'status', 'owner_id']
        read_only_fields = fields


class ResourceSerializer(serializers.ModelSerializer):
    """
    Full resource representation.

    ``distance`` (km) is present when the listing was filtered by location.
    """

    owner = PublicUserSerializer(read_only=True)
    photos = serializers.SerializerMethodField()
    primary_photo = serializers.SerializerMethodField()
    distance = serializers.SerializerMethodField()

    class Meta:
        model = Resource
        fields = [
            'id',
            'owner',
            'title',
            'description',
            'category',
            'estimated_value',
            'condition',
            'condition_notes',
            'is_available',
            'status',
            'max_borrow_days',
            'deposit_required',
            'pickup_required',
            'pickup_instructions',
            'usage_instructions',
            'location_notes',
            'available_days',
            'available_time_start',
            'available_time_end',
            'views_count',
            'borrow_count',
            'average_rating',
            'total_ratings',
            'last_borrowed',
            'photos',
            'primary_photo',
            'distance',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def _ordered_photos(self, obj):
        return sorted(obj.photos.all(), key=lambda photo: (photo.display_order, photo.id))

    def get_photos(self, obj):
        return ResourcePhotoSerializer(self._ordered_photos(obj), many=True, context=self.context).data

    def get_primary_photo(self, obj):
        photos = self._ordered_photos(obj)
        if not photos:
            return None
        return ResourcePhotoSerializer(photos[0], context=self.context).data

    def get_distance(self, obj):
        return getattr(obj, 'distance', None)


class ResourceWriteSerializer(serializers.ModelSerializer):
    """
    Input for creating and updating a resource.

    Model validators enforce the ranges: title 3-200, description 10-2000,
    estimated value 0-1,000,000, max borrow days 1-365, deposit 0-10,000.
    """

    class Meta:
        model = Resource
        fields = [
            'title',
            'description',
            'category',
            'estimated_value',
            'condition',
            'condition_notes',
            'max_borrow_days',
            'deposit_required',
            'pickup_required',
            'pickup_instructions',
            'usage_instructions',
            'location_notes',
            'available_days',
            'available_time_start',
            'available_time_end',
            'is_available',
            'status',
        ]

    def validate_title(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Title cannot be empty.")
        return value.strip()

    def validate_description(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError("Description cannot be empty.")
        return value.strip()


class ResourceAvailabilitySerializer(serializers.Serializer):
    is_available = serializers.BooleanField(required=True)


class ResourceListQuerySerializer(serializers.Serializer):
    """Query-string filters for resource listings."""

    category = serializers.ChoiceField(choices=Resource.CATEGORY_CHOICES, required=False)
    search = serializers.CharField(required=False, allow_blank=True)
    condition = serializers.ChoiceField(choices=Resource.CONDITION_CHOICES, required=False)
    min_value = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    max_value = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    max_borrow_days = serializers.IntegerField(min_value=1, required=False)
    deposit_required = serializers.BooleanField(required=False, allow_null=True, default=None)
    pickup_required = serializers.BooleanField(required=False, allow_null=True, default=None)
    is_available = serializers.BooleanField(required=False, allow_null=True, default=None)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)
    radius = serializers.FloatField(required=False, min_value=0.1, max_value=500)
    sort_by = serializers.CharField(required=False)
    sort_order = serializers.CharField(required=False)


class PhotoReorderSerializer(serializers.Serializer):
    photo_order = serializers.ListField(child=serializers.DictField(), allow_empty=False)


# Borrow requests

class BorrowRequestCreateSerializer(serializers.Serializer):
    resource_id = serializers.IntegerField(required=True)
    start_date = serializers.DateField(required=True)
    end_date = serializers.DateField(required=True)
    message = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')
    pickup_location = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')
    emergency_contact = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')


class BorrowRequestStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['approved', 'rejected'], required=True)
    response_message = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')


class BorrowRequestCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')


class PickupSerializer(serializers.Serializer):
    pickup_notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')
    pickup_location = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class ReturnSerializer(serializers.Serializer):
    return_notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')
    return_location = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')
    has_issues = serializers.BooleanField(required=False, default=False)
    issue_description = serializers.CharField(required=False, allow_blank=True, max_length=1000, default='')


class BorrowRequestUpdateSerializer(serializers.Serializer):
    pickup_notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    return_notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    issue_description = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    issue_resolved = serializers.BooleanField(required=False)
    deposit_paid = serializers.BooleanField(required=False)
    deposit_returned = serializers.BooleanField(required=False)


class BorrowRequestSerializer(serializers.ModelSerializer):
    resource = ResourceSummarySerializer(read_only=True)
    requester = PublicUserSerializer(read_only=True)
    owner = PublicUserSerializer(read_only=True)

    class Meta:
        model = BorrowRequest
        fields = [
            'id',
            'resource',
            'requester',
            'owner',
            'start_date',
            'end_date',
            'due_date',
            'message',
            'status',
            'response_message',
            'deposit_amount',
            'deposit_paid',
            'deposit_returned',
            'responded_at',
            'picked_up_at',
            'returned_at',
            'completed_at',
            'pickup_notes',
            'return_notes',
            'pickup_location',
            'return_location',
            'has_issues',
            'issue_description',
            'issue_reported_at',
            'issue_resolved',
            'emergency_contact',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


# Chat

class ChatCreateSerializer(serializers.Serializer):
    participant_id = serializers.IntegerField(required=True)
    resource_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    subject = serializers.CharField(required=False, allow_blank=True, max_length=200, default='')


class MessageCreateSerializer(serializers.Serializer):
    """
    Content limits are checked by the chat service so that blank and
    oversized messages fail the same way from every caller.
    """
    content = serializers.CharField(required=True, allow_blank=True, trim_whitespace=False)
    message_type = serializers.CharField(required=False, default='text')
    reply_to_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class TypingSerializer(serializers.Serializer):
    is_typing = serializers.BooleanField(required=False, default=True)


class MessageSenderSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    profile_image_url = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'full_name', 'profile_image_url']
        read_only_fields = fields

    def get_profile_image_url(self, obj):
        return absolute_url(self, obj.profile_image)


class MessageSerializer(serializers.ModelSerializer):
    chat_id = serializers.IntegerField(read_only=True)
    sender = MessageSenderSerializer(read_only=True)
    reply_to_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Message
        fields = [
            'id',
            'chat_id',
            'sender',
            'content',
            'message_type',
            'status',
            'is_read',
            'read_at',
            'reply_to_id',
            'reply_preview',
            'file_url',
            'file_name',
            'file_size',
            'metadata',
            'edited_at',
            'created_at',
        ]
        read_only_fields = fields


class ChatSerializer(serializers.ModelSerializer):
    """
    A chat from the point of view of ``context['user']``: the other
    participant plus the viewer's own unread count and flags.
    """

    other_user = serializers.SerializerMethodField()
    resource = ResourceSummarySerializer(read_only=True)
    last_message_sender_id = serializers.IntegerField(read_only=True)
    unread_count = serializers.SerializerMethodField()
    is_archived = serializers.SerializerMethodField()
    is_muted = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = [
            'id',
            'other_user',
            'resource',
            'subject',
            'status',
            'last_message',
            'last_message_at',
            'last_message_sender_id',
            'unread_count',
            'is_archived',
            'is_muted',
            'created_at',
        ]
        read_only_fields = fields

    def _viewer_id(self):
        return self.context['user'].id

    def get_other_user(self, obj):
        other = obj.user2 if obj.user1_id == self._viewer_id() else obj.user1
        return PublicUserSerializer(other, context=self.context).data

    def get_unread_count(self, obj):
        return obj.unread_count_for(self._viewer_id())

    def get_is_archived(self, obj):
        return obj.is_archived_for(self._viewer_id())

    def get_is_muted(self, obj):
        return obj.is_muted_for(self._viewer_id())


# Reviews

class ReviewCreateSerializer(serializers.Serializer):
    """
    Rating ranges and party checks are enforced by the review service.
    """
    reviewee_id = serializers.IntegerField(required=True)
    borrow_request_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    rating = serializers.IntegerField(required=True)
    communication_rating = serializers.IntegerField(required=False, allow_null=True)
    reliability_rating = serializers.IntegerField(required=False, allow_null=True)
    item_condition_rating = serializers.IntegerField(required=False, allow_null=True)
    care_rating = serializers.IntegerField(required=False, allow_null=True)
    review_type = serializers.CharField(required=True)
    comment = serializers.CharField(required=False, allow_blank=True, default='')
    is_anonymous = serializers.BooleanField(required=False, default=False)


class ReviewUpdateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(required=False)
    communication_rating = serializers.IntegerField(required=False, allow_null=True)
    reliability_rating = serializers.IntegerField(required=False, allow_null=True)
    item_condition_rating = serializers.IntegerField(required=False, allow_null=True)
    care_rating = serializers.IntegerField(required=False, allow_null=True)
    comment = serializers.CharField(required=False, allow_blank=True)
    is_anonymous = serializers.BooleanField(required=False)


class ReviewResponseSerializer(serializers.Serializer):
    response = serializers.CharField(required=True, allow_blank=True)


class ReviewFlagSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ReviewVoteSerializer(serializers.Serializer):
    is_helpful = serializers.BooleanField(required=True)


class ReviewModerateSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['hide', 'show', 'verify'], required=True)


class ReviewSerializer(serializers.ModelSerializer):
    """
    Review representation. The reviewer is withheld on anonymous reviews.
    """

    reviewer = serializers.SerializerMethodField()
    reviewee = PublicUserSerializer(read_only=True)
    borrow_request_id = serializers.IntegerField(read_only=True)
    resource = ResourceSummarySerializer(read_only=True)

    class Meta:
        model = Review
        fields = [
            'id',
            'reviewer',
            'reviewee',
            'borrow_request_id',
            'resource',
            'rating',
            'comment',
            'communication_rating',
            'reliability_rating',
            'item_condition_rating',
            'care_rating',
            'review_type',
            'is_anonymous',
            'is_verified',
            'moderation_status',
            'response',
            'response_at',
            'helpful_votes',
            'total_votes',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_reviewer(self, obj):
        if obj.is_anonymous:
            return None
        return PublicUserSerializer(obj.reviewer, context=self.context).data


class PendingReviewSerializer(serializers.Serializer):
    borrow_request = BorrowRequestSerializer(read_only=True)
    reviewee = PublicUserSerializer(read_only=True)
    review_type = serializers.CharField(read_only=True)


# Notifications

class NotificationSerializer(serializers.ModelSerializer):
    related_user_id = serializers.IntegerField(read_only=True)
    related_resource_id = serializers.IntegerField(read_only=True)
    related_borrow_request_id = serializers.IntegerField(read_only=True)
    related_chat_id = serializers.IntegerField(read_only=True)
    related_review_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id',
            'type',
            'title',
            'message',
            'priority',
            'is_read',
            'read_at',
            'related_user_id',
            'related_resource_id',
            'related_borrow_request_id',
            'related_chat_id',
            'related_review_id',
            'action_url',
            'action_text',
            'metadata',
            'push_sent',
            'email_sent',
            'sms_sent',
            'is_sent',
            'sent_at',
            'scheduled_for',
            'expires_at',
            'created_at',
        ]
        read_only_fields = fields


class NotificationContentSerializer(serializers.Serializer):
    """
    Content shared by single and bulk creation. Type, priority and length
    rules are enforced by the notification service.
    """
    type = serializers.CharField(required=True)
    title = serializers.CharField(required=True, allow_blank=True)
    message = serializers.CharField(required=True, allow_blank=True)
    priority = serializers.CharField(required=False, default='normal')
    metadata = serializers.JSONField(required=False, default=dict)
    action_url = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')
    action_text = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    scheduled_for = serializers.DateTimeField(required=False, allow_null=True, default=None)
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    related_user_id = serializers.IntegerField(required=False, allow_null=True)
    related_resource_id = serializers.IntegerField(required=False, allow_null=True)
    related_borrow_request_id = serializers.IntegerField(required=False, allow_null=True)
    related_chat_id = serializers.IntegerField(required=False, allow_null=True)
    related_review_id = serializers.IntegerField(required=False, allow_null=True)


class NotificationCreateSerializer(NotificationContentSerializer):
    user_id = serializers.IntegerField(required=True)


class NotificationBulkCreateSerializer(NotificationContentSerializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), required=True)


class AnnouncementSerializer(serializers.Serializer):
    title = serializers.CharField(required=True, allow_blank=True)
    message = serializers.CharField(required=True, allow_blank=True)
    priority = serializers.CharField(required=False, default='normal')
    expires_in_days = serializers.IntegerField(required=False, min_value=1, max_value=365, allow_null=True, default=None)


class NotificationIdsSerializer(serializers.Serializer):
    notification_ids = serializers.ListField(child=serializers.IntegerField(), required=True)


class MarkAllReadSerializer(serializers.Serializer):
    type = serializers.CharField(required=False, allow_blank=True, default='')
