"""
Data model for the BorrowBase resource-sharing platform.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator, MinLengthValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import (
    validate_available_days,
    validate_phone_number,
    validate_profile_image,
    validate_resource_photo,
)


RATING_VALIDATORS = [
    MinValueValidator(1, message=_('Rating must be at least 1.')),
    MaxValueValidator(5, message=_('Rating cannot exceed 5.')),
]

AGGREGATE_RATING_VALIDATORS = [
    MinValueValidator(Decimal('0.00'), message=_('Rating cannot be negative.')),
    MaxValueValidator(Decimal('5.00'), message=_('Rating cannot exceed 5.00.')),
]


def user_profile_image_upload_path(instance, filename):
    """
    Generate upload path for user profile images.

    Path format: profile_images/{user_id}/{filename}
    If user_id is not yet available (user not saved), uses 'temp' as placeholder.
    """
    user_id = instance.id if instance.id else 'temp'
    return f'profile_images/{user_id}/{filename}'


def resource_photo_upload_path(instance, filename):
    """
    Generate upload path for resource photos.

    Path format: resources/{resource_id}/{filename}
    """
    return f'resources/{instance.resource_id}/{filename}'


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address used to log in
    - phone_number, address, neighborhood, postal_code: Optional contact details
    - latitude/longitude: Optional coordinates used for nearby searches
    - bio, profile_image: Optional public profile
    - is_email_verified, is_location_verified, verification_status
    - average_rating, total_ratings: Rolling aggregate of visible reviews received
    - items_shared, successful_borrows: Activity counters
    - closed_at: Set when the account was closed and anonymized
    """

    VERIFICATION_STATUS_CHOICES = [
        ('unverified', 'Unverified'),
        ('pending', 'Pending'),
        ('verified', 'Verified'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    phone_number = models.CharField(
        _('phone number'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_phone_number],
        help_text=_('Optional. Enter phone number in international format.')
    )

    address = models.CharField(_('address'), max_length=255, blank=True, default='')

    neighborhood = models.CharField(_('neighborhood'), max_length=100, blank=True, default='')

    postal_code = models.CharField(_('postal code'), max_length=20, blank=True, default='')

    latitude = models.DecimalField(
        _('latitude'),
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal('-90'), message=_('Latitude must be between -90 and 90.')),
            MaxValueValidator(Decimal('90'), message=_('Latitude must be between -90 and 90.')),
        ]
    )

    longitude = models.DecimalField(
        _('longitude'),
        max_digits=9,
        decimal_places=6,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal('-180'), message=_('Longitude must be between -180 and 180.')),
            MaxValueValidator(Decimal('180'), message=_('Longitude must be between -180 and 180.')),
        ]
    )

    bio = models.TextField(_('bio'), max_length=500, blank=True, default='')

    profile_image = models.ImageField(
        _('profile image'),
        upload_to=user_profile_image_upload_path,
        blank=True,
        null=True,
        validators=[validate_profile_image],
        help_text=_('Optional. Upload a profile picture (max 5MB, formats: jpg, png, webp).')
    )

    is_email_verified = models.BooleanField(_('email verified'), default=False)

    is_location_verified = models.BooleanField(_('location verified'), default=False)

    verification_status = models.CharField(
        _('verification status'),
        max_length=20,
        choices=VERIFICATION_STATUS_CHOICES,
        default='unverified'
    )

    average_rating = models.DecimalField(
        _('average rating'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=AGGREGATE_RATING_VALIDATORS,
        help_text=_('Average of all visible reviews received.')
    )

    total_ratings = models.PositiveIntegerField(_('total ratings'), default=0)

    items_shared = models.PositiveIntegerField(_('items shared'), default=0)

    successful_borrows = models.PositiveIntegerField(_('successful borrows'), default=0)

    closed_at = models.DateTimeField(
        _('closed at'),
        null=True,
        blank=True,
        help_text=_('Timestamp when the account was closed and anonymized.')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='user_email_idx'),
            models.Index(fields=['latitude', 'longitude'], name='user_location_idx'),
        ]

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    @property
    def full_name(self):
        name = f'{self.first_name} {self.last_name}'.strip()
        return name or self.username

    @property
    def is_closed(self):
        return self.closed_at is not None

    def clean(self):
        """
        Validate model fields.

        Ensures the email is present and lowercase, and that coordinates are
        provided as a pair.

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({
                'latitude': _('Latitude and longitude must be provided together.')
            })


class Resource(models.Model):
    """
    An item listed by its owner for lending.

    Resources are never physically removed: deleting one moves it to the
    'inactive' status so borrow requests and reviews keep their reference.
    """

    CATEGORY_CHOICES = [
        ('Tools', 'Tools'),
        ('Electronics', 'Electronics'),
        ('Books', 'Books'),
        ('Furniture', 'Furniture'),
        ('Sports & Recreation', 'Sports & Recreation'),
        ('Kitchen & Appliances', 'Kitchen & Appliances'),
        ('Garden & Outdoor', 'Garden & Outdoor'),
        ('Musical Instruments', 'Musical Instruments'),
        ('Automotive', 'Automotive'),
        ('Clothing & Accessories', 'Clothing & Accessories'),
        ('Baby & Kids', 'Baby & Kids'),
        ('Health & Beauty', 'Health & Beauty'),
        ('Art & Craft', 'Art & Craft'),
        ('Office Supplies', 'Office Supplies'),
        ('Travel & Luggage', 'Travel & Luggage'),
        ('Other', 'Other'),
    ]

    CONDITION_CHOICES = [
        ('excellent', 'Excellent'),
        ('good', 'Good'),
        ('fair', 'Fair'),
        ('poor', 'Poor'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('borrowed', 'Borrowed'),
        ('maintenance', 'Maintenance'),
        ('inactive', 'Inactive'),
    ]

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='resources',
        verbose_name=_('owner')
    )

    title = models.CharField(
        _('title'),
        max_length=200,
        validators=[MinLengthValidator(3, message=_('Title must be at least 3 characters long.'))]
    )

    description = models.TextField(
        _('description'),
        max_length=2000,
        validators=[MinLengthValidator(10, message=_('Description must be at least 10 characters long.'))]
    )

    category = models.CharField(_('category'), max_length=50, choices=CATEGORY_CHOICES)

    estimated_value = models.DecimalField(
        _('estimated value'),
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal('0'), message=_('Estimated value cannot be negative.')),
            MaxValueValidator(Decimal('1000000'), message=_('Estimated value cannot exceed 1,000,000.')),
        ]
    )

    condition = models.CharField(
        _('condition'),
        max_length=20,
        choices=CONDITION_CHOICES,
        default='good'
    )

    condition_notes = models.CharField(_('condition notes'), max_length=500, blank=True, default='')

    is_available = models.BooleanField(
        _('available'),
        default=True,
        help_text=_('False while an approved or active borrow request holds the item.')
    )

    max_borrow_days = models.PositiveIntegerField(
        _('max borrow days'),
        default=7,
        validators=[
            MinValueValidator(1, message=_('Max borrow days must be at least 1.')),
            MaxValueValidator(365, message=_('Max borrow days cannot exceed 365.')),
        ]
    )

    deposit_required = models.DecimalField(
        _('deposit required'),
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[
            MinValueValidator(Decimal('0'), message=_('Deposit cannot be negative.')),
            MaxValueValidator(Decimal('10000'), message=_('Deposit cannot exceed 10,000.')),
        ]
    )

    pickup_required = models.BooleanField(_('pickup required'), default=False)

    pickup_instructions = models.CharField(_('pickup instructions'), max_length=500, blank=True, default='')

    usage_instructions = models.CharField(_('usage instructions'), max_length=500, blank=True, default='')

    location_notes = models.CharField(_('location notes'), max_length=255, blank=True, default='')

    available_days = models.JSONField(
        _('available days'),
        default=list,
        blank=True,
        validators=[validate_available_days],
        help_text=_('Weekday names on which the item can be picked up.')
    )

    available_time_start = models.TimeField(_('available from'), null=True, blank=True)

    available_time_end = models.TimeField(_('available until'), null=True, blank=True)

    views_count = models.PositiveIntegerField(_('views count'), default=0)

    borrow_count = models.PositiveIntegerField(_('borrow count'), default=0)

    average_rating = models.DecimalField(
        _('average rating'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=AGGREGATE_RATING_VALIDATORS
    )

    total_ratings = models.PositiveIntegerField(_('total ratings'), default=0)

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default='active'
    )

    last_borrowed = models.DateTimeField(_('last borrowed'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('resource')
        verbose_name_plural = _('resources')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['category'], name='resource_category_idx'),
            models.Index(fields=['status', 'is_available'], name='resource_status_avail_idx'),
            models.Index(fields=['owner', 'status'], name='resource_owner_status_idx'),
        ]

    def __str__(self):
        return f'{self.title} ({self.owner.email})'

    def clean(self):
        super().clean()

        if self.title:
            self.title = self.title.strip()

        if (
            self.available_time_start
            and self.available_time_end
            and self.available_time_end <= self.available_time_start
        ):
            raise ValidationError({
                'available_time_end': _('Available-until time must be after available-from time.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class ResourcePhoto(models.Model):
    """Photo of a resource. display_order 1 is the primary photo."""

    resource = models.ForeignKey(
        Resource,
        on_delete=models.CASCADE,
        related_name='photos',
        verbose_name=_('resource')
    )

    image = models.ImageField(
        _('image'),
        upload_to=resource_photo_upload_path,
        width_field='width',
        height_field='height',
        validators=[validate_resource_photo]
    )

    alt_text = models.CharField(_('alt text'), max_length=255, blank=True, default='')

    file_size = models.PositiveIntegerField(_('file size'), default=0)

    mime_type = models.CharField(_('mime type'), max_length=50, blank=True, default='')

    width = models.PositiveIntegerField(_('width'), null=True, blank=True)

    height = models.PositiveIntegerField(_('height'), null=True, blank=True)

    display_order = models.PositiveIntegerField(_('display order'), default=1)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('resource photo')
        verbose_name_plural = _('resource photos')
        ordering = ['display_order', 'id']

    def __str__(self):
        return f'Photo {self.display_order} of {self.resource.title}'

    @property
    def is_primary(self):
        return self.display_order == 1


class BorrowRequest(models.Model):
    """
    One lending cycle of a Resource between its owner and a requester.

    Status lifecycle:
        pending -> approved -> active -> returned -> completed
        pending -> rejected
        pending | approved -> cancelled
        active -> overdue -> returned
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('cancelled', 'Cancelled'),
        ('active', 'Active'),
        ('overdue', 'Overdue'),
        ('returned', 'Returned'),
        ('completed', 'Completed'),
    ]

    # Statuses that hold the resource's calendar for overlap detection
    BLOCKING_STATUSES = ['pending', 'approved', 'active']

    # Statuses after which the transaction can be reviewed
    REVIEWABLE_STATUSES = ['returned', 'completed']

    TRANSITIONS = {
        'pending': ['approved', 'rejected', 'cancelled'],
        'approved': ['active', 'cancelled'],
        'active': ['returned', 'overdue'],
        'overdue': ['returned'],
        'returned': ['completed'],
        'rejected': [],
        'cancelled': [],
        'completed': [],
    }

    resource = models.ForeignKey(
        Resource,
        on_delete=models.CASCADE,
        related_name='borrow_requests',
        verbose_name=_('resource')
    )

    requester = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='borrow_requests',
        verbose_name=_('requester')
    )

    start_date = models.DateField(_('start date'))

    end_date = models.DateField(_('end date'))

    due_date = models.DateField(_('due date'), null=True, blank=True)

    message = models.TextField(_('message'), max_length=1000, blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending'
    )

    response_message = models.TextField(_('response message'), max_length=1000, blank=True, default='')

    deposit_amount = models.DecimalField(
        _('deposit amount'),
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0'), message=_('Deposit cannot be negative.'))]
    )

    deposit_paid = models.BooleanField(_('deposit paid'), default=False)

    deposit_returned = models.BooleanField(_('deposit returned'), default=False)

    responded_at = models.DateTimeField(_('responded at'), null=True, blank=True)

    picked_up_at = models.DateTimeField(_('picked up at'), null=True, blank=True)

    returned_at = models.DateTimeField(_('returned at'), null=True, blank=True)

    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)

    pickup_notes = models.TextField(_('pickup notes'), max_length=1000, blank=True, default='')

    return_notes = models.TextField(_('return notes'), max_length=1000, blank=True, default='')

    pickup_location = models.CharField(_('pickup location'), max_length=255, blank=True, default='')

    return_location = models.CharField(_('return location'), max_length=255, blank=True, default='')

    has_issues = models.BooleanField(_('has issues'), default=False)

    issue_description = models.TextField(_('issue description'), max_length=1000, blank=True, default='')

    issue_reported_at = models.DateTimeField(_('issue reported at'), null=True, blank=True)

    issue_resolved = models.BooleanField(_('issue resolved'), default=False)

    emergency_contact = models.CharField(_('emergency contact'), max_length=100, blank=True, default='')

    created_at = models.DateTimeField(_('requested at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('borrow request')
        verbose_name_plural = _('borrow requests')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['resource', 'status'], name='borrow_resource_status_idx'),
            models.Index(fields=['requester', 'status'], name='borrow_requester_status_idx'),
            models.Index(fields=['status', 'due_date'], name='borrow_status_due_idx'),
        ]

    def __str__(self):
        return f'Request #{self.pk} for {self.resource.title} by {self.requester.email}'

    @property
    def owner(self):
        return self.resource.owner

    @property
    def owner_id(self):
        return self.resource.owner_id

    def is_participant(self, user_id):
        return user_id in (self.requester_id, self.resource.owner_id)

    def can_transition_to(self, new_status):
        """
        Validate if the request can move to new_status.

        Returns:
            tuple: (is_valid: bool, error_message: str or None)
        """
        if new_status not in dict(self.STATUS_CHOICES):
            return False, f'Unknown status: {new_status}.'

        allowed = self.TRANSITIONS.get(self.status, [])
        if new_status in allowed:
            return True, None

        if not allowed:
            return False, f'Cannot modify a {self.status} request.'

        return False, f'Cannot transition from {self.status} to {new_status}.'

    @staticmethod
    def ranges_overlap(start_a, end_a, start_b, end_b):
        """Inclusive date-range overlap test."""
        return start_a <= end_b and end_a >= start_b

    def clean(self):
        """
        Validate the request's own fields.

        Date-in-the-past checks belong to request creation only, so that
        historical rows can still be saved.
        """
        super().clean()

        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({
                'end_date': _('End date must be after start date.')
            })

        if self.requester_id and self.resource_id and self.requester_id == self.resource.owner_id:
            raise ValidationError({
                'requester': _('You cannot borrow your own resource.')
            })

    def save(self, *args, **kwargs):
        if self.due_date is None and self.end_date is not None:
            self.due_date = self.end_date
        self.full_clean()
        super().save(*args, **kwargs)


class Chat(models.Model):
    """
    Conversation between two users.

    The pair is stored ordered (user1_id < user2_id) so exactly one row
    exists per pair. Last-message preview and per-side unread counts are
    denormalized and recomputed after every change to the chat's messages.
    """

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('archived', 'Archived'),
        ('blocked', 'Blocked'),
    ]

    user1 = models.ForeignKey(User, on_delete=models.CASCADE, related_name='chats_as_user1')

    user2 = models.ForeignKey(User, on_delete=models.CASCADE, related_name='chats_as_user2')

    resource = models.ForeignKey(
        Resource,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='chats'
    )

    subject = models.CharField(_('subject'), max_length=200, blank=True, default='')

    status = models.CharField(_('status'), max_length=20, choices=STATUS_CHOICES, default='active')

    last_message = models.CharField(_('last message'), max_length=500, blank=True, default='')

    last_message_at = models.DateTimeField(_('last message at'), null=True, blank=True)

    last_message_sender = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    user1_unread_count = models.PositiveIntegerField(default=0)

    user2_unread_count = models.PositiveIntegerField(default=0)

    user1_archived = models.BooleanField(default=False)

    user2_archived = models.BooleanField(default=False)

    user1_muted = models.BooleanField(default=False)

    user2_muted = models.BooleanField(default=False)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('chat')
        verbose_name_plural = _('chats')
        ordering = ['-last_message_at', '-created_at']
        constraints = [
            models.UniqueConstraint(fields=['user1', 'user2'], name='unique_chat_pair'),
            models.CheckConstraint(condition=models.Q(user1__lt=models.F('user2')), name='chat_pair_ordered'),
        ]

    def __str__(self):
        return f'Chat #{self.pk} ({self.user1_id}, {self.user2_id})'

    def is_participant(self, user_id):
        return user_id in (self.user1_id, self.user2_id)

    def other_user_id(self, user_id):
        return self.user2_id if user_id == self.user1_id else self.user1_id

    def side(self, user_id):
        """Return the field prefix ('user1' or 'user2') for a participant."""
        return 'user1' if user_id == self.user1_id else 'user2'

    def unread_count_for(self, user_id):
        return getattr(self, f'{self.side(user_id)}_unread_count')

    def is_archived_for(self, user_id):
        return getattr(self, f'{self.side(user_id)}_archived')

    def is_muted_for(self, user_id):
        return getattr(self, f'{self.side(user_id)}_muted')


class Message(models.Model):
    """
    A message in a chat.

    Deleted messages keep their row with status 'deleted' and are hidden
    from listings.
    """

    MESSAGE_TYPE_CHOICES = [
        ('text', 'Text'),
        ('image', 'Image'),
        ('file', 'File'),
        ('system', 'System'),
    ]

    STATUS_CHOICES = [
        ('sent', 'Sent'),
        ('edited', 'Edited'),
        ('deleted', 'Deleted'),
    ]

    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='messages')

    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')

    content = models.TextField(_('content'), max_length=2000)

    message_type = models.CharField(
        _('message type'),
        max_length=10,
        choices=MESSAGE_TYPE_CHOICES,
        default='text'
    )

    status = models.CharField(_('status'), max_length=10, choices=STATUS_CHOICES, default='sent')

    file_url = models.CharField(_('file url'), max_length=500, blank=True, default='')

    file_name = models.CharField(_('file name'), max_length=255, blank=True, default='')

    file_size = models.PositiveIntegerField(_('file size'), null=True, blank=True)

    is_read = models.BooleanField(_('read'), default=False)

    read_at = models.DateTimeField(_('read at'), null=True, blank=True)

    reply_to = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='replies'
    )

    reply_preview = models.CharField(_('reply preview'), max_length=100, blank=True, default='')

    system_action = models.CharField(_('system action'), max_length=50, blank=True, default='')

    metadata = models.JSONField(_('metadata'), default=dict, blank=True)

    edited_at = models.DateTimeField(_('edited at'), null=True, blank=True)

    deleted_at = models.DateTimeField(_('deleted at'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['chat', 'created_at'], name='message_chat_created_idx'),
            models.Index(fields=['chat', 'sender', 'is_read'], name='message_chat_unread_idx'),
        ]

    def __str__(self):
        return f'Message #{self.pk} in chat {self.chat_id}'

    @property
    def is_deleted(self):
        return self.status == 'deleted'


class Review(models.Model):
    """
    Feedback from one user to another, optionally anchored to a borrow request.

    Moderation lifecycle: visible -> flagged -> hidden, and back to visible
    when a moderator shows it. Hidden reviews do not count toward ratings.
    """

    REVIEW_TYPE_CHOICES = [
        ('borrower_to_owner', 'Borrower to owner'),
        ('owner_to_borrower', 'Owner to borrower'),
    ]

    MODERATION_STATUS_CHOICES = [
        ('visible', 'Visible'),
        ('flagged', 'Flagged'),
        ('hidden', 'Hidden'),
    ]

    CATEGORY_RATING_FIELDS = [
        'communication_rating',
        'reliability_rating',
        'item_condition_rating',
        'care_rating',
    ]

    reviewer = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews_given')

    reviewee = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews_received')

    borrow_request = models.ForeignKey(
        BorrowRequest,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='reviews'
    )

    resource = models.ForeignKey(
        Resource,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews'
    )

    rating = models.PositiveSmallIntegerField(_('rating'), validators=RATING_VALIDATORS)

    comment = models.TextField(_('comment'), max_length=1000, blank=True, default='')

    communication_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)

    reliability_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)

    item_condition_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)

    care_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)

    review_type = models.CharField(_('review type'), max_length=20, choices=REVIEW_TYPE_CHOICES)

    is_anonymous = models.BooleanField(_('anonymous'), default=False)

    is_verified = models.BooleanField(_('verified'), default=False)

    moderation_status = models.CharField(
        _('moderation status'),
        max_length=10,
        choices=MODERATION_STATUS_CHOICES,
        default='visible'
    )

    flag_reason = models.CharField(_('flag reason'), max_length=500, blank=True, default='')

    flagged_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    flagged_at = models.DateTimeField(_('flagged at'), null=True, blank=True)

    moderated_at = models.DateTimeField(_('moderated at'), null=True, blank=True)

    moderated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    response = models.TextField(_('response'), max_length=1000, blank=True, default='')

    response_at = models.DateTimeField(_('response at'), null=True, blank=True)

    helpful_votes = models.PositiveIntegerField(_('helpful votes'), default=0)

    total_votes = models.PositiveIntegerField(_('total votes'), default=0)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['reviewer', 'reviewee', 'borrow_request'],
                name='unique_review_per_request'
            ),
        ]
        indexes = [
            models.Index(fields=['reviewee', 'moderation_status'], name='review_reviewee_status_idx'),
            models.Index(fields=['reviewer'], name='review_reviewer_idx'),
        ]

    def __str__(self):
        return f'Review by {self.reviewer.email} for {self.reviewee.email} ({self.rating} stars)'

    @property
    def is_hidden(self):
        return self.moderation_status == 'hidden'

    @property
    def is_flagged(self):
        return self.moderation_status == 'flagged'

    def clean(self):
        """
        Validate review business rules.

        Ensures:
        - Reviewer and reviewee are different
        - An anchored review comes from one party and targets the other
        """
        super().clean()

        if self.reviewer_id and self.reviewer_id == self.reviewee_id:
            raise ValidationError({
                'reviewee': _('You cannot review yourself.')
            })

        if self.borrow_request_id:
            request = self.borrow_request
            parties = {request.requester_id, request.resource.owner_id}
            if self.reviewer_id not in parties:
                raise ValidationError({
                    'reviewer': _('Only participants of the borrow request can review it.')
                })
            if self.reviewee_id not in parties:
                raise ValidationError({
                    'reviewee': _('The reviewee must be the other party of the borrow request.')
                })


class ReviewVote(models.Model):
    """A single user's helpfulness vote on a review."""

    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name='votes')

    voter = models.ForeignKey(User, on_delete=models.CASCADE, related_name='review_votes')

    is_helpful = models.BooleanField(_('helpful'))

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('review vote')
        verbose_name_plural = _('review votes')
        constraints = [
            models.UniqueConstraint(fields=['review', 'voter'], name='unique_vote_per_review'),
        ]

    def __str__(self):
        return f'Vote by {self.voter_id} on review {self.review_id}'


class Notification(models.Model):
    """
    A per-user inbox entry with delivery tracking, scheduling and expiry.
    """

    TYPE_CHOICES = [
        ('borrow_request_created', 'Borrow request created'),
        ('borrow_request_approved', 'Borrow request approved'),
        ('borrow_request_rejected', 'Borrow request rejected'),
        ('borrow_request_cancelled', 'Borrow request cancelled'),
        ('borrow_request_pickup_ready', 'Borrow request ready for pickup'),
        ('borrow_request_overdue', 'Borrow request overdue'),
        ('borrow_request_returned', 'Borrow request returned'),
        ('review_received', 'Review received'),
        ('review_response', 'Review response'),
        ('chat_message', 'Chat message'),
        ('resource_available', 'Resource available'),
        ('system_announcement', 'System announcement'),
        ('account_update', 'Account update'),
        ('reminder', 'Reminder'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')

    type = models.CharField(_('type'), max_length=40, choices=TYPE_CHOICES)

    title = models.CharField(_('title'), max_length=255)

    message = models.TextField(_('message'), max_length=1000)

    priority = models.CharField(_('priority'), max_length=10, choices=PRIORITY_CHOICES, default='normal')

    is_read = models.BooleanField(_('read'), default=False)

    read_at = models.DateTimeField(_('read at'), null=True, blank=True)

    related_user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    related_resource = models.ForeignKey(
        Resource,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    related_borrow_request = models.ForeignKey(
        BorrowRequest,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    related_chat = models.ForeignKey(
        Chat,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    related_review = models.ForeignKey(
        Review,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    action_url = models.CharField(_('action url'), max_length=500, blank=True, default='')

    action_text = models.CharField(_('action text'), max_length=100, blank=True, default='')

    metadata = models.JSONField(_('metadata'), default=dict, blank=True)

    push_sent = models.BooleanField(default=False)

    push_sent_at = models.DateTimeField(null=True, blank=True)

    email_sent = models.BooleanField(default=False)

    email_sent_at = models.DateTimeField(null=True, blank=True)

    sms_sent = models.BooleanField(default=False)

    sms_sent_at = models.DateTimeField(null=True, blank=True)

    is_sent = models.BooleanField(_('sent'), default=False)

    sent_at = models.DateTimeField(_('sent at'), null=True, blank=True)

    scheduled_for = models.DateTimeField(_('scheduled for'), null=True, blank=True)

    expires_at = models.DateTimeField(_('expires at'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('notification')
        verbose_name_plural = _('notifications')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notif_user_read_idx'),
            models.Index(fields=['user', 'type'], name='notif_user_type_idx'),
            models.Index(fields=['expires_at'], name='notif_expires_idx'),
            models.Index(fields=['scheduled_for', 'is_sent'], name='notif_scheduled_idx'),
        ]

    def __str__(self):
        return f'{self.type} for {self.user_id}: {self.title}'
