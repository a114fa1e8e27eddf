"""
Django admin configuration for BorrowBase models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import (
    BorrowRequest,
    Chat,
    Message,
    Notification,
    Resource,
    ResourcePhoto,
    Review,
    ReviewVote,
    User,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin with location, verification and rating fields.
    """

    list_display = [
        'email',
        'username',
        'neighborhood',
        'verification_status',
        'average_rating',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'verification_status',
        'is_email_verified',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'first_name',
        'last_name',
        'neighborhood',
        'postal_code',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': (
                'first_name',
                'last_name',
                'email',
                'phone_number',
                'bio',
                'profile_image',
            )
        }),
        (_('Location'), {
            'fields': ('address', 'neighborhood', 'postal_code', 'latitude', 'longitude')
        }),
        (_('Verification'), {
            'fields': ('is_email_verified', 'is_location_verified', 'verification_status')
        }),
        (_('Activity'), {
            'fields': ('average_rating', 'total_ratings', 'items_shared', 'successful_borrows', 'closed_at')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'password1',
                'password2',
            ),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined', 'average_rating', 'total_ratings']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:
            return self.readonly_fields
        return []


class ResourcePhotoInline(admin.TabularInline):
    model = ResourcePhoto
    extra = 0
    fields = ['image', 'alt_text', 'display_order', 'created_at']
    readonly_fields = ['created_at']
    ordering = ['display_order']


@admin.register(Resource)
class ResourceAdmin(admin.ModelAdmin):
    list_display = [
        'title',
        'owner',
        'category',
        'condition',
        'status',
        'is_available',
        'borrow_count',
        'created_at',
    ]

    list_filter = [
        'status',
        'is_available',
        'category',
        'condition',
        'created_at',
    ]

    search_fields = [
        'title',
        'description',
        'owner__email',
        'owner__username',
    ]

    readonly_fields = ['views_count', 'borrow_count', 'average_rating', 'total_ratings', 'created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [ResourcePhotoInline]


@admin.register(BorrowRequest)
class BorrowRequestAdmin(admin.ModelAdmin):
    list_display = [
        'id',
        'resource',
        'requester',
        'status',
        'start_date',
        'end_date',
        'created_at',
    ]

    list_filter = [
        'status',
        'has_issues',
        'deposit_paid',
        'created_at',
    ]

    search_fields = [
        'resource__title',
        'requester__email',
        'requester__username',
    ]

    readonly_fields = [
        'created_at',
        'updated_at',
        'responded_at',
        'picked_up_at',
        'returned_at',
        'completed_at',
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('resource', 'requester', 'status')
        }),
        (_('Dates'), {
            'fields': ('start_date', 'end_date', 'due_date')
        }),
        (_('Messages'), {
            'fields': ('message', 'response_message', 'pickup_notes', 'return_notes')
        }),
        (_('Deposit'), {
            'fields': ('deposit_amount', 'deposit_paid', 'deposit_returned')
        }),
        (_('Issues'), {
            'fields': ('has_issues', 'issue_description', 'issue_resolved')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at', 'responded_at', 'picked_up_at', 'returned_at', 'completed_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ['id', 'user1', 'user2', 'resource', 'status', 'last_message_at']
    list_filter = ['status']
    search_fields = ['user1__email', 'user2__email', 'subject']
    readonly_fields = ['user1_unread_count', 'user2_unread_count', 'last_message', 'last_message_at']
    ordering = ['-last_message_at']
    list_per_page = 25


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'chat', 'sender', 'message_type', 'status', 'is_read', 'created_at']
    list_filter = ['message_type', 'status', 'is_read']
    search_fields = ['content', 'sender__email']
    readonly_fields = ['created_at', 'read_at', 'deleted_at']
    ordering = ['-created_at']
    list_per_page = 50


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    """Admin interface for Review model."""

    list_display = [
        'id',
        'reviewer',
        'reviewee',
        'review_type',
        'rating',
        'moderation_status',
        'created_at',
    ]

    list_filter = [
        'rating',
        'review_type',
        'moderation_status',
        'is_verified',
        'created_at',
    ]

    search_fields = [
        'reviewer__email',
        'reviewer__username',
        'reviewee__email',
        'reviewee__username',
        'comment',
    ]

    readonly_fields = ['created_at', 'updated_at', 'helpful_votes', 'total_votes', 'flagged_at', 'moderated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('reviewer', 'reviewee', 'borrow_request', 'resource', 'review_type')
        }),
        (_('Review Content'), {
            'fields': (
                'rating',
                'communication_rating',
                'reliability_rating',
                'item_condition_rating',
                'care_rating',
                'comment',
                'response',
            )
        }),
        (_('Moderation'), {
            'fields': ('moderation_status', 'flag_reason', 'flagged_at', 'moderated_at', 'is_verified')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(ReviewVote)
class ReviewVoteAdmin(admin.ModelAdmin):
    list_display = ['review', 'voter', 'is_helpful', 'created_at']
    list_filter = ['is_helpful']
    list_per_page = 50


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'type', 'priority', 'is_read', 'is_sent', 'scheduled_for', 'created_at']
    list_filter = ['type', 'priority', 'is_read', 'is_sent']
    search_fields = ['user__email', 'title', 'message']
    readonly_fields = ['created_at', 'updated_at', 'read_at', 'sent_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 50
