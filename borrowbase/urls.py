"""
URL configuration for the borrowbase project.

All API routes live under /api/; JWT token endpoints are kept at
/api/token/ for clients that use the plain simplejwt flow; the token pair
endpoint is the same email login as /api/auth/login/.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenVerifyView

from core import views


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/health/', views.HealthView.as_view(), name='health'),

    # Authentication endpoints
    path('api/auth/register/', views.UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', views.LoginView.as_view(), name='user_login'),
    path('api/auth/refresh/', views.CustomTokenRefreshView.as_view(), name='user_refresh'),
    path('api/auth/logout/', views.LogoutView.as_view(), name='user_logout'),
    path('api/auth/profile/', views.UserProfileView.as_view(), name='user_profile'),
    path('api/auth/profile/complete/', views.CompleteProfileView.as_view(), name='user_profile_complete'),
    path('api/auth/update-location/', views.UpdateLocationView.as_view(), name='user_update_location'),
    path('api/auth/change-password/', views.ChangePasswordView.as_view(), name='user_change_password'),

    # Public user endpoints
    path('api/users/<int:pk>/', views.PublicUserView.as_view(), name='user_detail'),
    path('api/users/<int:pk>/resources/', views.UserResourcesView.as_view(), name='user_resources'),
    path('api/users/<int:pk>/reviews/', views.UserReviewsView.as_view(), name='user_reviews'),
    path('api/users/<int:pk>/reviews/given/', views.UserReviewsGivenView.as_view(), name='user_reviews_given'),

    # Resource endpoints
    path('api/resources/', views.ResourceListCreateView.as_view(), name='resource_list'),
    path('api/resources/search/', views.ResourceSearchView.as_view(), name='resource_search'),
    path('api/resources/nearby/', views.NearbyResourcesView.as_view(), name='resource_nearby'),
    path('api/resources/categories/', views.ResourceCategoriesView.as_view(), name='resource_categories'),
    path('api/resources/mine/', views.MyResourcesView.as_view(), name='resource_mine'),
    path('api/resources/photos/<int:photo_id>/', views.ResourcePhotoDetailView.as_view(), name='resource_photo_detail'),
    path('api/resources/photos/<int:photo_id>/primary/', views.ResourcePhotoPrimaryView.as_view(), name='resource_photo_primary'),
    path('api/resources/<int:pk>/', views.ResourceDetailView.as_view(), name='resource_detail'),
    path('api/resources/<int:pk>/view/', views.ResourceViewCountView.as_view(), name='resource_view'),
    path('api/resources/<int:pk>/availability/', views.ResourceAvailabilityView.as_view(), name='resource_availability'),
    path('api/resources/<int:pk>/photos/', views.ResourcePhotosView.as_view(), name='resource_photos'),
    path('api/resources/<int:pk>/photos/reorder/', views.ResourcePhotoReorderView.as_view(), name='resource_photos_reorder'),
    path('api/resources/<int:pk>/borrow-requests/', views.ResourceBorrowRequestsView.as_view(), name='resource_borrow_requests'),

    # Borrow request endpoints
    path('api/borrow-requests/', views.BorrowRequestListCreateView.as_view(), name='borrow_request_list'),
    path('api/borrow-requests/incoming/', views.IncomingBorrowRequestsView.as_view(), name='borrow_request_incoming'),
    path('api/borrow-requests/stats/', views.BorrowRequestStatsView.as_view(), name='borrow_request_stats'),
    path('api/borrow-requests/overdue/', views.OverdueBorrowRequestsView.as_view(), name='borrow_request_overdue'),
    path('api/borrow-requests/<int:pk>/', views.BorrowRequestDetailView.as_view(), name='borrow_request_detail'),
    path('api/borrow-requests/<int:pk>/status/', views.BorrowRequestStatusView.as_view(), name='borrow_request_status'),
    path('api/borrow-requests/<int:pk>/cancel/', views.BorrowRequestCancelView.as_view(), name='borrow_request_cancel'),
    path('api/borrow-requests/<int:pk>/pickup/', views.BorrowRequestPickupView.as_view(), name='borrow_request_pickup'),
    path('api/borrow-requests/<int:pk>/return/', views.BorrowRequestReturnView.as_view(), name='borrow_request_return'),
    path('api/borrow-requests/<int:pk>/complete/', views.BorrowRequestCompleteView.as_view(), name='borrow_request_complete'),

    # Chat endpoints
    path('api/chats/', views.ChatListCreateView.as_view(), name='chat_list'),
    path('api/chats/unread-count/', views.ChatUnreadCountView.as_view(), name='chat_unread_count'),
    path('api/chats/<int:pk>/', views.ChatDetailView.as_view(), name='chat_detail'),
    path('api/chats/<int:pk>/messages/', views.ChatMessagesView.as_view(), name='chat_messages'),
    path('api/chats/<int:pk>/read/', views.ChatReadView.as_view(), name='chat_read'),
    path('api/chats/<int:pk>/archive/', views.ChatArchiveView.as_view(), name='chat_archive'),
    path('api/chats/<int:pk>/mute/', views.ChatMuteView.as_view(), name='chat_mute'),
    path('api/chats/<int:pk>/typing/', views.ChatTypingView.as_view(), name='chat_typing'),
    path('api/messages/<int:pk>/', views.MessageDetailView.as_view(), name='message_detail'),

    # Review endpoints
    path('api/reviews/', views.ReviewCreateView.as_view(), name='review_create'),
    path('api/reviews/pending/', views.PendingReviewsView.as_view(), name='review_pending'),
    path('api/reviews/stats/', views.ReviewStatisticsView.as_view(), name='review_stats'),
    path('api/reviews/admin/<int:pk>/moderate/', views.ReviewModerateView.as_view(), name='review_moderate'),
    path('api/reviews/<int:pk>/', views.ReviewDetailView.as_view(), name='review_detail'),
    path('api/reviews/<int:pk>/response/', views.ReviewResponseView.as_view(), name='review_response'),
    path('api/reviews/<int:pk>/flag/', views.ReviewFlagView.as_view(), name='review_flag'),
    path('api/reviews/<int:pk>/vote/', views.ReviewVoteView.as_view(), name='review_vote'),

    # Notification endpoints
    path('api/notifications/', views.NotificationListCreateView.as_view(), name='notification_list'),
    path('api/notifications/bulk/', views.NotificationBulkCreateView.as_view(), name='notification_bulk'),
    path('api/notifications/announce/', views.AnnouncementView.as_view(), name='notification_announce'),
    path('api/notifications/unread-count/', views.NotificationUnreadCountView.as_view(), name='notification_unread_count'),
    path('api/notifications/stats/', views.NotificationStatsView.as_view(), name='notification_stats'),
    path('api/notifications/read/', views.NotificationMarkManyReadView.as_view(), name='notification_read_many'),
    path('api/notifications/read-all/', views.NotificationMarkAllReadView.as_view(), name='notification_read_all'),
    path('api/notifications/scheduled/', views.ScheduledNotificationsView.as_view(), name='notification_scheduled'),
    path('api/notifications/cleanup-expired/', views.CleanupExpiredNotificationsView.as_view(), name='notification_cleanup'),
    path('api/notifications/<int:pk>/', views.NotificationDetailView.as_view(), name='notification_detail'),
    path('api/notifications/<int:pk>/read/', views.NotificationMarkReadView.as_view(), name='notification_read'),

    # JWT Authentication endpoints
    path('api/token/', views.LoginView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', views.CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
