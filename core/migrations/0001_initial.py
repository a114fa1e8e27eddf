import core.models
import core.validators
import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


RATING_VALIDATORS = [
    django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'),
    django.core.validators.MaxValueValidator(5, message='Rating cannot exceed 5.'),
]

AGGREGATE_RATING_VALIDATORS = [
    django.core.validators.MinValueValidator(Decimal('0.00'), message='Rating cannot be negative.'),
    django.core.validators.MaxValueValidator(Decimal('5.00'), message='Rating cannot exceed 5.00.'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('phone_number', models.CharField(blank=True, default='', help_text='Optional. Enter phone number in international format.', max_length=20, validators=[core.validators.validate_phone_number], verbose_name='phone number')),
                ('address', models.CharField(blank=True, default='', max_length=255, verbose_name='address')),
                ('neighborhood', models.CharField(blank=True, default='', max_length=100, verbose_name='neighborhood')),
                ('postal_code', models.CharField(blank=True, default='', max_length=20, verbose_name='postal code')),
                ('latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True, validators=[django.core.validators.MinValueValidator(Decimal('-90'), message='Latitude must be between -90 and 90.'), django.core.validators.MaxValueValidator(Decimal('90'), message='Latitude must be between -90 and 90.')], verbose_name='latitude')),
                ('longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True, validators=[django.core.validators.MinValueValidator(Decimal('-180'), message='Longitude must be between -180 and 180.'), django.core.validators.MaxValueValidator(Decimal('180'), message='Longitude must be between -180 and 180.')], verbose_name='longitude')),
                ('bio', models.TextField(blank=True, default='', max_length=500, verbose_name='bio')),
                ('profile_image', models.ImageField(blank=True, help_text='Optional. Upload a profile picture (max 5MB, formats: jpg, png, webp).', null=True, upload_to=core.models.user_profile_image_upload_path, validators=[core.validators.validate_profile_image], verbose_name='profile image')),
                ('is_email_verified', models.BooleanField(default=False, verbose_name='email verified')),
                ('is_location_verified', models.BooleanField(default=False, verbose_name='location verified')),
                ('verification_status', models.CharField(choices=[('unverified', 'Unverified'), ('pending', 'Pending'), ('verified', 'Verified')], default='unverified', max_length=20, verbose_name='verification status')),
                ('average_rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Average of all visible reviews received.', max_digits=3, validators=AGGREGATE_RATING_VALIDATORS, verbose_name='average rating')),
                ('total_ratings', models.PositiveIntegerField(default=0, verbose_name='total ratings')),
                ('items_shared', models.PositiveIntegerField(default=0, verbose_name='items shared')),
                ('successful_borrows', models.PositiveIntegerField(default=0, verbose_name='successful borrows')),
                ('closed_at', models.DateTimeField(blank=True, help_text='Timestamp when the account was closed and anonymized.', null=True, verbose_name='closed at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='user_email_idx'),
                    models.Index(fields=['latitude', 'longitude'], name='user_location_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Resource',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, validators=[django.core.validators.MinLengthValidator(3, message='Title must be at least 3 characters long.')], verbose_name='title')),
                ('description', models.TextField(max_length=2000, validators=[django.core.validators.MinLengthValidator(10, message='Description must be at least 10 characters long.')], verbose_name='description')),
                ('category', models.CharField(choices=[('Tools', 'Tools'), ('Electronics', 'Electronics'), ('Books', 'Books'), ('Furniture', 'Furniture'), ('Sports & Recreation', 'Sports & Recreation'), ('Kitchen & Appliances', 'Kitchen & Appliances'), ('Garden & Outdoor', 'Garden & Outdoor'), ('Musical Instruments', 'Musical Instruments'), ('Automotive', 'Automotive'), ('Clothing & Accessories', 'Clothing & Accessories'), ('Baby & Kids', 'Baby & Kids'), ('Health & Beauty', 'Health & Beauty'), ('Art & Craft', 'Art & Craft'), ('Office Supplies', 'Office Supplies'), ('Travel & Luggage', 'Travel & Luggage'), ('Other', 'Other')], max_length=50, verbose_name='category')),
                ('estimated_value', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'), message='Estimated value cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('1000000'), message='Estimated value cannot exceed 1,000,000.')], verbose_name='estimated value')),
                ('condition', models.CharField(choices=[('excellent', 'Excellent'), ('good', 'Good'), ('fair', 'Fair'), ('poor', 'Poor')], default='good', max_length=20, verbose_name='condition')),
                ('condition_notes', models.CharField(blank=True, default='', max_length=500, verbose_name='condition notes')),
                ('is_available', models.BooleanField(default=True, help_text='False while an approved or active borrow request holds the item.', verbose_name='available')),
                ('max_borrow_days', models.PositiveIntegerField(default=7, validators=[django.core.validators.MinValueValidator(1, message='Max borrow days must be at least 1.'), django.core.validators.MaxValueValidator(365, message='Max borrow days cannot exceed 365.')], verbose_name='max borrow days')),
                ('deposit_required', models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'), message='Deposit cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('10000'), message='Deposit cannot exceed 10,000.')], verbose_name='deposit required')),
                ('pickup_required', models.BooleanField(default=False, verbose_name='pickup required')),
                ('pickup_instructions', models.CharField(blank=True, default='', max_length=500, verbose_name='pickup instructions')),
                ('usage_instructions', models.CharField(blank=True, default='', max_length=500, verbose_name='usage instructions')),
                ('location_notes', models.CharField(blank=True, default='', max_length=255, verbose_name='location notes')),
                ('available_days', models.JSONField(blank=True, default=list, help_text='Weekday names on which the item can be picked up.', validators=[core.validators.validate_available_days], verbose_name='available days')),
                ('available_time_start', models.TimeField(blank=True, null=True, verbose_name='available from')),
                ('available_time_end', models.TimeField(blank=True, null=True, verbose_name='available until')),
                ('views_count', models.PositiveIntegerField(default=0, verbose_name='views count')),
                ('borrow_count', models.PositiveIntegerField(default=0, verbose_name='borrow count')),
                ('average_rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=3, validators=AGGREGATE_RATING_VALIDATORS, verbose_name='average rating')),
                ('total_ratings', models.PositiveIntegerField(default=0, verbose_name='total ratings')),
                ('status', models.CharField(choices=[('active', 'Active'), ('borrowed', 'Borrowed'), ('maintenance', 'Maintenance'), ('inactive', 'Inactive')], default='active', max_length=20, verbose_name='status')),
                ('last_borrowed', models.DateTimeField(blank=True, null=True, verbose_name='last borrowed')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='resources', to=settings.AUTH_USER_MODEL, verbose_name='owner')),
            ],
            options={
                'verbose_name': 'resource',
                'verbose_name_plural': 'resources',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['category'], name='resource_category_idx'),
                    models.Index(fields=['status', 'is_available'], name='resource_status_avail_idx'),
                    models.Index(fields=['owner', 'status'], name='resource_owner_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ResourcePhoto',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('image', models.ImageField(height_field='height', upload_to=core.models.resource_photo_upload_path, validators=[core.validators.validate_resource_photo], verbose_name='image', width_field='width')),
                ('alt_text', models.CharField(blank=True, default='', max_length=255, verbose_name='alt text')),
                ('file_size', models.PositiveIntegerField(default=0, verbose_name='file size')),
                ('mime_type', models.CharField(blank=True, default='', max_length=50, verbose_name='mime type')),
                ('width', models.PositiveIntegerField(blank=True, null=True, verbose_name='width')),
                ('height', models.PositiveIntegerField(blank=True, null=True, verbose_name='height')),
                ('display_order', models.PositiveIntegerField(default=1, verbose_name='display order')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('resource', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='photos', to='core.resource', verbose_name='resource')),
            ],
            options={
                'verbose_name': 'resource photo',
                'verbose_name_plural': 'resource photos',
                'ordering': ['display_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='BorrowRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_date', models.DateField(verbose_name='start date')),
                ('end_date', models.DateField(verbose_name='end date')),
                ('due_date', models.DateField(blank=True, null=True, verbose_name='due date')),
                ('message', models.TextField(blank=True, default='', max_length=1000, verbose_name='message')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('cancelled', 'Cancelled'), ('active', 'Active'), ('overdue', 'Overdue'), ('returned', 'Returned'), ('completed', 'Completed')], default='pending', max_length=20, verbose_name='status')),
                ('response_message', models.TextField(blank=True, default='', max_length=1000, verbose_name='response message')),
                ('deposit_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'), message='Deposit cannot be negative.')], verbose_name='deposit amount')),
                ('deposit_paid', models.BooleanField(default=False, verbose_name='deposit paid')),
                ('deposit_returned', models.BooleanField(default=False, verbose_name='deposit returned')),
                ('responded_at', models.DateTimeField(blank=True, null=True, verbose_name='responded at')),
                ('picked_up_at', models.DateTimeField(blank=True, null=True, verbose_name='picked up at')),
                ('returned_at', models.DateTimeField(blank=True, null=True, verbose_name='returned at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('pickup_notes', models.TextField(blank=True, default='', max_length=1000, verbose_name='pickup notes')),
                ('return_notes', models.TextField(blank=True, default='', max_length=1000, verbose_name='return notes')),
                ('pickup_location', models.CharField(blank=True, default='', max_length=255, verbose_name='pickup location')),
                ('return_location', models.CharField(blank=True, default='', max_length=255, verbose_name='return location')),
                ('has_issues', models.BooleanField(default=False, verbose_name='has issues')),
                ('issue_description', models.TextField(blank=True, default='', max_length=1000, verbose_name='issue description')),
                ('issue_reported_at', models.DateTimeField(blank=True, null=True, verbose_name='issue reported at')),
                ('issue_resolved', models.BooleanField(default=False, verbose_name='issue resolved')),
                ('emergency_contact', models.CharField(blank=True, default='', max_length=100, verbose_name='emergency contact')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='requested at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='borrow_requests', to=settings.AUTH_USER_MODEL, verbose_name='requester')),
                ('resource', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='borrow_requests', to='core.resource', verbose_name='resource')),
            ],
            options={
                'verbose_name': 'borrow request',
                'verbose_name_plural': 'borrow requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['resource', 'status'], name='borrow_resource_status_idx'),
                    models.Index(fields=['requester', 'status'], name='borrow_requester_status_idx'),
                    models.Index(fields=['status', 'due_date'], name='borrow_status_due_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Chat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('subject', models.CharField(blank=True, default='', max_length=200, verbose_name='subject')),
                ('status', models.CharField(choices=[('active', 'Active'), ('archived', 'Archived'), ('blocked', 'Blocked')], default='active', max_length=20, verbose_name='status')),
                ('last_message', models.CharField(blank=True, default='', max_length=500, verbose_name='last message')),
                ('last_message_at', models.DateTimeField(blank=True, null=True, verbose_name='last message at')),
                ('user1_unread_count', models.PositiveIntegerField(default=0)),
                ('user2_unread_count', models.PositiveIntegerField(default=0)),
                ('user1_archived', models.BooleanField(default=False)),
                ('user2_archived', models.BooleanField(default=False)),
                ('user1_muted', models.BooleanField(default=False)),
                ('user2_muted', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('last_message_sender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('resource', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='chats', to='core.resource')),
                ('user1', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='chats_as_user1', to=settings.AUTH_USER_MODEL)),
                ('user2', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='chats_as_user2', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'chat',
                'verbose_name_plural': 'chats',
                'ordering': ['-last_message_at', '-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('user1', 'user2'), name='unique_chat_pair'),
                    models.CheckConstraint(condition=models.Q(('user1__lt', models.F('user2'))), name='chat_pair_ordered'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.TextField(max_length=2000, verbose_name='content')),
                ('message_type', models.CharField(choices=[('text', 'Text'), ('image', 'Image'), ('file', 'File'), ('system', 'System')], default='text', max_length=10, verbose_name='message type')),
                ('status', models.CharField(choices=[('sent', 'Sent'), ('edited', 'Edited'), ('deleted', 'Deleted')], default='sent', max_length=10, verbose_name='status')),
                ('file_url', models.CharField(blank=True, default='', max_length=500, verbose_name='file url')),
                ('file_name', models.CharField(blank=True, default='', max_length=255, verbose_name='file name')),
                ('file_size', models.PositiveIntegerField(blank=True, null=True, verbose_name='file size')),
                ('is_read', models.BooleanField(default=False, verbose_name='read')),
                ('read_at', models.DateTimeField(blank=True, null=True, verbose_name='read at')),
                ('reply_preview', models.CharField(blank=True, default='', max_length=100, verbose_name='reply preview')),
                ('system_action', models.CharField(blank=True, default='', max_length=50, verbose_name='system action')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='metadata')),
                ('edited_at', models.DateTimeField(blank=True, null=True, verbose_name='edited at')),
                ('deleted_at', models.DateTimeField(blank=True, null=True, verbose_name='deleted at')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('chat', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='core.chat')),
                ('reply_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='replies', to='core.message')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sent_messages', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'message',
                'verbose_name_plural': 'messages',
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['chat', 'created_at'], name='message_chat_created_idx'),
                    models.Index(fields=['chat', 'sender', 'is_read'], name='message_chat_unread_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(validators=RATING_VALIDATORS, verbose_name='rating')),
                ('comment', models.TextField(blank=True, default='', max_length=1000, verbose_name='comment')),
                ('communication_rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=RATING_VALIDATORS)),
                ('reliability_rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=RATING_VALIDATORS)),
                ('item_condition_rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=RATING_VALIDATORS)),
                ('care_rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=RATING_VALIDATORS)),
                ('review_type', models.CharField(choices=[('borrower_to_owner', 'Borrower to owner'), ('owner_to_borrower', 'Owner to borrower')], max_length=20, verbose_name='review type')),
                ('is_anonymous', models.BooleanField(default=False, verbose_name='anonymous')),
                ('is_verified', models.BooleanField(default=False, verbose_name='verified')),
                ('moderation_status', models.CharField(choices=[('visible', 'Visible'), ('flagged', 'Flagged'), ('hidden', 'Hidden')], default='visible', max_length=10, verbose_name='moderation status')),
                ('flag_reason', models.CharField(blank=True, default='', max_length=500, verbose_name='flag reason')),
                ('flagged_at', models.DateTimeField(blank=True, null=True, verbose_name='flagged at')),
                ('moderated_at', models.DateTimeField(blank=True, null=True, verbose_name='moderated at')),
                ('response', models.TextField(blank=True, default='', max_length=1000, verbose_name='response')),
                ('response_at', models.DateTimeField(blank=True, null=True, verbose_name='response at')),
                ('helpful_votes', models.PositiveIntegerField(default=0, verbose_name='helpful votes')),
                ('total_votes', models.PositiveIntegerField(default=0, verbose_name='total votes')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('borrow_request', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='core.borrowrequest')),
                ('flagged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('moderated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('resource', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviews', to='core.resource')),
                ('reviewee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
                ('reviewer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_given', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['reviewee', 'moderation_status'], name='review_reviewee_status_idx'),
                    models.Index(fields=['reviewer'], name='review_reviewer_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('reviewer', 'reviewee', 'borrow_request'), name='unique_review_per_request'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReviewVote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('is_helpful', models.BooleanField(verbose_name='helpful')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('review', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='votes', to='core.review')),
                ('voter', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='review_votes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'review vote',
                'verbose_name_plural': 'review votes',
                'constraints': [
                    models.UniqueConstraint(fields=('review', 'voter'), name='unique_vote_per_review'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('borrow_request_created', 'Borrow request created'), ('borrow_request_approved', 'Borrow request approved'), ('borrow_request_rejected', 'Borrow request rejected'), ('borrow_request_cancelled', 'Borrow request cancelled'), ('borrow_request_pickup_ready', 'Borrow request ready for pickup'), ('borrow_request_overdue', 'Borrow request overdue'), ('borrow_request_returned', 'Borrow request returned'), ('review_received', 'Review received'), ('review_response', 'Review response'), ('chat_message', 'Chat message'), ('resource_available', 'Resource available'), ('system_announcement', 'System announcement'), ('account_update', 'Account update'), ('reminder', 'Reminder')], max_length=40, verbose_name='type')),
                ('title', models.CharField(max_length=255, verbose_name='title')),
                ('message', models.TextField(max_length=1000, verbose_name='message')),
                ('priority', models.CharField(choices=[('low', 'Low'), ('normal', 'Normal'), ('high', 'High'), ('urgent', 'Urgent')], default='normal', max_length=10, verbose_name='priority')),
                ('is_read', models.BooleanField(default=False, verbose_name='read')),
                ('read_at', models.DateTimeField(blank=True, null=True, verbose_name='read at')),
                ('action_url', models.CharField(blank=True, default='', max_length=500, verbose_name='action url')),
                ('action_text', models.CharField(blank=True, default='', max_length=100, verbose_name='action text')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='metadata')),
                ('push_sent', models.BooleanField(default=False)),
                ('push_sent_at', models.DateTimeField(blank=True, null=True)),
                ('email_sent', models.BooleanField(default=False)),
                ('email_sent_at', models.DateTimeField(blank=True, null=True)),
                ('sms_sent', models.BooleanField(default=False)),
                ('sms_sent_at', models.DateTimeField(blank=True, null=True)),
                ('is_sent', models.BooleanField(default=False, verbose_name='sent')),
                ('sent_at', models.DateTimeField(blank=True, null=True, verbose_name='sent at')),
                ('scheduled_for', models.DateTimeField(blank=True, null=True, verbose_name='scheduled for')),
                ('expires_at', models.DateTimeField(blank=True, null=True, verbose_name='expires at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('related_borrow_request', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='core.borrowrequest')),
                ('related_chat', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='core.chat')),
                ('related_resource', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='core.resource')),
                ('related_review', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='core.review')),
                ('related_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'notification',
                'verbose_name_plural': 'notifications',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['user', 'is_read'], name='notif_user_read_idx'),
                    models.Index(fields=['user', 'type'], name='notif_user_type_idx'),
                    models.Index(fields=['expires_at'], name='notif_expires_idx'),
                    models.Index(fields=['scheduled_for', 'is_sent'], name='notif_scheduled_idx'),
                ],
            },
        ),
    ]
