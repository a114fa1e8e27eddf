import os
import sys
import django
import random
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'borrowbase.settings')
django.setup()

from core.models import (
    User, Resource, BorrowRequest, Chat, Message, Review, Notification
)

fake = Faker()

# Rough bounding box for generated neighbours
CENTER_LAT = 40.7128
CENTER_LNG = -74.0060

RESOURCE_TITLES = {
    'Tools': ["Cordless Drill", "Ladder", "Socket Set", "Circular Saw", "Stud Finder"],
    'Electronics': ["Projector", "Bluetooth Speaker", "Camera Tripod", "Extension Reel"],
    'Books': ["Cookbook Collection", "Travel Guide", "Chemistry Textbook"],
    'Garden & Outdoor': ["Lawn Mower", "Hedge Trimmer", "Camping Tent", "Wheelbarrow"],
    'Kitchen & Appliances': ["Stand Mixer", "Pressure Cooker", "Waffle Iron"],
    'Sports & Recreation': ["Kayak", "Tennis Rackets", "Bike Rack"],
}


def create_users(num_users=25):
    print(f"Creating {num_users} users...")
    users = []

    for _ in range(num_users):
        email = fake.unique.email()
        username = email.split('@')[0]
        user = User.objects.create_user(
            username=username,
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            address=fake.street_address(),
            neighborhood=fake.city(),
            postal_code=fake.postcode()[:20],
            latitude=Decimal(str(round(CENTER_LAT + random.uniform(-0.1, 0.1), 6))),
            longitude=Decimal(str(round(CENTER_LNG + random.uniform(-0.1, 0.1), 6))),
            bio=fake.sentence(),
            is_email_verified=random.choice([True, False]),
        )
        users.append(user)

    print(f"Created {len(users)} users.")
    return users


def create_resources(users):
    print("Creating resources...")
    resources = []

    for user in users:
        # Each user lists 0-3 items
        num_items = random.randint(0, 3)
        for _ in range(num_items):
            category = random.choice(list(RESOURCE_TITLES))
            resource = Resource.objects.create(
                owner=user,
                title=random.choice(RESOURCE_TITLES[category]),
                description=fake.paragraph(nb_sentences=3),
                category=category,
                condition=random.choice(['excellent', 'good', 'fair']),
                estimated_value=Decimal(random.uniform(10.0, 500.0)).quantize(Decimal('0.01')),
                max_borrow_days=random.choice([3, 7, 14]),
                deposit_required=random.choice([None, Decimal('20.00'), Decimal('50.00')]),
                pickup_instructions=fake.sentence(),
            )
            resources.append(resource)
        if num_items:
            User.objects.filter(pk=user.pk).update(items_shared=num_items)

    print(f"Created {len(resources)} resources.")
    return resources


def create_borrow_requests(users, resources):
    print("Creating borrow requests...")
    requests = []
    today = timezone.localdate()

    for resource in resources:
        # Past cycles are returned or completed; one future request may be pending
        borrowers = [u for u in users if u.id != resource.owner_id]
        for offset in (-40, -20):
            if random.random() < 0.5:
                continue
            start = today + timedelta(days=offset)
            status = random.choice(['returned', 'completed'])
            borrow_request = BorrowRequest.objects.create(
                resource=resource,
                requester=random.choice(borrowers),
                start_date=start,
                end_date=start + timedelta(days=random.randint(1, resource.max_borrow_days)),
                message=fake.sentence(),
                status=status,
                responded_at=timezone.now() + timedelta(days=offset - 1),
                picked_up_at=timezone.now() + timedelta(days=offset),
                returned_at=timezone.now() + timedelta(days=offset + 3),
                completed_at=timezone.now() + timedelta(days=offset + 3) if status == 'completed' else None,
            )
            requests.append(borrow_request)

        if random.random() < 0.4:
            start = today + timedelta(days=random.randint(3, 20))
            requests.append(BorrowRequest.objects.create(
                resource=resource,
                requester=random.choice(borrowers),
                start_date=start,
                end_date=start + timedelta(days=1),
                message=fake.sentence(),
            ))

    print(f"Created {len(requests)} borrow requests.")
    return requests


def create_reviews(requests):
    print("Creating reviews...")
    reviews = []

    for borrow_request in requests:
        if borrow_request.status not in BorrowRequest.REVIEWABLE_STATUSES:
            continue
        # 70% chance of leaving a review
        if random.random() < 0.7:
            review = Review.objects.create(
                reviewer=borrow_request.requester,
                reviewee=borrow_request.resource.owner,
                borrow_request=borrow_request,
                resource=borrow_request.resource,
                review_type='borrower_to_owner',
                rating=random.randint(3, 5),
                communication_rating=random.randint(3, 5),
                item_condition_rating=random.randint(3, 5),
                comment=fake.paragraph(),
                is_verified=True,
            )
            reviews.append(review)

    print(f"Created {len(reviews)} reviews.")
    return reviews


def create_chats(requests):
    print("Creating chats...")
    chats = []

    for borrow_request in random.sample(requests, min(len(requests), 15)):
        user1_id, user2_id = sorted([borrow_request.requester_id, borrow_request.resource.owner_id])
        chat, created = Chat.objects.get_or_create(
            user1_id=user1_id,
            user2_id=user2_id,
            defaults={'resource': borrow_request.resource, 'subject': borrow_request.resource.title},
        )
        if not created:
            continue

        for sender_id in random.choices([user1_id, user2_id], k=random.randint(1, 5)):
            Message.objects.create(chat=chat, sender_id=sender_id, content=fake.sentence(), is_read=True)

        last = chat.messages.order_by('-created_at', '-id').first()
        Chat.objects.filter(pk=chat.pk).update(
            last_message=last.content,
            last_message_at=last.created_at,
            last_message_sender_id=last.sender_id,
        )
        chats.append(chat)

    print(f"Created {len(chats)} chats.")
    return chats


def create_notifications(users):
    print("Creating notifications...")
    notifications = [
        Notification(
            user=user,
            type='system_announcement',
            title='Welcome to BorrowBase',
            message='Share what you have and borrow what you need from your neighbours.',
            expires_at=timezone.now() + timedelta(days=30),
        )
        for user in users
    ]
    Notification.objects.bulk_create(notifications)
    print(f"Created {len(notifications)} notifications.")


def main():
    print("Starting database population...")

    users = create_users(num_users=25)
    resources = create_resources(users)
    requests = create_borrow_requests(users, resources)
    create_reviews(requests)
    create_chats(requests)
    create_notifications(users)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
