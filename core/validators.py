"""
Custom validators for user profiles and resource listings.
"""

import re
from django.core.exceptions import ValidationError


WEEKDAYS = [
    'monday',
    'tuesday',
    'wednesday',
    'thursday',
    'friday',
    'saturday',
    'sunday',
]


def validate_phone_number(value):
    """
    Validate phone number format.

    Accepts international formats with optional country codes, spaces, dashes, and parentheses.
    Requires at least 10 digits.

    Valid formats:
    - +1-234-567-8900
    - +44 20 7946 0958
    - 234-567-8900

    Args:
        value: Phone number string to validate

    Raises:
        ValidationError: If phone number format is invalid
    """
    if not value:
        return

    if not re.match(r'^[\d\s\-\+\(\)]+$', value):
        raise ValidationError(
            'Phone number can only contain digits, spaces, dashes, parentheses, and plus sign.',
            code='invalid_phone_chars'
        )

    digits = re.sub(r'\D', '', value)

    if len(digits) < 10:
        raise ValidationError(
            'Phone number must contain at least 10 digits.',
            code='phone_too_short'
        )

    if len(set(digits)) == 1:
        raise ValidationError(
            'Phone number cannot be all the same digit.',
            code='invalid_phone_pattern'
        )


def _validate_image_file(image, max_mb):
    max_size = max_mb * 1024 * 1024
    if image.size > max_size:
        raise ValidationError(
            f'Image file size cannot exceed {max_mb}MB. Current size: {image.size / (1024 * 1024):.2f}MB',
            code='image_too_large'
        )

    valid_extensions = ['jpg', 'jpeg', 'png', 'webp']
    file_name = image.name.lower()

    if not any(file_name.endswith(f'.{ext}') for ext in valid_extensions):
        raise ValidationError(
            f'Invalid image format. Allowed formats: {", ".join(valid_extensions)}',
            code='invalid_image_format'
        )

    valid_content_types = [
        'image/jpeg',
        'image/png',
        'image/webp'
    ]

    content_type = getattr(image, 'content_type', None)
    if content_type and content_type not in valid_content_types:
        raise ValidationError(
            f'Invalid image content type: {content_type}',
            code='invalid_content_type'
        )


def validate_profile_image(image):
    """
    Validate profile image file.

    Checks:
    - File size (max 5MB)
    - File format (jpg, jpeg, png, webp)

    Args:
        image: UploadedFile object

    Raises:
        ValidationError: If image is invalid
    """
    if not image:
        return
    _validate_image_file(image, max_mb=5)


def validate_resource_photo(image):
    """
    Validate a resource photo upload (max 10MB, jpg/png/webp).

    Raises:
        ValidationError: If image is invalid
    """
    if not image:
        return

    if len(image.name) > 255:
        raise ValidationError('Filename is too long.', code='filename_too_long')

    _validate_image_file(image, max_mb=10)


def validate_available_days(value):
    """
    Validate the list of weekdays a resource can be picked up on.

    An empty list means no restriction. Otherwise 1-7 distinct weekday names.

    Raises:
        ValidationError: If value is not a list of weekday names
    """
    if value in (None, []):
        return

    if not isinstance(value, list):
        raise ValidationError('Available days must be a list.', code='invalid_days_type')

    if len(value) > 7:
        raise ValidationError('Available days can contain at most 7 entries.', code='too_many_days')

    normalized = [str(day).strip().lower() for day in value]
    invalid = [day for day in normalized if day not in WEEKDAYS]
    if invalid:
        raise ValidationError(
            f'Invalid weekday(s): {", ".join(invalid)}',
            code='invalid_weekday'
        )

    if len(set(normalized)) != len(normalized):
        raise ValidationError('Available days must not repeat.', code='duplicate_days')
