"""
Known shapes of the ``metadata`` JSON stored on notifications and messages.

Stored metadata is always a dict tagged with a ``kind`` key. Producers build
it through build_metadata so consumers (for example the chat notification
dedup, which increments ``messageCount``) can rely on its keys.
"""

from .exceptions import ValidationFailed


METADATA_SCHEMAS = {
    # Notification for unread chat messages, folded together within the dedup window
    'chat_digest': {'chatId': int, 'senderId': int, 'messageId': int, 'messageCount': int},
    'borrow_request': {'borrowRequestId': int, 'resourceId': int, 'status': str},
    'overdue': {'borrowRequestId': int, 'resourceId': int, 'daysOverdue': int},
    'review': {'reviewId': int, 'rating': int},
    'announcement': {'audience': str},
    # System message inside a chat
    'system_event': {'action': str},
    # Free-form payload supplied by administrators
    'custom': {'data': dict},
}


def build_metadata(kind, **fields):
    """
    Build a tagged metadata dict, checking its required keys and types.

    Raises:
        ValidationFailed: If the kind is unknown or a field is missing or mistyped
    """
    schema = METADATA_SCHEMAS.get(kind)
    if schema is None:
        raise ValidationFailed(f'Unknown metadata kind: {kind}')

    for key, expected in schema.items():
        if key not in fields:
            raise ValidationFailed(f'Metadata of kind {kind} requires {key}')
        value = fields[key]
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ValidationFailed(f'Metadata field {key} must be of type {expected.__name__}')

    return {'kind': kind, **fields}


def parse_metadata(value):
    """
    Return the metadata as a tagged dict.

    Untagged dicts coming from API callers are wrapped as kind 'custom'.
    """
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValidationFailed('Metadata must be an object')
    kind = value.get('kind')
    if kind in METADATA_SCHEMAS:
        fields = {key: item for key, item in value.items() if key != 'kind'}
        return build_metadata(kind, **fields)
    return build_metadata('custom', data=dict(value))


def bump_message_count(metadata, message_id):
    """Fold one more chat message into a chat_digest metadata dict."""
    current = parse_metadata(metadata)
    if current.get('kind') != 'chat_digest':
        raise ValidationFailed('Only chat digest metadata carries a message count')
    return build_metadata(
        'chat_digest',
        chatId=current['chatId'],
        senderId=current['senderId'],
        messageId=message_id,
        messageCount=current['messageCount'] + 1,
    )
