# =============================================================================
# File: msk_sync/domain/enums.py
# Description: Enumerations for change classification and event topics
# =============================================================================

from enum import Enum


class ChangeKind(str, Enum):
    """Classification of a candidate record against its latest stored version"""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class TopicKind(str, Enum):
    """Event kind encoded by the topic a record is published on"""

    NEW = "new"
    UPDATED = "updated"
