"""Event (performance) listings and management."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from subground.api.client import ApiClient
from subground.api.error_handler import ResponseError

logger = logging.getLogger(__name__)

EVENTS_ENDPOINT = '/events'
MY_EVENTS_ENDPOINT = '/events/my'

STATUS_CLOSED = 0
STATUS_OPEN = 1

STATUS_TEXT = {
    STATUS_CLOSED: "Booking closed",
    STATUS_OPEN: "Booking open",
}

# Performance attribute -> backend column
FIELD_MAP = {
    'name': 'performanceName',
    'artist': 'performanceArtist',
    'venue': 'performanceVenue',
    'date': 'performanceDate',
    'time': 'performanceTime',
    'category': 'performanceCategory',
    'status': 'performanceStatus',
    'price': 'performancePrice',
    'image': 'performanceImage',
    'description': 'performanceDescription',
}


def get_status_text(status: int) -> str:
    """Human-readable booking status (0 closed, 1 open)."""
    return STATUS_TEXT[STATUS_CLOSED] if status == STATUS_CLOSED else STATUS_TEXT[STATUS_OPEN]


@dataclass
class Performance:
    """A performance listing."""
    id: int
    name: str
    artist: str
    venue: str
    date: str
    time: str
    category: str
    status: int
    price: int
    image: Optional[str] = None
    description: str = ""

    @property
    def status_text(self) -> str:
        return get_status_text(self.status)

    @classmethod
    def from_api_row(cls, row: Dict[str, Any]) -> 'Performance':
        """
        Build a Performance from a backend row.

        Args:
            row: Row with 'idx' and 'performance*' columns

        Returns:
            Performance

        Raises:
            ResponseError: If the row is not an object or lacks a column
        """
        if not isinstance(row, dict):
            raise ResponseError(f"Expected an event object, got {type(row).__name__}")

        date = row.get('performanceDate')
        try:
            return cls(
                id=row['idx'],
                name=row['performanceName'],
                artist=row['performanceArtist'],
                venue=row['performanceVenue'],
                date=date if isinstance(date, str) else "",
                time=row['performanceTime'],
                category=row['performanceCategory'],
                status=row['performanceStatus'],
                price=row['performancePrice'],
                image=row.get('performanceImage') or None,
                description=row.get('performanceDescription') or "",
            )
        except KeyError as e:
            raise ResponseError(f"Event row is missing column {e}") from e

    def to_api_row(self) -> Dict[str, Any]:
        """Backend columns for create/update (id excluded)."""
        return {column: getattr(self, attr) for attr, column in FIELD_MAP.items()}


def to_api_fields(changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rename Performance attributes to backend columns.

    Raises:
        ValueError: On an unknown attribute
    """
    unknown = [key for key in changes if key not in FIELD_MAP]
    if unknown:
        raise ValueError(f"Unknown performance fields: {', '.join(sorted(unknown))}")
    return {FIELD_MAP[key]: value for key, value in changes.items()}


class EventsService:
    """CRUD operations on /events. Bodies are plain JSON."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def _rows(self, path: str) -> List[Performance]:
        response = await self.client.get(path)
        rows = response.json()
        if not isinstance(rows, list):
            raise ResponseError(f"Expected a list of events from {path}")
        return [Performance.from_api_row(row) for row in rows]

    async def list_events(self) -> List[Performance]:
        """All published performances."""
        return await self._rows(EVENTS_ENDPOINT)

    async def my_events(self) -> List[Performance]:
        """Performances owned by the logged-in user."""
        return await self._rows(MY_EVENTS_ENDPOINT)

    async def get_event(self, event_id: int) -> Performance:
        response = await self.client.get(f"{EVENTS_ENDPOINT}/{event_id}")
        return Performance.from_api_row(response.json())

    async def create_event(self, performance: Performance) -> Performance:
        response = await self.client.post(EVENTS_ENDPOINT, json=performance.to_api_row())
        created = Performance.from_api_row(response.json())
        logger.info(f"Created event {created.id}: {created.name}")
        return created

    async def update_event(self, event_id: int, changes: Dict[str, Any]) -> Performance:
        """
        Update selected fields of a performance.

        Args:
            event_id: Performance id
            changes: Performance attribute names and new values

        Returns:
            Updated Performance
        """
        response = await self.client.put(
            f"{EVENTS_ENDPOINT}/{event_id}",
            json=to_api_fields(changes),
        )
        return Performance.from_api_row(response.json())

    async def delete_event(self, event_id: int) -> None:
        await self.client.delete(f"{EVENTS_ENDPOINT}/{event_id}")
        logger.info(f"Deleted event {event_id}")
