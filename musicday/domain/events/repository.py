"""Event repository - Record store operations for events and bookings"""

from typing import Any, Optional

from ...models import Event, SchoolBooking, Tables
from ...record_store import RecordStore


class EventRepository:
    """Repository for event and school booking records"""

    @staticmethod
    def get_by_event_id(store: RecordStore, event_id: str) -> Optional[Event]:
        record = store.first(Tables.EVENTS, filter_by={"event_id": event_id})
        return Event.from_record(record) if record else None

    @staticmethod
    def get_by_record_id(store: RecordStore, record_id: str) -> Optional[Event]:
        record = store.find(Tables.EVENTS, record_id)
        return Event.from_record(record) if record else None

    @staticmethod
    def get_by_legacy_booking_id(store: RecordStore, legacy_id: str) -> Optional[Event]:
        record = store.first(Tables.EVENTS, filter_by={"legacy_booking_id": legacy_id})
        return Event.from_record(record) if record else None

    @staticmethod
    def get_booking_by_simplybook_id(store: RecordStore, simplybook_id: str) -> Optional[SchoolBooking]:
        record = store.first(Tables.SCHOOL_BOOKINGS, filter_by={"simplybook_id": simplybook_id})
        return SchoolBooking.from_record(record) if record else None

    @staticmethod
    def get_booking_by_access_code(store: RecordStore, access_code: str) -> Optional[SchoolBooking]:
        record = store.first(Tables.SCHOOL_BOOKINGS, filter_by={"access_code": access_code})
        return SchoolBooking.from_record(record) if record else None

    @staticmethod
    def get_booking(store: RecordStore, record_id: str) -> Optional[SchoolBooking]:
        record = store.find(Tables.SCHOOL_BOOKINGS, record_id)
        return SchoolBooking.from_record(record) if record else None

    @staticmethod
    def get_event_for_booking(store: RecordStore, booking: SchoolBooking) -> Optional[Event]:
        """The Event linked to a booking, from either side of the link"""
        for record_id in booking.events:
            record = store.find(Tables.EVENTS, record_id)
            if record:
                return Event.from_record(record)
        record = store.first(Tables.EVENTS, linked={"school_booking": booking.record_id})
        return Event.from_record(record) if record else None

    @staticmethod
    def list_events(store: RecordStore, **filter_by: Any) -> list[Event]:
        rows = store.select(Tables.EVENTS, filter_by=filter_by or None)
        return [Event.from_record(r) for r in rows]

    @staticmethod
    def create_event(store: RecordStore, fields: dict[str, Any]) -> Event:
        return Event.from_record(store.create(Tables.EVENTS, fields))

    @staticmethod
    def update_event(store: RecordStore, event: Event, **updates: Any) -> Event:
        """Write the given fields; None clears a field"""
        record = store.update(Tables.EVENTS, event.record_id, updates)
        return Event.from_record(record)
