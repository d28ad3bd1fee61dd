"""
Arrival grouping engine

Clusters travel records into time windows that can share one pickup.
A window is anchored at the earliest unclaimed moment and spans
``buffer_minutes``; every record whose moment falls inside it joins.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from app.core.exceptions import UngroupableRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupMember:
    """One guest party waiting on a pickup"""
    guest_id: int
    travel_record_id: Optional[int]
    moment: datetime
    seat_demand: int
    location: Optional[str] = None
    includes_plus_one: bool = False
    children_count: int = 0


@dataclass
class CandidateGroup:
    direction: str
    window_start: datetime
    window_end: datetime
    pickup_time: datetime
    location: Optional[str]
    members: List[GroupMember] = field(default_factory=list)

    @property
    def total_guests(self) -> int:
        return sum(m.seat_demand for m in self.members)

    @property
    def guest_ids(self) -> List[int]:
        return [m.guest_id for m in self.members]


@dataclass
class GroupingResult:
    groups: List[CandidateGroup]
    ungroupable_record_ids: List[int]
    considered_count: int

    @property
    def ungroupable_count(self) -> int:
        return len(self.ungroupable_record_ids)


def is_eligible(record) -> bool:
    """Only records that asked for transport and are still travelling"""
    return bool(record.needs_transportation) and record.status != "cancelled"


def member_from_record(record, direction: str = "arrival") -> GroupMember:
    """Build a group member from a travel record and its guest"""
    if direction == "departure":
        moment = record.scheduled_departure
        location = record.departure_location
    else:
        moment = record.effective_arrival if record.scheduled_arrival is not None else None
        location = record.arrival_location

    if moment is None:
        raise UngroupableRecord(
            f"Travel record {record.id} for guest {record.guest_id} has no scheduled {direction}",
            context={"travel_record_id": record.id, "guest_id": record.guest_id},
        )

    guest = record.guest
    plus_one = bool(guest.plus_one_confirmed) if guest is not None else False
    children = (guest.children_count or 0) if guest is not None else 0

    return GroupMember(
        guest_id=record.guest_id,
        travel_record_id=record.id,
        moment=moment,
        seat_demand=1 + (1 if plus_one else 0) + children,
        location=location,
        includes_plus_one=plus_one,
        children_count=children,
    )


def cluster_members(
    members: Iterable[GroupMember],
    buffer_minutes: int,
    direction: str = "arrival",
) -> List[CandidateGroup]:
    """Single pass over members sorted by (moment, guest id)"""
    buffer = timedelta(minutes=buffer_minutes)
    ordered = sorted(members, key=lambda m: (m.moment, m.guest_id))

    groups: List[CandidateGroup] = []
    current: Optional[CandidateGroup] = None

    for member in ordered:
        if current is not None and member.moment <= current.window_end:
            current.members.append(member)
            continue

        window_start = member.moment
        # Departures are picked up one buffer ahead of the earliest flight
        pickup_time = window_start - buffer if direction == "departure" else window_start
        current = CandidateGroup(
            direction=direction,
            window_start=window_start,
            window_end=window_start + buffer,
            pickup_time=pickup_time,
            location=member.location,
            members=[member],
        )
        groups.append(current)

    return groups


def _location_key(location: Optional[str]) -> str:
    return (location or "").strip().lower()


def group_records(
    records: Iterable,
    buffer_minutes: int,
    direction: str = "arrival",
    partition_by_location: bool = False,
) -> GroupingResult:
    """Group eligible travel records into candidate transport groups.

    Records without a timestamp for the direction are reported in
    ``ungroupable_record_ids`` instead of failing the pass.
    """
    members: List[GroupMember] = []
    ungroupable: List[int] = []
    considered = 0

    for record in records:
        if not is_eligible(record):
            continue
        considered += 1
        try:
            members.append(member_from_record(record, direction))
        except UngroupableRecord as e:
            logger.info(e.message)
            ungroupable.append(record.id)

    if partition_by_location:
        partitions: Dict[str, List[GroupMember]] = {}
        for member in members:
            partitions.setdefault(_location_key(member.location), []).append(member)
        groups = []
        for partition in partitions.values():
            groups.extend(cluster_members(partition, buffer_minutes, direction))
        groups.sort(key=lambda g: (g.window_start, g.members[0].guest_id))
    else:
        groups = cluster_members(members, buffer_minutes, direction)

    return GroupingResult(groups=groups, ungroupable_record_ids=ungroupable, considered_count=considered)
