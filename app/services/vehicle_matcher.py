"""
Vehicle capacity matching for candidate transport groups
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from app.core.exceptions import NoVehicleAvailable
from app.services.grouping_service import CandidateGroup, GroupMember

logger = logging.getLogger(__name__)


@dataclass
class PlannedGroup:
    """A slice of a candidate group and the vehicle chosen for it"""
    members: List[GroupMember]
    vehicle: Optional[Any]
    needs_split: bool = False

    @property
    def total_guests(self) -> int:
        return sum(m.seat_demand for m in self.members)


def best_fit(required_seats: int, pool: List[Any]) -> Optional[Any]:
    """Smallest vehicle whose capacity covers the seats, lowest id on ties"""
    fitting = [v for v in pool if v.capacity >= required_seats]
    if not fitting:
        return None
    return min(fitting, key=lambda v: (v.capacity, v.id))


def match_vehicle(required_seats: int, pool: List[Any]) -> Optional[Any]:
    """Best-fit vehicle, or None when no single vehicle is large enough.

    Raises NoVehicleAvailable when the pool is empty.
    """
    if not pool:
        raise NoVehicleAvailable(
            f"No vehicle available for {required_seats} seats",
            context={"required_seats": required_seats},
        )
    return best_fit(required_seats, pool)


def _largest(pool: List[Any]) -> Any:
    return max(pool, key=lambda v: (v.capacity, -v.id))


def plan_group(candidate: CandidateGroup, pool: List[Any]) -> List[PlannedGroup]:
    """Assign vehicles from ``pool`` to a candidate group.

    Vehicles that get used are removed from ``pool``. When no single vehicle
    fits, the largest one is filled with whole parties in arrival order and
    the remainder is matched again. Parties left without a vehicle end up in
    a plan whose vehicle is None.
    """
    remaining = list(candidate.members)
    plans: List[PlannedGroup] = []

    while remaining:
        required = sum(m.seat_demand for m in remaining)
        try:
            vehicle = match_vehicle(required, pool)
        except NoVehicleAvailable as e:
            logger.warning(f"{e.message} (window starting {candidate.window_start.isoformat()})")
            plans.append(PlannedGroup(members=remaining, vehicle=None))
            break

        if vehicle is not None:
            pool.remove(vehicle)
            plans.append(PlannedGroup(members=remaining, vehicle=vehicle))
            break

        largest = _largest(pool)
        free = largest.capacity
        seated, leftover = [], []
        for member in remaining:
            if member.seat_demand <= free:
                seated.append(member)
                free -= member.seat_demand
            else:
                leftover.append(member)

        if not seated:
            logger.warning(
                f"Parties of {[m.seat_demand for m in remaining]} seats exceed the largest "
                f"vehicle ({largest.capacity} seats)"
            )
            plans.append(PlannedGroup(members=remaining, vehicle=None))
            break

        pool.remove(largest)
        plans.append(PlannedGroup(members=seated, vehicle=largest))
        remaining = leftover

    if len(plans) > 1:
        for plan in plans:
            plan.needs_split = True

    return plans
