"""
Collapse repeated sightings of the same machine into one canonical reference.
"""

from typing import Dict, Iterator, Tuple, Optional
from schemas.upstream import RelatedMachine

MachineKey = Tuple[int, str, Optional[str], Optional[str], Optional[str]]


def machine_key(machine: RelatedMachine) -> MachineKey:
    """Structural equality key: two references are the same machine iff these fields match"""
    return (machine.id, machine.name, machine.os, machine.difficulty, machine.logo)


class MachineDeduplicator:
    """
    Insertion-ordered set of machine references keyed by machine_key().

    Each distinct reference is yielded exactly once, however many modules
    pointed at it.
    """

    def __init__(self):
        self._machines: Dict[MachineKey, RelatedMachine] = {}
        self.sightings = 0

    def add(self, machine: RelatedMachine) -> bool:
        """Record a sighting. Returns True if the machine was new."""
        self.sightings += 1
        key = machine_key(machine)
        if key in self._machines:
            return False
        self._machines[key] = machine
        return True

    def __contains__(self, machine: RelatedMachine) -> bool:
        return machine_key(machine) in self._machines

    def __iter__(self) -> Iterator[RelatedMachine]:
        return iter(list(self._machines.values()))

    def __len__(self) -> int:
        return len(self._machines)
