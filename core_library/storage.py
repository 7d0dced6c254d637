"""
Record Storage Module

Generic in-memory container for one homogeneous record kind. Records live
in an arena keyed by synthetic integer handles, so a handle stays valid
until the record is erased and is never reused afterwards.
"""

import copy
from typing import Callable, Dict, Generic, Iterator, List, Optional, Tuple, Type, TypeVar


T = TypeVar("T")

Handle = int


class RecordStore(Generic[T]):
    """
    Insertion-ordered store for one record kind

    append and erase are O(1); find and match_first are linear scans,
    which is fine for the hundreds of records a library file holds.
    Uniqueness is the caller's job: nothing here rejects duplicates.
    """

    def __init__(self, record_type: Type[T]):
        self.record_type = record_type
        self._slots: Dict[Handle, T] = {}
        self._next_handle: Handle = 1

    def append(self, value: Optional[T] = None) -> Handle:
        """Copy value (or a zero-initialised record) to the tail and return its handle.

        The stored record is a copy; reach the live one through ``store[handle]``.
        """
        record = copy.copy(value) if value is not None else self.record_type()
        handle = self._next_handle
        self._next_handle += 1
        self._slots[handle] = record
        return handle

    def get(self, handle: Handle) -> T:
        """Get the live record for a handle; KeyError if it was erased"""
        return self._slots[handle]

    def __getitem__(self, handle: Handle) -> T:
        return self._slots[handle]

    def __contains__(self, handle: object) -> bool:
        return handle in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._slots.values()))

    def items(self) -> List[Tuple[Handle, T]]:
        """Snapshot of (handle, record) pairs in insertion order"""
        return list(self._slots.items())

    def find(self, target: T) -> Optional[Handle]:
        """Handle of the first record equal to target in every field"""
        for handle, record in self._slots.items():
            if record == target:
                return handle
        return None

    def match_first(self, predicate: Callable[[T], bool]) -> Optional[Handle]:
        """Handle of the first record satisfying predicate"""
        for handle, record in self._slots.items():
            if predicate(record):
                return handle
        return None

    def match_all(self, predicate: Callable[[T], bool]) -> List[Handle]:
        """Handles of every record satisfying predicate, in order"""
        return [handle for handle, record in self._slots.items() if predicate(record)]

    def erase(self, handle: Handle) -> bool:
        """Unlink exactly this record; False if the handle is not a member"""
        if handle not in self._slots:
            return False
        del self._slots[handle]
        return True

    def clear(self) -> None:
        """Drop every record (handles are not reused)"""
        self._slots.clear()
