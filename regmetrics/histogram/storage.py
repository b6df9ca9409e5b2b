import threading
from typing import Dict, Hashable, Iterator, List, Optional, Tuple

import numpy as np


class WorkerSlotStorage:
    """Private joint-histogram slots, one per concurrent worker.

    With `number_of_workers` the slots are addressed by worker index (fixed
    thread pool). Without it, slots are keyed by an opaque handle, by default
    the identity of the calling thread (elastic task scheduler). Every slot is
    written by a single worker only, so no locking is done here. Slots are
    zero-filled on first touch and dropped by `release()`.
    """

    def __init__(self, shape: Tuple[int, int], number_of_workers: Optional[int] = None) -> None:
        self.shape = shape
        self._indexed: Optional[List[Optional[np.ndarray]]] = None
        self._keyed: Dict[Hashable, np.ndarray] = {}
        if number_of_workers is not None:
            self._indexed = [None] * number_of_workers

    def local(self, key: Optional[Hashable] = None) -> np.ndarray:
        if self._indexed is not None:
            assert isinstance(key, int)
            slot = self._indexed[key]
            if slot is None:
                slot = self._indexed[key] = np.zeros(self.shape, dtype=np.int64)
            return slot

        if key is None:
            key = threading.get_ident()
        slot = self._keyed.get(key)
        if slot is None:
            # keys are distinct per worker, so no other thread inserts this one
            slot = self._keyed.setdefault(key, np.zeros(self.shape, dtype=np.int64))
        return slot

    def __iter__(self) -> Iterator[np.ndarray]:
        if self._indexed is not None:
            return iter([slot for slot in self._indexed if slot is not None])
        return iter(list(self._keyed.values()))

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def release(self) -> None:
        if self._indexed is not None:
            self._indexed = [None] * len(self._indexed)
        self._keyed.clear()
