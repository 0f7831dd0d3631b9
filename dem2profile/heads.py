import logging
from typing import Hashable, List, Optional

import numpy as np

from .segments import SegmentStore

logger = logging.getLogger(__name__)


def select_heads(store: SegmentStore,
                 limit: Optional[int] = None,
                 seed: Optional[int] = None) -> List[Hashable]:
    """
    Choose the head segments whose rivers will be extracted.

    Arguments:
        store (SegmentStore): Segment store; classified on demand.
        limit (int, optional): Number of rivers requested. None returns every head.
        seed (int, optional): Seed for the random draw, for reproducible runs.

    Returns:
        List: Head identifiers. Without a limit they are in sorted order; with a
        limit they are a uniform sample without replacement of size
        ``min(limit, n_heads)`` in draw order.
    """
    heads = store.heads()

    if limit is None:
        return heads

    if limit != int(limit):
        raise ValueError(f"Number of rivers must be a whole number, got {limit}")
    limit = int(limit)
    if limit < 0:
        raise ValueError(f"Number of rivers must be non-negative, got {limit}")

    n_select = min(limit, len(heads))
    if limit > len(heads):
        logger.info("Requested %d rivers but only %d heads are available; extracting %d",
                    limit, len(heads), n_select)

    rng = np.random.default_rng(seed)
    picks = rng.choice(len(heads), size=n_select, replace=False)
    return [heads[i] for i in picks]
