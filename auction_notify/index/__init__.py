from auction_notify.index.auctiondb import AuctionDB, IndexKind, MutationResult
from auction_notify.index.store import Batch, IndexStore, StoreError

__all__ = [
    "AuctionDB",
    "Batch",
    "IndexKind",
    "IndexStore",
    "MutationResult",
    "StoreError",
]
