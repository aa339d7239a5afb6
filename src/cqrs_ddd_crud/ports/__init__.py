from .adapter import IStorageAdapter
from .codec import IdentityCodec, IIdCodec
from .publisher import ICachePublisher
from .transport import IActionCaller

__all__ = [
    "IActionCaller",
    "ICachePublisher",
    "IIdCodec",
    "IStorageAdapter",
    "IdentityCodec",
]
