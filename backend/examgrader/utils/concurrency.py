"""
Concurrency utilities - semaphores for resource-limited operations.
"""

import asyncio
import weakref

MAX_CONCURRENT_ENCODINGS = 4

# asyncio semaphores bind to the loop they first wait on, so keep one per loop
_encoding_semaphores: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Semaphore]" = \
    weakref.WeakKeyDictionary()


def get_encoding_semaphore() -> asyncio.Semaphore:
    """Limits concurrent document encodings on the running loop to avoid memory spikes."""
    loop = asyncio.get_running_loop()
    semaphore = _encoding_semaphores.get(loop)
    if semaphore is None:
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_ENCODINGS)
        _encoding_semaphores[loop] = semaphore
    return semaphore
