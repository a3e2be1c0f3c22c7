"""Contact resolution with caching and bounded concurrency.

Resolving a participant means two slow session calls: look the contact up
(for its self-declared name) and fetch its profile picture URL. Group chats
can reference dozens of participants at once, so ``resolve_many``:

1. Serves every identifier with a fresh contact-cache entry from the cache.
   Negative results (no name, no photo) are entries too, so a nameless
   contact is looked up at most once per TTL window.
2. Resolves the rest in sequential chunks of ``concurrency`` identifiers.
   Calls inside a chunk run concurrently; the next chunk starts only after
   the whole chunk has settled, which caps the load on the session.
3. Never fails as a whole. A lookup that raises caches ``{None, None}`` for
   that identifier instead of being retried in the same pass.

Usage:
    resolver = ContactResolver(store, caches, concurrency=5)
    infos = await resolver.resolve_many(["5491112345678@c.us"])
    infos["5491112345678@c.us"].displayName
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from chatbridge.cache import MISS, CacheRegistry
from chatbridge.connection.state import SessionStateStore
from chatbridge.identifiers import phone_of
from chatbridge.session import MessagingSession

from .schemas import ContactInfo

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


def _unique(contact_ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(cid for cid in contact_ids if cid))


class ContactResolver:
    """Resolves participant identifiers to ``ContactInfo``.

    Attributes:
        concurrency: Default chunk size for ``resolve_many``.
    """

    def __init__(
        self,
        store: SessionStateStore,
        caches: CacheRegistry,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self._store = store
        self._contacts = caches.contacts
        self._avatars = caches.avatars
        self.concurrency = concurrency

    async def resolve_many(
        self,
        contact_ids: Iterable[str],
        concurrency: Optional[int] = None,
    ) -> Dict[str, ContactInfo]:
        """Resolve every identifier, calling the session only for cache misses.

        Args:
            contact_ids: Identifiers to resolve. Duplicates are ignored.
            concurrency: Chunk size override.

        Returns:
            Mapping covering every requested identifier, in request order.
        """
        ids = _unique(contact_ids)
        results: Dict[str, ContactInfo] = {}
        misses: List[str] = []

        for cid in ids:
            cached = self._contacts.get(cid)
            if cached is MISS:
                misses.append(cid)
            else:
                results[cid] = cached

        session = self._store.session
        if misses and (session is None or not self._store.is_ready):
            for cid in misses:
                results[cid] = ContactInfo()
            misses = []

        if misses:
            bound = max(1, concurrency or self.concurrency)
            logger.info(
                "Batch fetching contact info for %d uncached contacts (concurrency=%d)",
                len(misses), bound,
            )
            for start in range(0, len(misses), bound):
                chunk = misses[start:start + bound]
                settled = await asyncio.gather(
                    *[self._resolve_one(session, cid) for cid in chunk],
                    return_exceptions=True,
                )
                for cid, outcome in zip(chunk, settled):
                    if isinstance(outcome, BaseException):
                        logger.warning("Contact resolution crashed for %s: %s", phone_of(cid), outcome)
                        outcome = ContactInfo()
                        self._contacts.put(cid, outcome)
                    results[cid] = outcome

        return {cid: results[cid] for cid in ids}

    async def resolve(self, contact_id: str) -> ContactInfo:
        return (await self.resolve_many([contact_id]))[contact_id]

    def lookup_cached(
        self,
        contact_ids: Iterable[str],
        phone_fallback: bool = True,
    ) -> Dict[str, ContactInfo]:
        """Cache-only lookup, no session calls.

        Identifiers without a cached name fall back to their phone number
        (or ``None`` when *phone_fallback* is off).
        """
        results: Dict[str, ContactInfo] = {}
        for cid in _unique(contact_ids):
            cached = self._contacts.get(cid)
            if cached is not MISS and cached.displayName:
                results[cid] = cached
                continue
            avatar = self._avatars.get(cid)
            results[cid] = ContactInfo(
                displayName=(phone_of(cid) or None) if phone_fallback else None,
                avatarUrl=None if avatar is MISS else avatar,
            )
        return results

    def remember_name(self, contact_id: str, display_name: str) -> bool:
        """Record a name learned from a live message.

        Only fills the cache when no named entry exists and the avatar is
        already known, so the stored entry is complete.

        Returns:
            True if the cache was updated.
        """
        cached = self._contacts.get(contact_id)
        if cached is not MISS and cached.displayName:
            return False
        avatar = self._avatars.get(contact_id)
        if avatar is MISS:
            return False
        self._contacts.put(contact_id, ContactInfo(displayName=display_name, avatarUrl=avatar))
        return True

    async def avatar_for(self, chat_id: str) -> Optional[str]:
        """Profile picture URL for a chat or contact.

        Served from the avatar cache when fresh. Otherwise fetched and cached,
        failures included (as ``None``). When the session is not ready the
        last known value is returned, even if stale.
        """
        cached = self._avatars.get(chat_id)
        if cached is not MISS:
            return cached

        session = self._store.session
        if session is None or not self._store.is_ready:
            stale = self._avatars.peek(chat_id)
            return None if stale is MISS else stale

        try:
            url = await session.get_profile_pic_url(chat_id) or None
        except Exception as exc:
            logger.info("Profile pic error for %s: %s", phone_of(chat_id), exc)
            url = None
        self._avatars.put(chat_id, url)
        return url

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _resolve_one(self, session: MessagingSession, contact_id: str) -> ContactInfo:
        try:
            contact = await session.get_contact_by_id(contact_id)
        except Exception as exc:
            logger.debug("Contact lookup failed for %s: %s", phone_of(contact_id), exc)
            info = ContactInfo()
            self._contacts.put(contact_id, info)
            return info

        # pushname is what the user set for themselves; available for non-contacts
        name = contact.pushname or contact.name or contact.short_name or None
        avatar = await self._avatar(session, contact_id)

        info = ContactInfo(displayName=name, avatarUrl=avatar)
        self._contacts.put(contact_id, info)
        if name:
            logger.debug("Contact %s: pushname=%r", phone_of(contact_id), name)
        return info

    async def _avatar(self, session: MessagingSession, contact_id: str) -> Optional[str]:
        cached = self._avatars.get(contact_id)
        if cached is not MISS:
            return cached
        try:
            url = await session.get_profile_pic_url(contact_id) or None
        except Exception as exc:
            stale = self._avatars.peek(contact_id)
            url = None if stale is MISS else stale
            logger.debug(
                "Avatar fetch failed for %s (%s); using %s",
                phone_of(contact_id), exc, "stale value" if url else "null",
            )
        self._avatars.put(contact_id, url)
        return url
