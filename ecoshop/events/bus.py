"""
Bus d'événements sur Redis Streams.

- publish(name, data): XADD sur le flux events:<name>
- un groupe de consommateurs par abonné: chaque abonné reçoit chaque événement
  une fois et acquitte indépendamment des autres
- échec d'un abonné: pas d'ACK, compteur de tentatives incrémenté, relivré au poll
  suivant; les entrées restées en attente chez un consommateur disparu sont reprises
  (XAUTOCLAIM) après claim_idle_ms; au-delà de max_attempts l'entrée part dans events:dead-letter
- idempotence: marqueur events:done:<abonné>:<event_id> posé après succès
- tâches planifiées: verrou SET NX EX <intervalle>, un seul worker par intervalle
"""
import asyncio
import json
import logging
import socket
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import sentry_sdk
from redis.exceptions import RedisError, ResponseError

from ecoshop.config import EVENTS_BATCH_SIZE, EVENTS_CLAIM_IDLE_MS, EVENTS_MAX_ATTEMPTS, EVENTS_POLL_BLOCK_MS

logger = logging.getLogger(__name__)

DEAD_LETTER_STREAM = "events:dead-letter"
STREAM_MAXLEN = 10000
DONE_TTL_SECONDS = 7 * 24 * 3600
SCHEDULE_RETRY_SECONDS = 60


def stream_key(event_name: str) -> str:
    return f"events:{event_name}"


@dataclass(frozen=True)
class Event:
    id: str
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    published_at: Optional[str] = None


Handler = Callable[[Event], Awaitable[Any]]
JobHandler = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class Subscriber:
    name: str
    event: str
    handler: Handler


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    every_seconds: int
    handler: JobHandler


class EventBus:
    def __init__(
        self,
        redis,
        *,
        max_attempts: int = EVENTS_MAX_ATTEMPTS,
        batch_size: int = EVENTS_BATCH_SIZE,
        poll_interval_ms: int = EVENTS_POLL_BLOCK_MS,
        claim_idle_ms: int = EVENTS_CLAIM_IDLE_MS,
        consumer: Optional[str] = None,
    ):
        self.redis = redis
        self.max_attempts = max_attempts
        self.batch_size = batch_size
        self.poll_interval_ms = poll_interval_ms
        self.claim_idle_ms = claim_idle_ms
        # Nom stable: les entrées en attente d'un consommateur sont relues par lui après redémarrage
        self.consumer = consumer or socket.gethostname()
        self.subscribers: List[Subscriber] = []
        self.jobs: List[ScheduledJob] = []
        self._groups_ready = False

    # --- enregistrement ---
    def subscribe(self, name: str, event: str, handler: Handler) -> None:
        if any(s.name == name for s in self.subscribers):
            raise ValueError(f"Abonné déjà enregistré: {name}")
        self.subscribers.append(Subscriber(name=name, event=event, handler=handler))
        self._groups_ready = False

    def schedule(self, name: str, every_seconds: int, handler: JobHandler) -> None:
        self.jobs.append(ScheduledJob(name=name, every_seconds=every_seconds, handler=handler))

    # --- publication ---
    async def publish(self, name: str, data: Dict[str, Any], event_id: Optional[str] = None) -> str:
        """
        Publie un événement.
        - event_id fourni: publication dédupliquée (un second publish avec le même id est ignoré).
        Retour: l'id de l'événement.
        """
        event_id = event_id or uuid.uuid4().hex
        published_key = f"events:published:{event_id}"
        if not await self.redis.set(published_key, "1", nx=True, ex=DONE_TTL_SECONDS):
            logger.info("events.publish duplicate name=%s event_id=%s", name, event_id)
            return event_id
        try:
            await self.redis.xadd(
                stream_key(name),
                {
                    "id": event_id,
                    "name": name,
                    "data": json.dumps(data, default=str),
                    "published_at": datetime.now(timezone.utc).isoformat(),
                },
                maxlen=STREAM_MAXLEN,
                approximate=True,
            )
        except Exception:
            # Publication ratée: le prochain essai doit pouvoir republier
            await self.redis.delete(published_key)
            raise
        logger.info("events.publish name=%s event_id=%s", name, event_id)
        return event_id

    # --- consommation ---
    async def ensure_groups(self) -> None:
        if self._groups_ready:
            return
        for sub in self.subscribers:
            try:
                await self.redis.xgroup_create(stream_key(sub.event), sub.name, id="0", mkstream=True)
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise
        self._groups_ready = True

    async def _read(self, sub: Subscriber, start: str) -> List[Any]:
        res = await self.redis.xreadgroup(
            sub.name, self.consumer, {stream_key(sub.event): start}, count=self.batch_size,
        )
        entries: List[Any] = []
        for _stream, items in res or []:
            entries.extend(items or [])
        return entries

    async def _dead_letter(self, sub: Subscriber, entry_id: str, fields: Dict[str, Any], error: str) -> None:
        await self.redis.xadd(DEAD_LETTER_STREAM, {
            "subscriber": sub.name,
            "event": sub.event,
            "entry_id": entry_id,
            "id": fields.get("id", ""),
            "data": fields.get("data", ""),
            "error": error,
        })
        logger.error("events.dead_letter subscriber=%s event_id=%s error=%s", sub.name, fields.get("id"), error)

    async def _handle(self, sub: Subscriber, entry_id: str, fields: Optional[Dict[str, Any]]) -> bool:
        stream = stream_key(sub.event)
        attempts_key = f"events:attempts:{sub.name}"
        if not fields:
            # Entrée purgée du flux (MAXLEN) alors qu'elle était en attente
            await self.redis.xack(stream, sub.name, entry_id)
            return False

        event_id = fields.get("id") or entry_id
        done_key = f"events:done:{sub.name}:{event_id}"
        if await self.redis.exists(done_key):
            await self.redis.xack(stream, sub.name, entry_id)
            await self.redis.hdel(attempts_key, entry_id)
            return False

        try:
            data = json.loads(fields.get("data") or "{}")
        except ValueError as e:
            # Illisible: aucun nouvel essai ne peut réussir
            await self._dead_letter(sub, entry_id, fields, f"payload illisible: {e}")
            await self.redis.xack(stream, sub.name, entry_id)
            await self.redis.hdel(attempts_key, entry_id)
            return False

        event = Event(
            id=event_id,
            name=fields.get("name") or sub.event,
            data=data,
            published_at=fields.get("published_at"),
        )
        try:
            await sub.handler(event)
        except Exception as e:
            attempts = await self.redis.hincrby(attempts_key, entry_id, 1)
            logger.exception("events.handler_failed subscriber=%s event_id=%s attempt=%s", sub.name, event_id, attempts)
            sentry_sdk.capture_exception(e)
            if attempts >= self.max_attempts:
                await self._dead_letter(sub, entry_id, fields, repr(e))
                await self.redis.xack(stream, sub.name, entry_id)
                await self.redis.hdel(attempts_key, entry_id)
            return False

        await self.redis.set(done_key, "1", ex=DONE_TTL_SECONDS)
        await self.redis.xack(stream, sub.name, entry_id)
        await self.redis.hdel(attempts_key, entry_id)
        logger.info("events.handled subscriber=%s event_id=%s", sub.name, event_id)
        return True

    async def _claim_stale(self, sub: Subscriber) -> None:
        # Entrées en attente depuis claim_idle_ms chez un autre consommateur (worker remplacé):
        # transférées à ce consommateur puis relues avec ses propres entrées en attente
        await self.redis.xautoclaim(
            stream_key(sub.event), sub.name, self.consumer,
            min_idle_time=self.claim_idle_ms, start_id="0-0", count=self.batch_size, justid=True,
        )

    async def drain(self, sub: Subscriber) -> int:
        """Reprend les entrées abandonnées, traite les entrées en attente (relivraisons) puis les nouvelles."""
        await self._claim_stale(sub)
        handled = 0
        for start in ("0", ">"):
            for entry_id, fields in await self._read(sub, start):
                if await self._handle(sub, entry_id, fields):
                    handled += 1
        return handled

    async def run_due_jobs(self) -> int:
        ran = 0
        for job in self.jobs:
            lock_key = f"events:schedule:{job.name}"
            acquired = await self.redis.set(
                lock_key, datetime.now(timezone.utc).isoformat(), nx=True, ex=job.every_seconds,
            )
            if not acquired:
                continue
            try:
                await job.handler()
                ran += 1
                logger.info("events.job_done name=%s", job.name)
            except Exception:
                logger.exception("events.job_failed name=%s", job.name)
                # Nouvel essai après un court délai plutôt qu'à l'intervalle complet
                await self.redis.expire(lock_key, SCHEDULE_RETRY_SECONDS)
        return ran

    async def run_once(self) -> int:
        """Un cycle du worker: tous les abonnés puis les tâches échues. Retour: nombre de traitements."""
        await self.ensure_groups()
        handled = 0
        for sub in self.subscribers:
            handled += await self.drain(sub)
        handled += await self.run_due_jobs()
        return handled

    async def run_forever(self, stop: Optional[asyncio.Event] = None) -> None:
        stop = stop or asyncio.Event()
        logger.info(
            "events.worker started consumer=%s subscribers=%s jobs=%s",
            self.consumer, [s.name for s in self.subscribers], [j.name for j in self.jobs],
        )
        while not stop.is_set():
            try:
                if await self.run_once():
                    continue
            except RedisError:
                # Redis indisponible (ou redémarré sans les groupes): nouvel essai au prochain cycle
                logger.exception("events.worker redis error, retrying in %sms", self.poll_interval_ms)
                self._groups_ready = False
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_ms / 1000)
            except asyncio.TimeoutError:
                pass
        logger.info("events.worker stopped")
