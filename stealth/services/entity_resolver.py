"""Entity resolver: attach incoming signals to existing entities or create new ones.

Resolution order:
1. Registration identifier match (ABN/ACN) - deterministic
2. Name similarity against candidate aliases - merge at or above the match threshold
3. Otherwise create a new entity, flagged for review when a near match exists

Concurrent callers in one process are serialized per name/identifier bucket
by ResolutionLocks. Callers that go through claim() keep the bucket locked
until their own commit, so a second caller never looks up before the first
caller's row is visible. Across processes the unique normalized_name and
identifier indexes are the guard; a conflicting insert is retried as a match.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import case, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stealth.config import Settings, get_settings
from stealth.models.entity import StealthEntity
from stealth.models.entity_alias import StealthEntityAlias
from stealth.models.entity_identifier import StealthEntityIdentifier
from stealth.schemas.entity import EntityType
from stealth.schemas.signal import RawSignal
from stealth.services.similarity import JaccardScorer, SimilarityScorer, normalize_name

logger = logging.getLogger(__name__)

# Digit counts for Australian registration numbers
_IDENTIFIER_DIGITS = {"abn": 11, "acn": 9}

# Checked in order; first hit wins
_ENTITY_TYPE_KEYWORDS: tuple[tuple[EntityType, tuple[str, ...]], ...] = (
    (EntityType.JOINT_VENTURE, ("joint venture", " jv")),
    (
        EntityType.PROJECT,
        ("project", "plant", "facility", "refinery", "biorefinery", "precinct"),
    ),
    (
        EntityType.COMPANY,
        (
            "pty",
            "ltd",
            "limited",
            "inc",
            "incorporated",
            "corp",
            "corporation",
            "company",
            "holdings",
            "group",
        ),
    ),
)


class EntityNotFoundError(LookupError):
    """Raised when an operation names an entity id that does not exist."""


class InvalidIdentifierError(ValueError):
    """Raised when a registration identifier on a signal is malformed."""


@dataclass
class Resolution:
    entity: StealthEntity
    is_new: bool
    match_score: float
    method: str  # identifier, name, created


def infer_entity_type(name: str) -> EntityType:
    """Guess entity type from keywords in the raw name."""
    padded = f" {name.lower()} "
    for entity_type, keywords in _ENTITY_TYPE_KEYWORDS:
        for keyword in keywords:
            if keyword.startswith(" "):
                if f"{keyword} " in padded:
                    return entity_type
            elif re.search(rf"\b{re.escape(keyword)}\b", padded):
                return entity_type
    return EntityType.UNKNOWN


def normalize_identifier(id_type: str, value: str) -> str:
    """Strip whitespace and validate a registration identifier.

    Raises InvalidIdentifierError for non-digit values or the wrong digit count.
    """
    cleaned = re.sub(r"\s+", "", value)
    if not cleaned.isdigit():
        raise InvalidIdentifierError(f"{id_type} must contain only digits: {value!r}")
    expected = _IDENTIFIER_DIGITS.get(id_type)
    if expected is not None and len(cleaned) != expected:
        raise InvalidIdentifierError(
            f"{id_type} must have {expected} digits, got {len(cleaned)}: {value!r}"
        )
    return cleaned


class ResolutionLocks:
    """Per-bucket mutual exclusion for resolve's check-then-create.

    Buckets are arbitrary string keys (normalized name, identifier values).
    Locks are reference counted and dropped once no caller holds them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [lock, holders]

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        """Acquire every bucket lock in sorted order (deadlock-free)."""
        ordered = sorted(set(keys))
        acquired: list[tuple[str, threading.Lock]] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                lock.acquire()
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_default_locks = ResolutionLocks()


class EntityResolver:
    """Resolve raw signal entity names to persistent entities.

    The resolver flushes but does not commit; the caller owns the transaction.
    """

    def __init__(
        self,
        db: Session,
        scorer: SimilarityScorer | None = None,
        settings: Settings | None = None,
        locks: ResolutionLocks | None = None,
    ) -> None:
        self.db = db
        self.scorer = scorer or JaccardScorer()
        self.settings = settings or get_settings()
        self.locks = locks or _default_locks

    # ── Public API ──────────────────────────────────────────────────

    def resolve(self, signal: RawSignal) -> Resolution:
        """Return the entity this signal belongs to, creating it when needed.

        Raises InvalidIdentifierError for a malformed registration identifier.
        Never raises for an unmatched name.
        """
        with self.claim(signal) as resolution:
            return resolution

    @contextmanager
    def claim(self, signal: RawSignal) -> Iterator[Resolution]:
        """Resolve the signal and keep its buckets locked until the block exits.

        Commit inside the block so the next caller for the same name or
        identifier sees the row.
        """
        name = signal.entity_name.strip()
        normalized = normalize_name(name)
        registration = self.registration_identifiers(signal.identifiers)

        keys = [f"name:{normalized}"] + [f"{k}:{v}" for k, v in registration.items()]
        with self.locks.hold(keys):
            yield self._resolve_locked(name, normalized, registration)

    def registration_identifiers(self, identifiers: dict[str, str] | None) -> dict[str, str]:
        """Validated registration identifiers from a signal's identifier map."""
        result: dict[str, str] = {}
        for key, value in (identifiers or {}).items():
            id_type = key.strip().lower()
            if id_type not in self.settings.registration_identifier_keys:
                continue
            if value is None or not str(value).strip():
                continue
            result[id_type] = normalize_identifier(id_type, str(value))
        return result

    def best_match(
        self, name: str, normalized: str
    ) -> tuple[StealthEntity | None, float]:
        """Highest-scoring candidate entity and its similarity (max over aliases)."""
        best: StealthEntity | None = None
        best_score = 0.0
        for candidate in self._candidates(normalized):
            score = max(
                (self.scorer.similarity(name, alias) for alias in candidate.all_names),
                default=0.0,
            )
            if score > best_score:
                best, best_score = candidate, score
        return best, best_score

    # ── Internals ───────────────────────────────────────────────────

    def _resolve_locked(
        self, name: str, normalized: str, registration: dict[str, str]
    ) -> Resolution:
        if registration:
            entity = self._find_by_identifiers(registration)
            if entity is not None:
                self._add_alias(entity, name)
                self._attach_identifiers(entity, registration)
                self.db.flush()
                return Resolution(entity, False, 1.0, "identifier")

        best, score = self.best_match(name, normalized)
        if best is not None and score >= self.settings.resolver_match_threshold:
            self._add_alias(best, name)
            self._attach_identifiers(best, registration)
            self.db.flush()
            return Resolution(best, False, score, "name")

        return self._create(name, normalized, registration, best, score)

    def _candidates(self, normalized: str) -> list[StealthEntity]:
        """Entities sharing a name token, most shared tokens first.

        An exact normalized_name hit always ranks first so the candidate
        limit never cuts the true match.
        """
        token_hits = [
            StealthEntity.aliases.any(StealthEntityAlias.name.ilike(f"%{token}%"))
            for token in dict.fromkeys(normalized.split())
            if len(token) > 2
        ]
        conditions = list(token_hits)
        if normalized:
            conditions.append(StealthEntity.normalized_name == normalized)
        if not conditions:
            return []

        ordering = [
            case((StealthEntity.normalized_name == normalized, 1), else_=0).desc()
        ]
        if token_hits:
            shared_tokens = sum(case((hit, 1), else_=0) for hit in token_hits)
            ordering.append(shared_tokens.desc())
        ordering += [StealthEntity.signal_count.desc(), StealthEntity.id]

        return (
            self.db.query(StealthEntity)
            .filter(or_(*conditions))
            .order_by(*ordering)
            .limit(self.settings.resolver_candidate_limit)
            .all()
        )

    def _find_by_identifiers(self, registration: dict[str, str]) -> StealthEntity | None:
        for id_type, id_value in sorted(registration.items()):
            entity = (
                self.db.query(StealthEntity)
                .join(StealthEntityIdentifier)
                .filter(
                    StealthEntityIdentifier.id_type == id_type,
                    StealthEntityIdentifier.id_value == id_value,
                )
                .first()
            )
            if entity is not None:
                return entity
        return None

    def _add_alias(self, entity: StealthEntity, name: str) -> None:
        if name and name not in {alias.strip() for alias in entity.all_names}:
            entity.aliases.append(StealthEntityAlias(name=name))

    def _attach_identifiers(self, entity: StealthEntity, registration: dict[str, str]) -> None:
        """Add identifiers the entity lacks, unless another entity already owns the value."""
        current = entity.identifier_map
        for id_type, id_value in registration.items():
            if id_type in current:
                if current[id_type] != id_value:
                    logger.warning(
                        "Entity %s has %s=%s, signal reports %s; flagged for review",
                        entity.id,
                        id_type,
                        current[id_type],
                        id_value,
                    )
                    self._flag(entity, f"Conflicting {id_type}: {id_value}")
                continue
            owner = (
                self.db.query(StealthEntityIdentifier)
                .filter(
                    StealthEntityIdentifier.id_type == id_type,
                    StealthEntityIdentifier.id_value == id_value,
                )
                .first()
            )
            if owner is not None and owner.entity_id != entity.id:
                self._flag(entity, f"{id_type} {id_value} belongs to entity {owner.entity_id}")
                continue
            entity.identifiers.append(
                StealthEntityIdentifier(id_type=id_type, id_value=id_value)
            )

    def _flag(self, entity: StealthEntity, note: str) -> None:
        entity.needs_review = True
        entity.review_notes = f"{entity.review_notes}\n{note}" if entity.review_notes else note

    def _create(
        self,
        name: str,
        normalized: str,
        registration: dict[str, str],
        near_match: StealthEntity | None,
        near_score: float,
    ) -> Resolution:
        entity = StealthEntity(
            canonical_name=name,
            normalized_name=normalized or None,
            entity_type=infer_entity_type(name).value,
            current_score=0.0,
            signal_count=0,
        )
        entity.aliases.append(StealthEntityAlias(name=name))
        for id_type, id_value in registration.items():
            entity.identifiers.append(
                StealthEntityIdentifier(id_type=id_type, id_value=id_value)
            )
        if not normalized:
            self._flag(entity, "Name is empty after normalization")
        elif near_match is not None and near_score >= self.settings.resolver_review_threshold:
            self._flag(
                entity,
                f"Possible duplicate of entity {near_match.id} "
                f"({near_match.canonical_name}), similarity {near_score:.2f}",
            )

        self.db.add(entity)
        try:
            self.db.flush()
        except IntegrityError:
            # Another process created the same name or identifier first
            self.db.rollback()
            winner = self._find_existing(normalized, registration)
            if winner is None:
                raise
            logger.info("Resolved %r to concurrently created entity %s", name, winner.id)
            self._add_alias(winner, name)
            self._attach_identifiers(winner, registration)
            self.db.flush()
            return Resolution(winner, False, 1.0, "name")

        logger.debug("Created entity %s for %r", entity.id, name)
        return Resolution(entity, True, near_score, "created")

    def _find_existing(
        self, normalized: str, registration: dict[str, str]
    ) -> StealthEntity | None:
        if registration:
            entity = self._find_by_identifiers(registration)
            if entity is not None:
                return entity
        if normalized:
            return (
                self.db.query(StealthEntity)
                .filter(StealthEntity.normalized_name == normalized)
                .first()
            )
        return None


def _ensure_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def merge_entities(db: Session, primary_id: int, duplicate_id: int) -> StealthEntity:
    """Fold ``duplicate_id`` into ``primary_id`` in one transaction.

    Aliases are unioned, identifiers unioned with the primary winning per type,
    counts summed, and every signal reassigned before the duplicate is deleted.
    The primary's score is recomputed afterwards.

    Raises EntityNotFoundError if either id is missing, ValueError if they are equal.
    """
    if primary_id == duplicate_id:
        raise ValueError("Cannot merge an entity into itself")
    primary = db.get(StealthEntity, primary_id)
    if primary is None:
        raise EntityNotFoundError(f"Entity {primary_id} not found")
    duplicate = db.get(StealthEntity, duplicate_id)
    if duplicate is None:
        raise EntityNotFoundError(f"Entity {duplicate_id} not found")

    try:
        primary_names = set(primary.all_names)
        for alias in list(duplicate.aliases):
            if alias.name not in primary_names:
                alias.entity = primary
                primary_names.add(alias.name)

        primary_types = set(primary.identifier_map)
        for identifier in list(duplicate.identifiers):
            if identifier.id_type not in primary_types:
                identifier.entity = primary
                primary_types.add(identifier.id_type)

        for signal in list(duplicate.signals):
            signal.entity = primary

        primary.signal_count += duplicate.signal_count
        dup_last = _ensure_utc(duplicate.last_signal_at)
        primary_last = _ensure_utc(primary.last_signal_at)
        if dup_last is not None and (primary_last is None or dup_last > primary_last):
            primary.last_signal_at = dup_last

        db.delete(duplicate)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Merge of entity %s into %s failed", duplicate_id, primary_id)
        raise

    logger.info("Merged entity %s into %s", duplicate_id, primary_id)

    from stealth.services.scoring import update_entity_score

    update_entity_score(db, primary_id)
    db.refresh(primary)
    return primary
