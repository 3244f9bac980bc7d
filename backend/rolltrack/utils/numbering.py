"""Identifier generation for batches, rolls and shipments.

Format tokens:
  {prefix}     → production type tag (WEAVING / COATING)
  {date}       → YYYYMMDD (UTC)
  {seq:N}      → zero-padded sequence number, N digits, resets daily per scope
  {batch}      → parent batch number (rolls only)

Formats:
  batch:     {prefix}-{date}-{seq:3}     WEAVING-20260301-004
  roll:      {batch}-R{seq:3}            WEAVING-20260301-004-R012
  shipment:  SHIP-{date}-{seq:3}         SHIP-20260301-017

Batch and shipment sequences come from the ``number_sequences`` table and
are serialized by the store.  Roll numbers need no sequence: they are the
batch number plus the roll's ordinal within the batch.
"""

import logging
import random
import re

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rolltrack.database import utcnow
from rolltrack.middleware.exceptions import IdentifierAllocationError, InvalidInputError
from rolltrack.models.batch import ProductionType
from rolltrack.models.sequence import NumberSequence

logger = logging.getLogger(__name__)

FORMATS = {
    "batch": "{prefix}-{date}-{seq:3}",
    "roll": "{batch}-R{seq:3}",
    "shipment": "SHIP-{date}-{seq:3}",
}

BATCH_NUMBER_RE = re.compile(r"^(WEAVING|COATING)-\d{8}-\d{3,}$")
SHIPMENT_NUMBER_RE = re.compile(r"^SHIP-\d{8}-\d{3,}$")

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _render(fmt: str, seq: int, **tokens: str) -> str:
    """Fill a format template; ``{seq:N}`` is padded to N digits."""
    code = fmt
    for name, value in tokens.items():
        code = code.replace("{" + name + "}", value)
    seq_match = re.search(r"\{seq:(\d+)\}", fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 3
    return re.sub(r"\{seq:\d+\}", f"{seq:0{seq_width}d}", code)


def _today() -> str:
    return utcnow().strftime("%Y%m%d")


async def next_sequence(db: AsyncSession, scope: str, period: str) -> int:
    """Atomically bump and return the counter for (scope, period).

    The seed insert is a no-op when the row exists; the increment is a
    single UPDATE, so two sessions can never read the same value.
    """
    dialect = db.get_bind().dialect.name
    insert_fn = _INSERT_BY_DIALECT.get(dialect)
    if insert_fn is None:
        raise IdentifierAllocationError(scope, f"unsupported dialect '{dialect}'")

    await db.execute(
        insert_fn(NumberSequence)
        .values(scope=scope, period=period, last_value=0)
        .on_conflict_do_nothing(index_elements=["scope", "period"])
    )
    result = await db.execute(
        update(NumberSequence)
        .where(NumberSequence.scope == scope, NumberSequence.period == period)
        .values(last_value=NumberSequence.last_value + 1)
        .returning(NumberSequence.last_value)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one()


async def generate_batch_number(db: AsyncSession, production_type: str) -> str:
    """Allocate WEAVING-YYYYMMDD-NNN / COATING-YYYYMMDD-NNN.

    Raises IdentifierAllocationError if the sequence is unavailable;
    batch numbers seed roll numbers, so there is no random fallback.
    """
    try:
        prefix = ProductionType(production_type).value.upper()
    except ValueError:
        raise InvalidInputError(
            f"Unknown production type: {production_type}", field="production_type"
        )

    today = _today()
    scope = f"batch:{prefix}"
    try:
        seq = await next_sequence(db, scope, today)
    except SQLAlchemyError as exc:
        logger.error("Batch sequence unavailable for %s: %s", scope, exc)
        raise IdentifierAllocationError("batch", str(exc)) from exc

    return _render(FORMATS["batch"], seq, prefix=prefix, date=today)


def roll_number(batch_number: str, ordinal: int) -> str:
    """Roll numbers are the batch number plus a 1-based ordinal."""
    if ordinal < 1:
        raise InvalidInputError(f"Roll ordinal must be >= 1, got {ordinal}", field="ordinal")
    return _render(FORMATS["roll"], ordinal, batch=batch_number)


async def generate_shipment_number(db: AsyncSession) -> str:
    """Allocate SHIP-YYYYMMDD-NNN.

    Shipment numbers are not referenced by other identifiers, so if the
    sequence fails a random 3-digit suffix is used instead.
    """
    today = _today()
    try:
        async with db.begin_nested():
            seq = await next_sequence(db, "shipment", today)
    except (SQLAlchemyError, IdentifierAllocationError) as exc:
        seq = random.randint(0, 999)
        logger.warning(
            "Shipment sequence unavailable (%s); using random suffix %03d", exc, seq
        )
    return _render(FORMATS["shipment"], seq, date=today)


def validate_batch_number(batch_number: str) -> bool:
    return bool(BATCH_NUMBER_RE.match(batch_number))


def validate_shipment_number(shipment_number: str) -> bool:
    return bool(SHIPMENT_NUMBER_RE.match(shipment_number))
