"""Pricing configuration persistence - one JSONB document per property.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

import json
from datetime import date

from psycopg2.extensions import cursor as PgCursor

from stayprice.domain.pricing_config import PricingConfiguration, add_daily_rate
from stayprice.infra.db import fetchone, for_update


def get_pricing_config(cur: PgCursor, property_id: str) -> PricingConfiguration | None:
    """Load the pricing configuration for a property.

    Raises:
        PricingConfigError: If the stored document is malformed.
    """
    row = fetchone(
        cur,
        "SELECT config FROM pricing_configs WHERE property_id = %s",
        (property_id,),
    )
    if row is None or not row[0]:
        return None
    document = row[0] if isinstance(row[0], dict) else json.loads(row[0])
    return PricingConfiguration.from_dict(document)


def save_pricing_config(cur: PgCursor, property_id: str, config: PricingConfiguration) -> None:
    cur.execute(
        """
        INSERT INTO pricing_configs (property_id, config)
        VALUES (%s, %s::jsonb)
        ON CONFLICT (property_id) DO UPDATE
        SET config = EXCLUDED.config, updated_at = now()
        """,
        (property_id, json.dumps(config.to_dict())),
    )


def add_property_daily_rate(
    cur: PgCursor,
    property_id: str,
    *,
    start_date: date,
    end_date: date,
    price: float,
) -> PricingConfiguration | None:
    """Add a nightly override to a property's configuration.

    The configuration row is locked while the overlap check runs, so two
    hosts editing the same listing cannot both insert overlapping ranges.

    Returns:
        The updated configuration, or None if the property has none.

    Raises:
        PricingConfigError: If the range is invalid or overlaps.
    """
    row = for_update(
        cur,
        "SELECT config FROM pricing_configs WHERE property_id = %s",
        (property_id,),
    )
    if row is None:
        return None

    document = row[0] if isinstance(row[0], dict) else json.loads(row[0])
    updated = add_daily_rate(
        PricingConfiguration.from_dict(document),
        start_date=start_date,
        end_date=end_date,
        price=price,
    )
    save_pricing_config(cur, property_id, updated)
    return updated
