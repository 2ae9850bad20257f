"""Pricing schema: pricing configurations, promo codes, promo usages.

Revision ID: 001_pricing_schema
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations

from alembic import op

revision = "001_pricing_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE EXTENSION IF NOT EXISTS pgcrypto;

        CREATE TABLE pricing_configs (
            property_id TEXT PRIMARY KEY,
            config JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );

        CREATE TABLE promo_codes (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            promo_code TEXT NOT NULL UNIQUE CHECK (promo_code = upper(promo_code)),
            description TEXT,
            discount_type TEXT NOT NULL CHECK (discount_type IN ('percentage', 'flat')),
            discount_value NUMERIC(12, 2) NOT NULL CHECK (discount_value >= 0),
            currency CHAR(3) NOT NULL DEFAULT 'USD',
            minimum_spend NUMERIC(12, 2) NOT NULL DEFAULT 0,
            maximum_discount NUMERIC(12, 2),
            valid_from DATE NOT NULL DEFAULT current_date,
            valid_until DATE NOT NULL,
            max_redemptions INTEGER NOT NULL DEFAULT 10,
            max_per_user INTEGER NOT NULL DEFAULT 1,
            used_count INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'inactive' CHECK (status IN ('active', 'inactive')),
            eligible_user_types TEXT[] NOT NULL DEFAULT ARRAY['newUser'],
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT promo_codes_used_within_limit CHECK (used_count <= max_redemptions)
        );

        CREATE TABLE promo_usages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id TEXT NOT NULL,
            promo_code_id UUID NOT NULL REFERENCES promo_codes (id),
            reservation_id TEXT NOT NULL,
            applied_on TIMESTAMPTZ NOT NULL DEFAULT now(),
            UNIQUE (promo_code_id, reservation_id)
        );

        CREATE INDEX promo_usages_user_code_idx ON promo_usages (promo_code_id, user_id);
        """
    )


def downgrade() -> None:
    op.execute(
        """
        DROP TABLE IF EXISTS promo_usages;
        DROP TABLE IF EXISTS promo_codes;
        DROP TABLE IF EXISTS pricing_configs;
        """
    )
