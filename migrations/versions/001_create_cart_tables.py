"""
Alembic migration: Create durable cart tables.

This migration creates the carts and cart_items tables that mirror the
session cart. A cart is scoped to an owner or a session; each cart item is
one line keyed by its content-derived row ID.

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Upgrade database schema to add durable cart tables.

    Creates carts and cart_items with indexes for owner and session lookups
    and a unique row ID per cart.
    """
    # Create carts table
    op.create_table(
        'carts',
        sa.Column(
            'id',
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment='Unique identifier for the record',
        ),
        sa.Column(
            'owner_id',
            sa.String(length=255),
            nullable=True,
            comment='Signed-in owner identifier (null for anonymous)',
        ),
        sa.Column(
            'session_id',
            sa.String(length=255),
            nullable=False,
            comment='Session identifier that last opened the cart',
        ),
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was last updated',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_carts'),
        sa.CheckConstraint(
            "length(session_id) >= 1",
            name='ck_carts_session_id_min_length',
        ),
        comment='Durable shopping carts scoped to owner or session',
    )

    op.create_index('ix_carts_owner_id', 'carts', ['owner_id'], unique=False)
    op.create_index('ix_carts_session_id', 'carts', ['session_id'], unique=False)

    # Create cart_items table
    op.create_table(
        'cart_items',
        sa.Column(
            'id',
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment='Unique identifier for the record',
        ),
        sa.Column(
            'cart_id',
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment='Foreign key to parent cart',
        ),
        sa.Column(
            'row_id',
            sa.String(length=64),
            nullable=False,
            comment='Content-derived line identity',
        ),
        sa.Column(
            'product_id',
            sa.String(length=255),
            nullable=False,
            comment='External product reference',
        ),
        sa.Column(
            'name',
            sa.String(length=255),
            nullable=False,
            comment='Display label',
        ),
        sa.Column(
            'price',
            sa.Numeric(precision=12, scale=4),
            nullable=False,
            comment='Unit price without tax',
        ),
        sa.Column(
            'quantity',
            sa.Numeric(precision=12, scale=4),
            nullable=False,
            comment='Line quantity',
        ),
        sa.Column(
            'options',
            sa.JSON(),
            nullable=False,
            comment='Option set',
        ),
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
            comment='Timestamp when record was last updated',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_cart_items'),
        sa.ForeignKeyConstraint(
            ['cart_id'],
            ['carts.id'],
            name='fk_cart_items_cart_id',
            ondelete='CASCADE',
        ),
        sa.UniqueConstraint('cart_id', 'row_id', name='uq_cart_items_cart_row'),
        sa.CheckConstraint(
            "quantity > 0",
            name='ck_cart_items_quantity_positive',
        ),
        sa.CheckConstraint(
            "price >= 0",
            name='ck_cart_items_price_non_negative',
        ),
        comment='Durable cart line rows',
    )

    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'], unique=False)


def downgrade() -> None:
    """
    Downgrade database schema by removing durable cart tables.
    """
    op.drop_index('ix_cart_items_cart_id', table_name='cart_items')
    op.drop_table('cart_items')

    op.drop_index('ix_carts_session_id', table_name='carts')
    op.drop_index('ix_carts_owner_id', table_name='carts')
    op.drop_table('carts')
