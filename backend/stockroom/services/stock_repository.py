# Overview: Named ledger queries over stock_movements (grouped conditional sums and appends).

"""
Stock ledger repository.

The ledger is the stock_movements table. Every stock figure in the API is a
grouped conditional sum over it:

    total_incoming = SUM(quantity WHERE direction = 'in')
    total_outgoing = SUM(quantity WHERE direction = 'out')
    available      = total_incoming - total_outgoing

Scope filtering is applied to the base query before GROUP BY so rows from
inventories outside the caller's scope never reach the aggregate.
"""
from __future__ import annotations

from sqlalchemy import case, func

from ..models import StockMovement, Product, Inventory, Unit
from ..models.stock import DIRECTION_IN, DIRECTION_OUT


def _incoming_expr():
    return func.coalesce(
        func.sum(case((StockMovement.direction == DIRECTION_IN, StockMovement.quantity), else_=0)),
        0,
    )


def _outgoing_expr():
    return func.coalesce(
        func.sum(case((StockMovement.direction == DIRECTION_OUT, StockMovement.quantity), else_=0)),
        0,
    )


def _signed_sum_expr():
    return func.coalesce(
        func.sum(
            case(
                (StockMovement.direction == DIRECTION_IN, StockMovement.quantity),
                else_=-StockMovement.quantity,
            )
        ),
        0,
    )


class StockLedgerRepository:
    def __init__(self, session):
        self.session = session

    def append(
        self,
        *,
        product_id: int,
        inventory_id: int,
        unit_id: int,
        quantity,
        direction: str,
        method: str,
        order_id: int | None = None,
        created_by_user_id: int | None = None,
        note: str | None = None,
    ) -> StockMovement:
        """Add one movement and flush so it has an id. Never commits."""
        movement = StockMovement(
            product_id=product_id,
            inventory_id=inventory_id,
            unit_id=unit_id,
            quantity=quantity,
            direction=direction,
            method=method,
            order_id=order_id,
            created_by_user_id=created_by_user_id,
            note=note,
        )
        self.session.add(movement)
        self.session.flush()
        return movement

    def sum_by_direction(self, product_id: int, inventory_id: int, unit_id: int):
        """Return (total_incoming, total_outgoing, record_count) for one key."""
        row = self.session.query(
            _incoming_expr().label("total_incoming"),
            _outgoing_expr().label("total_outgoing"),
            func.count(StockMovement.id).label("record_count"),
        ).filter(
            StockMovement.product_id == product_id,
            StockMovement.inventory_id == inventory_id,
            StockMovement.unit_id == unit_id,
        ).one()
        return row.total_incoming, row.total_outgoing, int(row.record_count or 0)

    def group_by_product_inventory_unit(
        self,
        scope,
        *,
        product_id: int | None = None,
        inventory_id: int | None = None,
        below: float | None = None,
    ):
        """
        One row per (product, inventory, unit) with names joined in.

        below adds HAVING available < below and switches ordering to
        available ASC, unit name ASC (low-stock listing).
        """
        signed = _signed_sum_expr()
        query = self.session.query(
            StockMovement.product_id,
            StockMovement.inventory_id,
            StockMovement.unit_id,
            Product.product_name,
            Inventory.inventory_name,
            Unit.name.label("unit_name"),
            _incoming_expr().label("total_incoming"),
            _outgoing_expr().label("total_outgoing"),
            func.count(StockMovement.id).label("record_count"),
        ).join(
            Product, Product.id == StockMovement.product_id
        ).join(
            Inventory, Inventory.id == StockMovement.inventory_id
        ).join(
            Unit, Unit.id == StockMovement.unit_id
        )

        query = scope.apply(query, StockMovement.inventory_id)
        if product_id is not None:
            query = query.filter(StockMovement.product_id == product_id)
        if inventory_id is not None:
            query = query.filter(StockMovement.inventory_id == inventory_id)

        query = query.group_by(
            StockMovement.product_id,
            StockMovement.inventory_id,
            StockMovement.unit_id,
            Product.product_name,
            Inventory.inventory_name,
            Unit.name,
        )

        if below is not None:
            query = query.having(signed < below).order_by(
                signed.asc(),
                Unit.name.asc(),
                StockMovement.product_id.asc(),
                StockMovement.inventory_id.asc(),
            )
        else:
            query = query.order_by(
                signed.desc(),
                StockMovement.product_id.asc(),
                StockMovement.inventory_id.asc(),
                StockMovement.unit_id.asc(),
            )
        return query.all()

    def group_by_unit(self, scope, *, product_id: int | None = None, inventory_id: int | None = None):
        """Per-unit rollup (used by the product and inventory views)."""
        query = self.session.query(
            StockMovement.unit_id,
            Unit.name.label("unit_name"),
            _incoming_expr().label("total_incoming"),
            _outgoing_expr().label("total_outgoing"),
            func.count(StockMovement.id).label("record_count"),
            func.count(func.distinct(StockMovement.product_id)).label("product_count"),
        ).join(Unit, Unit.id == StockMovement.unit_id)

        query = scope.apply(query, StockMovement.inventory_id)
        if product_id is not None:
            query = query.filter(StockMovement.product_id == product_id)
        if inventory_id is not None:
            query = query.filter(StockMovement.inventory_id == inventory_id)

        return query.group_by(StockMovement.unit_id, Unit.name).order_by(Unit.name.asc()).all()

    def list_movements(self, scope, *, product_id=None, inventory_id=None, unit_id=None, limit: int = 200):
        query = scope.apply(self.session.query(StockMovement), StockMovement.inventory_id)
        if product_id is not None:
            query = query.filter(StockMovement.product_id == product_id)
        if inventory_id is not None:
            query = query.filter(StockMovement.inventory_id == inventory_id)
        if unit_id is not None:
            query = query.filter(StockMovement.unit_id == unit_id)
        return query.order_by(
            StockMovement.created_at.desc(),
            StockMovement.id.desc(),
        ).limit(limit).all()
