"""Work order repository - Database operations for work orders"""

from typing import Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from ...models import WorkOrder


class WorkOrderRepository:
    """Repository for work order database operations (callers commit)"""

    @staticmethod
    def get_work_order(db: Session, work_order_id: int) -> Optional[WorkOrder]:
        return (
            db.query(WorkOrder)
            .options(selectinload(WorkOrder.appointments))
            .filter(WorkOrder.id == work_order_id)
            .first()
        )

    @staticmethod
    def list_work_orders(db: Session, status: Optional[str] = None) -> list[WorkOrder]:
        query = db.query(WorkOrder).options(selectinload(WorkOrder.appointments))
        if status:
            query = query.filter(WorkOrder.status == status)
        return query.order_by(WorkOrder.date.desc(), WorkOrder.id.desc()).all()

    @staticmethod
    def list_by_statuses(db: Session, statuses: Sequence[str]) -> list[WorkOrder]:
        return (
            db.query(WorkOrder)
            .filter(WorkOrder.status.in_(statuses))
            .order_by(WorkOrder.status_changed_at.asc(), WorkOrder.id.asc())
            .all()
        )

    @staticmethod
    def add(db: Session, work_order: WorkOrder) -> WorkOrder:
        db.add(work_order)
        db.flush()
        return work_order

