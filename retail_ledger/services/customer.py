"""Customer service"""

from fastapi import Depends
from retail_ledger.errors.common import ConstraintViolation
from retail_ledger.models.customer import Customer
from retail_ledger.models.customer_payment import CustomerPayment
from retail_ledger.models.customer_transaction import CustomerTransaction
from retail_ledger.models.sale import Sale
from retail_ledger.models.sales_return import SalesReturn
from retail_ledger.schemas.customer import CustomerFiltersSchema
from retail_ledger.services.base import BaseService
from retail_ledger.uow import get_uow
from sqlalchemy.orm import Query, Session


class CustomerService(BaseService[Customer]):
    model = Customer

    def __init__(self, db: Session = Depends(get_uow)):
        self.db = db

    def _apply_filters(
        self, query: Query[Customer], filters: CustomerFiltersSchema
    ) -> Query[Customer]:
        if filters.name is not None:
            query = query.filter(Customer.name.ilike(f"%{filters.name}%"))
        if filters.phone is not None:
            query = query.filter(Customer.phone.ilike(f"%{filters.phone}%"))
        if filters.has_debt is True:
            query = query.filter(Customer.balance > 0)
        elif filters.has_debt is False:
            query = query.filter(Customer.balance <= 0)
        return query

    def delete(self, obj_id: int) -> int:
        """Customers with any financial history can not be deleted."""
        self.get(obj_id)
        for model in (CustomerTransaction, Sale, CustomerPayment, SalesReturn):
            linked = (
                self.db.query(model.id).filter(model.customer_id == obj_id).first()
            )
            if linked is not None:
                raise ConstraintViolation(
                    f"Customer id={obj_id} has {model.__tablename__}"
                )
        return super().delete(obj_id)
