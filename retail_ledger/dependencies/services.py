"""Service dependency providers."""

from fastapi import Depends
from retail_ledger.config import Config, get_config
from retail_ledger.uow import get_uow
from sqlalchemy.orm import Session


class ServiceContainer:
    """Request-scoped service container."""

    def __init__(self, db: Session, config: Config):
        self.db = db
        self.config = config
        self._audit_service = None
        self._default_treasury_service = None
        self._ledger_service = None
        self._treasury_service = None
        self._payment_method_service = None
        self._split_service = None
        self._customer_service = None
        self._allocation_service = None
        self._customer_financials_service = None
        self._sale_service = None
        self._customer_payment_service = None
        self._sales_return_service = None
        self._ledger_gateway = None

    @property
    def audit_service(self):
        if self._audit_service is None:
            from retail_ledger.services.audit import AuditService

            self._audit_service = AuditService(db=self.db)
        return self._audit_service

    @property
    def default_treasury_service(self):
        if self._default_treasury_service is None:
            from retail_ledger.services.default_treasury import DefaultTreasuryService

            self._default_treasury_service = DefaultTreasuryService(
                db=self.db, config=self.config
            )
        return self._default_treasury_service

    @property
    def ledger_service(self):
        if self._ledger_service is None:
            from retail_ledger.services.ledger import LedgerService

            self._ledger_service = LedgerService(
                db=self.db,
                default_treasury_service=self.default_treasury_service,
                audit_service=self.audit_service,
            )
        return self._ledger_service

    @property
    def treasury_service(self):
        if self._treasury_service is None:
            from retail_ledger.services.treasury import TreasuryService

            self._treasury_service = TreasuryService(
                db=self.db,
                default_treasury_service=self.default_treasury_service,
                ledger_service=self.ledger_service,
                audit_service=self.audit_service,
            )
        return self._treasury_service

    @property
    def payment_method_service(self):
        if self._payment_method_service is None:
            from retail_ledger.services.payment_method import PaymentMethodService

            self._payment_method_service = PaymentMethodService(db=self.db)
        return self._payment_method_service

    @property
    def split_service(self):
        if self._split_service is None:
            from retail_ledger.services.split import PaymentSplitService

            self._split_service = PaymentSplitService(
                payment_method_service=self.payment_method_service,
                config=self.config,
            )
        return self._split_service

    @property
    def customer_service(self):
        if self._customer_service is None:
            from retail_ledger.services.customer import CustomerService

            self._customer_service = CustomerService(db=self.db)
        return self._customer_service

    @property
    def allocation_service(self):
        if self._allocation_service is None:
            from retail_ledger.services.allocation import AllocationService

            self._allocation_service = AllocationService(
                db=self.db, customer_service=self.customer_service
            )
        return self._allocation_service

    @property
    def customer_financials_service(self):
        if self._customer_financials_service is None:
            from retail_ledger.services.customer_financials import (
                CustomerFinancialsService,
            )

            self._customer_financials_service = CustomerFinancialsService(
                db=self.db, config=self.config
            )
        return self._customer_financials_service

    @property
    def sale_service(self):
        if self._sale_service is None:
            from retail_ledger.services.sale import SaleService

            self._sale_service = SaleService(
                db=self.db,
                customer_service=self.customer_service,
                default_treasury_service=self.default_treasury_service,
                ledger_service=self.ledger_service,
                split_service=self.split_service,
                customer_financials_service=self.customer_financials_service,
                audit_service=self.audit_service,
            )
        return self._sale_service

    @property
    def customer_payment_service(self):
        if self._customer_payment_service is None:
            from retail_ledger.services.customer_payment import CustomerPaymentService

            self._customer_payment_service = CustomerPaymentService(
                db=self.db,
                customer_service=self.customer_service,
                default_treasury_service=self.default_treasury_service,
                ledger_service=self.ledger_service,
                split_service=self.split_service,
                allocation_service=self.allocation_service,
                customer_financials_service=self.customer_financials_service,
                audit_service=self.audit_service,
            )
        return self._customer_payment_service

    @property
    def sales_return_service(self):
        if self._sales_return_service is None:
            from retail_ledger.services.sales_return import SalesReturnService

            self._sales_return_service = SalesReturnService(
                db=self.db,
                sale_service=self.sale_service,
                default_treasury_service=self.default_treasury_service,
                ledger_service=self.ledger_service,
                split_service=self.split_service,
                customer_financials_service=self.customer_financials_service,
                audit_service=self.audit_service,
            )
        return self._sales_return_service

    @property
    def ledger_gateway(self):
        if self._ledger_gateway is None:
            from retail_ledger.services.gateway import LedgerGateway

            self._ledger_gateway = LedgerGateway(
                db=self.db,
                ledger_service=self.ledger_service,
                split_service=self.split_service,
                allocation_service=self.allocation_service,
                customer_financials_service=self.customer_financials_service,
            )
        return self._ledger_gateway


def get_container(
    db: Session = Depends(get_uow),
    config: Config = Depends(get_config),
) -> ServiceContainer:
    return ServiceContainer(db, config)
