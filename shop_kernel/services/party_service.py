"""
PartyService -- find-or-create for customers and suppliers.

Orders identify their customer by phone number and purchase entries their
supplier by name; neither flow should fail because the counterparty is new.
Both lookups are race-safe: a concurrent insert of the same key is caught at
a savepoint and the winner's row is returned.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from shop_kernel.domain.dtos import CustomerInfo
from shop_kernel.exceptions import ValidationError
from shop_kernel.logging_config import get_logger
from shop_kernel.models.party import Customer, Supplier
from shop_kernel.services.base import BaseService

logger = get_logger("services.party")


class PartyService(BaseService):
    def _customer_by_phone(self, phone: str) -> Customer | None:
        stmt = select(Customer).where(Customer.phone == phone)
        return self.session.execute(stmt).scalar_one_or_none()

    def _supplier_by_name(self, name: str) -> Supplier | None:
        stmt = select(Supplier).where(Supplier.name == name)
        return self.session.execute(stmt).scalar_one_or_none()

    def find_or_create_customer(self, info: CustomerInfo, actor_id: UUID) -> Customer:
        """
        Return the customer with ``info.phone``, creating it if needed.

        An existing customer keeps its stored details; the order records the
        name it was placed under separately.
        """
        phone = info.phone.strip()
        customer = self._customer_by_phone(phone)
        if customer is not None:
            return customer

        savepoint = self.session.begin_nested()
        try:
            customer = Customer(
                name=info.name.strip(),
                phone=phone,
                email=info.email,
                company=info.company,
                gst_number=info.gst_number,
                created_by_id=actor_id,
            )
            self.session.add(customer)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("customer_create_race_retry", extra={"phone": phone})
            return self._customer_by_phone(phone)
        savepoint.commit()
        logger.info(
            "customer_created",
            extra={"customer_id": str(customer.id), "phone": phone},
        )
        return customer

    def find_or_create_supplier(self, name: str, actor_id: UUID) -> Supplier:
        """Return the supplier called ``name``, creating it if needed."""
        if not name or not name.strip():
            raise ValidationError("supplierName", "is required")
        name = name.strip()
        supplier = self._supplier_by_name(name)
        if supplier is not None:
            return supplier

        savepoint = self.session.begin_nested()
        try:
            supplier = Supplier(name=name, created_by_id=actor_id)
            self.session.add(supplier)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("supplier_create_race_retry", extra={"supplier_name": name})
            return self._supplier_by_name(name)
        savepoint.commit()
        logger.info(
            "supplier_created",
            extra={"supplier_id": str(supplier.id), "supplier_name": name},
        )
        return supplier
