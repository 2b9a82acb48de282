"""
Module: shop_kernel.models.party
Responsibility: ORM persistence for the shop's counterparties: customers who
    place orders and suppliers who fill purchase entries.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Customer.phone is unique; orders find-or-create customers by phone.
    - Supplier.name is unique; purchase entries find-or-create suppliers by
      name.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase


class Customer(TrackedBase):
    __tablename__ = "customers"

    __table_args__ = (UniqueConstraint("phone", name="uq_customer_phone"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    gst_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.name} ({self.phone})>"


class Supplier(TrackedBase):
    __tablename__ = "suppliers"

    __table_args__ = (UniqueConstraint("name", name="uq_supplier_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_person: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    def __repr__(self) -> str:
        return f"<Supplier {self.name}>"
