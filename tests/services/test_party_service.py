"""Tests for customer and supplier find-or-create."""

import pytest

from shop_kernel.domain.dtos import CustomerInfo
from shop_kernel.exceptions import ValidationError
from shop_kernel.services.party_service import PartyService


@pytest.fixture
def parties(session):
    return PartyService(session)


class TestCustomers:
    def test_created_once_per_phone(self, parties, test_actor_id):
        first = parties.find_or_create_customer(
            CustomerInfo(name="Asha", phone="9800000001"), test_actor_id
        )
        second = parties.find_or_create_customer(
            CustomerInfo(name="Asha R.", phone=" 9800000001 "), test_actor_id
        )

        assert first.id == second.id
        assert second.name == "Asha"

    def test_customer_requires_phone(self):
        with pytest.raises(ValidationError) as exc_info:
            CustomerInfo(name="Asha", phone="  ")
        assert exc_info.value.field == "phone"


class TestSuppliers:
    def test_created_once_per_name(self, parties, test_actor_id, captured_logs):
        first = parties.find_or_create_supplier("Acme Gems", test_actor_id)
        second = parties.find_or_create_supplier("Acme Gems ", test_actor_id)

        assert first.id == second.id
        created = [r for r in captured_logs() if r["message"] == "supplier_created"]
        assert len(created) == 1

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_name_required(self, parties, test_actor_id, name):
        with pytest.raises(ValidationError) as exc_info:
            parties.find_or_create_supplier(name, test_actor_id)
        assert exc_info.value.field == "supplierName"
