"""
E2E тест полного цикла купона.

Салон создает купон -> клиент видит его в списке -> проверяет для записи ->
применяет -> купон пропадает из списка клиента -> салон видит статистику.
"""
from datetime import datetime, timedelta

import pytest

pytestmark = pytest.mark.e2e


@pytest.mark.asyncio
async def test_coupon_lifecycle(api_client, make_user, make_booking, sample_jwt_token):
    """Тест полного цикла купона салона."""
    vendor = await make_user("vendor")
    customer = await make_user()
    headers = {"Authorization": f"Bearer {sample_jwt_token(vendor.id)}"}
    now = datetime.utcnow()

    # 1. Салон создает купон на 10 долларов
    response = await api_client.post(
        "/api/coupons",
        json={
            "code": "TENOFF",
            "title": "$10 off",
            "type": "fixed_amount",
            "value": "1000",
            "minimum_amount": 3000,
            "max_uses": 50,
            "start_date": (now - timedelta(hours=1)).isoformat(),
            "end_date": (now + timedelta(days=7)).isoformat(),
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    coupon_id = response.json()["id"]

    # 2. Клиент видит купон в списке салона
    response = await api_client.get("/api/coupons", params={"customer_id": customer.id, "vendor_id": vendor.id})
    assert [item["code"] for item in response.json()["items"]] == ["TENOFF"]

    # 3. Сумма меньше минимальной
    booking_details = {
        "vendor_id": vendor.id,
        "service_id": 1,
        "total_price": 2500,
        "datetime": (now + timedelta(days=1)).isoformat(),
    }
    response = await api_client.post(
        "/api/coupons/validate",
        json={"coupon_code": "tenoff", "customer_id": customer.id, "booking_details": booking_details},
    )
    assert response.json() == {
        "valid": False,
        "reason": "Minimum booking amount is $30.00",
        "discount_amount": None,
        "final_amount": None,
        "coupon": None,
    }

    # 4. Подходящая запись
    booking_details["total_price"] = 4500
    response = await api_client.post(
        "/api/coupons/validate",
        json={"coupon_code": "tenoff", "customer_id": customer.id, "booking_details": booking_details},
    )
    data = response.json()
    assert data["valid"] is True
    assert data["discount_amount"] == 1000
    assert data["final_amount"] == 3500

    # 5. Применение
    booking = await make_booking(customer.id, vendor.id, total_price=4500)
    response = await api_client.post(
        "/api/coupons/apply",
        json={
            "coupon_code": "TENOFF",
            "customer_id": customer.id,
            "booking_id": booking.id,
            "discount_amount": data["discount_amount"],
        },
    )
    assert response.status_code == 200, response.text
    assert response.json()["coupon_id"] == coupon_id

    # 6. Купон больше не доступен клиенту
    response = await api_client.get("/api/coupons", params={"customer_id": customer.id, "vendor_id": vendor.id})
    assert response.json() == {"items": [], "total": 0}

    response = await api_client.post(
        "/api/coupons/validate",
        json={"coupon_code": "TENOFF", "customer_id": customer.id, "booking_details": booking_details},
    )
    assert response.json()["reason"] == "You have already used this coupon 1 time(s)"

    # 7. Статистика салона
    response = await api_client.get("/api/coupons/stats", headers=headers)
    assert response.json() == {
        "total_coupons": 1,
        "active_coupons": 1,
        "total_usage": 1,
        "total_discount": 1000,
        "popular_coupons": [
            {"code": "TENOFF", "title": "$10 off", "uses": 1, "discount_given": 1000},
        ],
    }
