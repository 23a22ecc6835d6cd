from datetime import timedelta

from app.domain.orders.lifecycle import OrderStatus
from app.domain.orders.repository import OrderRepository
from app.models import Partner


def test_pending_orders_cover_partner_service_area(
    client, login, customer, service, partner, partner_user, make_order
):
    login(partner_user)
    visible = make_order(customer, service)
    taken = make_order(customer, service, status="ACCEPTED", partner=partner)

    response = client.get("/partner/pending-orders")

    assert response.status_code == 200
    ids = [o["id"] for o in response.json()["data"]]
    assert ids == [visible.public_id]
    assert taken.public_id not in ids


def test_accept_order_assigns_partner(client, login, db, customer, service, partner, partner_user, make_order):
    login(partner_user)
    order = make_order(customer, service)

    response = client.post("/partner/accept-order", json={"orderId": order.public_id})

    assert response.status_code == 200
    assert response.json()["data"]["order"]["status"] == "ACCEPTED"
    db.refresh(order)
    assert order.status == "ACCEPTED"
    assert order.partner_id == partner.id
    assert order.accepted_at is not None


def test_second_partner_cannot_take_accepted_order(
    client, login, db, customer, service, partner, partner_user, other_partner, other_partner_user, make_order
):
    order = make_order(customer, service)

    login(partner_user)
    assert client.post("/partner/accept-order", json={"orderId": order.public_id}).status_code == 200

    login(other_partner_user)
    response = client.post("/partner/accept-order", json={"orderId": order.public_id})

    assert response.status_code == 400
    assert response.json()["error"] == "Order is no longer available"
    db.refresh(order)
    assert order.partner_id == partner.id


def test_conditional_update_lets_only_one_writer_win(db, customer, service, partner, other_partner, make_order):
    order = make_order(customer, service)

    first = OrderRepository.transition(
        db,
        order,
        [OrderStatus.PENDING],
        OrderStatus.ACCEPTED,
        require_unassigned=True,
        partner_id=partner.id,
    )
    # Second writer still believes the order is PENDING and unassigned
    second = OrderRepository.transition(
        db,
        order,
        [OrderStatus.PENDING],
        OrderStatus.ACCEPTED,
        require_unassigned=True,
        partner_id=other_partner.id,
    )
    db.commit()

    assert first is True
    assert second is False
    db.refresh(order)
    assert order.partner_id == partner.id


def test_accepted_order_can_no_longer_be_cancelled(
    client, login, customer, service, partner_user, partner, make_order
):
    order = make_order(customer, service, age=timedelta(hours=5))
    login(partner_user)
    client.post("/partner/accept-order", json={"orderId": order.public_id})

    login(customer)
    response = client.post("/orders/cancel", json={"orderId": order.public_id})

    assert response.status_code == 400
    assert response.json()["error"] == "Order cannot be cancelled"


def test_order_outside_service_area_cannot_be_accepted(
    client, login, db, customer, service, partner, partner_user, make_order
):
    order = make_order(customer, service)
    order.pincode = "110001"
    db.commit()
    login(partner_user)

    response = client.post("/partner/accept-order", json={"orderId": order.public_id})

    assert response.status_code == 403


def test_fulfilment_is_sequential(client, login, db, customer, service, partner, partner_user, make_order):
    login(partner_user)
    order = make_order(customer, service, status="ACCEPTED", partner=partner)

    def update(status, **extra):
        return client.post(
            "/partner/orders/update-status",
            json={"orderId": order.public_id, "status": status, **extra},
        )

    assert update("IN_PROGRESS").status_code == 200

    skipped = update("PAYMENT_REQUESTED")
    assert skipped.status_code == 400
    assert skipped.json()["currentStatus"] == "IN_PROGRESS"

    assert update("SERVICE_COMPLETED").status_code == 200
    assert update("PAYMENT_REQUESTED", paymentOrderId="order_RZP001").status_code == 200

    db.refresh(order)
    assert order.status == "PAYMENT_REQUESTED"
    assert order.payment_order_id == "order_RZP001"
    assert order.started_at is not None
    assert order.service_completed_at is not None
    assert order.payment_requested_at is not None

    # Completion only comes from a verified payment
    assert update("COMPLETED").status_code == 400


def test_unknown_status_is_a_validation_error(client, login, customer, service, partner, partner_user, make_order):
    login(partner_user)
    order = make_order(customer, service, status="ACCEPTED", partner=partner)

    response = client.post(
        "/partner/orders/update-status",
        json={"orderId": order.public_id, "status": "SHIPPED"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid status"


def test_partner_cannot_update_someone_elses_order(
    client, login, customer, service, partner, other_partner_user, other_partner, make_order
):
    order = make_order(customer, service, status="ACCEPTED", partner=partner)
    login(other_partner_user)

    response = client.post(
        "/partner/orders/update-status",
        json={"orderId": order.public_id, "status": "IN_PROGRESS"},
    )

    assert response.status_code == 403


def test_unapproved_partner_is_rejected(client, login, db, partner_user, partner):
    db.query(Partner).filter(Partner.id == partner.id).update({Partner.approved: False})
    db.commit()
    login(partner_user)

    response = client.get("/partner/pending-orders")

    assert response.status_code == 403
    assert response.json() == {"success": False, "error": "Partner account is not active"}


def test_customer_without_partner_account(client, login, customer):
    login(customer)

    assert client.get("/partner/orders").status_code == 404


def test_partner_orders_list(client, login, customer, service, partner, partner_user, make_order):
    login(partner_user)
    mine = make_order(customer, service, status="IN_PROGRESS", partner=partner)
    make_order(customer, service)

    data = client.get("/partner/orders").json()["data"]

    assert [o["id"] for o in data] == [mine.public_id]
    assert data[0]["serviceName"] == "Deep Cleaning"
