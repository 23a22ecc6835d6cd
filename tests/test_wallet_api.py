from datetime import datetime, timedelta

from app.models import Transaction, User


def _add_transactions(db, wallet, rows):
    for amount, tx_type, days_ago in rows:
        db.add(
            Transaction(
                amount=amount,
                type=tx_type,
                description=f"{tx_type.lower()} {amount}",
                wallet_id=wallet.id,
                user_id=wallet.user_id,
                created_at=datetime.utcnow() - timedelta(days=days_ago),
            )
        )
    db.commit()


def test_wallet_summary_without_wallet(client, login, customer):
    login(customer)

    data = client.get("/wallet").json()["data"]

    assert data["balance"] == 0
    assert data["transactions"] == []
    assert data["referralCode"] == customer.referral_code


def test_wallet_summary_lists_latest_ten(client, login, db, customer, make_wallet):
    login(customer)
    wallet = make_wallet(customer, 300.0)
    _add_transactions(db, wallet, [(10 + i, "CREDIT", i) for i in range(12)])

    data = client.get("/wallet").json()["data"]

    assert data["balance"] == 300.0
    assert len(data["transactions"]) == 10
    assert data["transactions"][0]["amount"] == 10


def test_transactions_filter_and_paginate(client, login, db, customer, make_wallet):
    login(customer)
    wallet = make_wallet(customer, 0)
    _add_transactions(
        db,
        wallet,
        [(50, "REFERRAL_BONUS", 1), (20, "DEBIT", 2), (50, "REFERRAL_BONUS", 3), (50, "REFERRAL_BONUS", 40)],
    )

    response = client.post("/wallet/transactions", json={"type": "REFERRAL_BONUS", "page": 1, "limit": 2})

    data = response.json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
    assert all(t["type"] == "REFERRAL_BONUS" for t in data["transactions"])

    start = (datetime.utcnow() - timedelta(days=10)).date().isoformat()
    recent = client.post("/wallet/transactions", json={"startDate": start}).json()["data"]
    assert recent["pagination"]["total"] == 3


def test_transactions_reject_unknown_type(client, login, customer):
    login(customer)

    response = client.post("/wallet/transactions", json={"type": "REFUND"})

    assert response.status_code == 400


def test_apply_referral_code(client, login, db, customer, referrer):
    login(customer)

    response = client.post("/referrals", json={"referralCode": referrer.referral_code.lower()})

    assert response.status_code == 200
    assert response.json()["data"]["referredBy"] == referrer.name
    db.expire_all()
    assert db.get(User, customer.id).referred_by_id == referrer.id


def test_referral_code_cannot_be_reapplied(client, login, referred_customer, customer):
    login(referred_customer)

    response = client.post("/referrals", json={"referralCode": customer.referral_code})

    assert response.status_code == 400
    assert response.json()["error"] == "Referral code already applied"


def test_own_or_unknown_referral_code(client, login, customer):
    login(customer)

    own = client.post("/referrals", json={"referralCode": customer.referral_code})
    assert own.status_code == 400

    unknown = client.post("/referrals", json={"referralCode": "ZZZZ0000"})
    assert unknown.status_code == 404
