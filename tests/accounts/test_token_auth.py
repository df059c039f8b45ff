import pytest


@pytest.mark.django_db
def test_jwt_token_grants_api_access(api_client, manager_user):
    response = api_client.post(
        "/api/v1/token/",
        {"email": manager_user.email, "password": "testpass123"},
        format="json",
    )
    assert response.status_code == 200
    tokens = response.json()
    assert {"access", "refresh"} <= set(tokens)

    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
    assert api_client.get("/api/v1/commissions/").status_code == 200


@pytest.mark.django_db
def test_jwt_refresh(api_client, sales_user):
    tokens = api_client.post(
        "/api/v1/token/",
        {"email": sales_user.email, "password": "testpass123"},
        format="json",
    ).json()
    response = api_client.post("/api/v1/token/refresh/", {"refresh": tokens["refresh"]}, format="json")
    assert response.status_code == 200
    assert "access" in response.json()


@pytest.mark.django_db
def test_wrong_password(api_client, sales_user):
    response = api_client.post(
        "/api/v1/token/",
        {"email": sales_user.email, "password": "nope"},
        format="json",
    )
    assert response.status_code == 401


@pytest.mark.django_db
def test_user_role_helpers(finance_user, sales_user):
    assert finance_user.is_finance and not finance_user.is_sales
    assert sales_user.is_sales
    assert str(sales_user) == "Sales User"
