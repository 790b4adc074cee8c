"""Testes para endpoints da API."""

from datetime import date

import pytest

from topvistorias.models import AuditLog, CashBox, MonthlyExpense, Receivable, ReceivableStatus


def cash_box_payload(service_types, day="2024-03-05", **overrides):
    payload = {
        "date": day,
        "note": "Dia normal",
        "services": [
            {"service_type_id": service_types["CARRO"].id, "quantity": 2, "unit_price_cents": 12000},
            {"service_type_id": service_types["MOTO"].id, "quantity": 0, "unit_price_cents": 10000},
        ],
        "electronic_entries": [{"method": "pix", "amount_cents": 10000}],
        "expenses": [
            {"title": "Café", "amount_cents": 800},
            {"title": "", "amount_cents": 100},
        ],
        "receivables": [
            {"customer_name": "Maria", "plate": "abc-1d23", "original_amount_cents": 5000},
        ],
    }
    payload.update(overrides)
    return payload


class TestHealthEndpoint:
    """Testes para endpoint /health."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "db": True}


class TestRootEndpoint:
    """Testes para endpoint /."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["app"] == "TOP Vistorias API"
        assert "version" in data


class TestAuthEndpoints:
    """Testes para /auth."""

    def test_login(self, client, admin):
        response = client.post("/auth/login", json={"email": admin.email, "password": "senha123"})

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["role"] == "admin"

    def test_login_wrong_password(self, client, db_session, admin):
        response = client.post("/auth/login", json={"email": admin.email, "password": "errada123"})

        assert response.status_code == 401
        assert db_session.query(AuditLog).filter(AuditLog.action == "login_failed").count() == 1

    def test_refresh_rotates_token(self, client, admin):
        login = client.post("/auth/login", json={"email": admin.email, "password": "senha123"}).json()

        response = client.post("/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["refresh_token"] != login["refresh_token"]

        # o token antigo deixa de valer
        again = client.post("/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert again.status_code == 401

    def test_logout_invalidates_refresh(self, client, admin):
        login = client.post("/auth/login", json={"email": admin.email, "password": "senha123"}).json()

        assert client.post("/auth/logout", json={"refresh_token": login["refresh_token"]}).status_code == 200
        response = client.post("/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert response.status_code == 401

    def test_me(self, client, vistoriador, vistoriador_headers):
        response = client.get("/auth/me", headers=vistoriador_headers)
        assert response.status_code == 200
        assert response.json()["store_id"] == vistoriador.store_id

    def test_me_without_token(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_setup_only_once(self, client):
        data = {"email": "dono@topvistorias.com.br", "password": "senhaforte1", "name": "Dono"}

        first = client.post("/auth/setup", json=data)
        assert first.status_code == 201
        assert first.json()["role"] == "admin"

        second = client.post("/auth/setup", json={**data, "email": "outro@topvistorias.com.br"})
        assert second.status_code == 409

    def test_create_user_admin_only(self, client, store, admin_headers, vistoriador_headers):
        data = {
            "email": "novo@topvistorias.com.br",
            "password": "senha123",
            "name": "Novo",
            "role": "vistoriador",
            "store_id": store.id,
        }

        assert client.post("/auth/users", json=data, headers=vistoriador_headers).status_code == 403

        response = client.post("/auth/users", json=data, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["store_id"] == store.id

        duplicated = client.post("/auth/users", json=data, headers=admin_headers)
        assert duplicated.status_code == 400


class TestStoresEndpoints:
    """Testes para lojas e catálogo."""

    def test_vistoriador_sees_own_store(self, client, store, other_store, vistoriador_headers, admin_headers):
        own = client.get("/stores", headers=vistoriador_headers).json()
        assert [s["name"] for s in own] == ["Loja Centro"]

        every = client.get("/stores", headers=admin_headers).json()
        assert [s["name"] for s in every] == ["Loja Centro", "Loja Norte"]

    def test_create_store_duplicate(self, client, store, admin_headers):
        response = client.post("/stores", json={"name": "Loja Sul"}, headers=admin_headers)
        assert response.status_code == 201

        response = client.post("/stores", json={"name": "Loja Centro"}, headers=admin_headers)
        assert response.status_code == 409

    def test_service_types_in_display_order(self, client, service_types, vistoriador_headers):
        response = client.get("/service-types", headers=vistoriador_headers)
        assert response.status_code == 200
        codes = [item["code"] for item in response.json()]
        assert codes[:5] == ["CARRO", "MOTO", "CAMINHONETE", "CAMINHAO", "PESQUISA"]
        assert codes[-1] == "REV_RETORNO"


class TestCashBoxesEndpoints:
    """Testes para /cash-boxes."""

    def test_create_and_read(self, client, db_session, service_types, vistoriador, vistoriador_headers):
        """Vistoriador registra o caixa da própria loja; linhas vazias são descartadas."""
        response = client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["store_id"] == vistoriador.store_id
        assert data["vistoriador_id"] == vistoriador.id
        assert len(data["services"]) == 1
        assert data["services"][0]["total_cents"] == 24000
        assert [e["title"] for e in data["expenses"]] == ["Café"]

        receivable = db_session.query(Receivable).one()
        assert receivable.plate == "ABC1D23"
        assert receivable.status == ReceivableStatus.ABERTO.value

        totals = client.get(f"/cash-boxes/{data['id']}/totals", headers=vistoriador_headers).json()
        assert totals["gross"] == 24000
        assert totals["net"] == 23200
        assert totals["pix"] == 10000
        assert totals["cash"] == 24000 - 800 - 10000

    def test_list_with_totals(self, client, service_types, vistoriador_headers):
        client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)

        response = client.get("/cash-boxes?start=2024-03-01&end=2024-03-31", headers=vistoriador_headers)
        assert response.status_code == 200
        items = response.json()
        assert len(items) == 1
        assert items[0]["totals"]["gross"] == 24000

        empty = client.get("/cash-boxes?start=2024-04-01", headers=vistoriador_headers).json()
        assert empty == []

    def test_duplicate_day_conflict(self, client, service_types, vistoriador_headers):
        payload = cash_box_payload(service_types, receivables=[])
        assert client.post("/cash-boxes", json=payload, headers=vistoriador_headers).status_code == 201
        assert client.post("/cash-boxes", json=payload, headers=vistoriador_headers).status_code == 409

    def test_create_returns_cash_after_receivables(self, client, service_types, vistoriador_headers):
        """Dinheiro em caixa do formulário desconta os recebíveis capturados."""
        response = client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)

        assert response.status_code == 201
        totals = response.json()["totals"]
        assert totals["gross"] == 24000
        assert totals["receivables_total"] == 5000
        assert totals["cash"] == 8200
        assert totals["cash"] == (
            totals["gross"] - totals["expenses_total"] - totals["receivables_total"] - totals["electronic_total"]
        )

    def test_update_returns_cash_after_new_receivables(self, client, service_types, vistoriador_headers):
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types, receivables=[]), headers=vistoriador_headers
        ).json()
        assert created["totals"]["receivables_total"] == 0
        assert created["totals"]["cash"] == 13200

        response = client.put(
            f"/cash-boxes/{created['id']}",
            json=cash_box_payload(
                service_types,
                receivables=[{"customer_name": "José", "original_amount_cents": 3000}],
            ),
            headers=vistoriador_headers,
        )
        assert response.status_code == 200
        assert response.json()["totals"]["receivables_total"] == 3000
        assert response.json()["totals"]["cash"] == 10200

    def test_unknown_service_type_rejected(self, client, db_session, service_types, vistoriador_headers):
        """Serviço fora do catálogo é erro de validação, não conflito de caixa."""
        payload = cash_box_payload(
            service_types,
            services=[{"service_type_id": "nao-existe", "quantity": 1, "unit_price_cents": 5000}],
        )
        response = client.post("/cash-boxes", json=payload, headers=vistoriador_headers)

        assert response.status_code == 422
        assert "nao-existe" in response.json()["detail"]
        assert db_session.query(CashBox).count() == 0
        assert db_session.query(Receivable).count() == 0

    def test_unknown_receivable_service_type_rejected_on_update(self, client, service_types, vistoriador_headers):
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types, receivables=[]), headers=vistoriador_headers
        ).json()

        payload = cash_box_payload(
            service_types,
            receivables=[{"customer_name": "José", "service_type_id": "nao-existe", "original_amount_cents": 100}],
        )
        response = client.put(f"/cash-boxes/{created['id']}", json=payload, headers=vistoriador_headers)
        assert response.status_code == 422

    def test_unused_unknown_service_line_is_ignored(self, client, service_types, vistoriador_headers):
        """Linha com quantidade zero é descartada antes da checagem do catálogo."""
        payload = cash_box_payload(
            service_types,
            services=[
                {"service_type_id": service_types["CARRO"].id, "quantity": 1, "unit_price_cents": 12000},
                {"service_type_id": "nao-existe", "quantity": 0, "unit_price_cents": 0},
            ],
        )
        response = client.post("/cash-boxes", json=payload, headers=vistoriador_headers)
        assert response.status_code == 201

    def test_blank_note_rejected(self, client, service_types, vistoriador_headers):
        response = client.post(
            "/cash-boxes",
            json=cash_box_payload(service_types, note="  "),
            headers=vistoriador_headers,
        )
        assert response.status_code == 422

    def test_update_replaces_lines(self, client, service_types, vistoriador_headers):
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types, receivables=[]), headers=vistoriador_headers
        ).json()

        payload = cash_box_payload(
            service_types,
            receivables=[],
            services=[{"service_type_id": service_types["MOTO"].id, "quantity": 1, "unit_price_cents": 10000}],
            electronic_entries=[{"method": "pix", "amount_cents": 2000}, {"method": "cartao", "amount_cents": 3000}],
            expenses=[],
        )
        response = client.put(f"/cash-boxes/{created['id']}", json=payload, headers=vistoriador_headers)

        assert response.status_code == 200
        data = response.json()
        assert [s["service_type_id"] for s in data["services"]] == [service_types["MOTO"].id]
        assert sorted(e["method"] for e in data["electronic_entries"]) == ["cartao", "pix"]
        assert data["expenses"] == []

    def test_other_store_is_hidden(
        self, client, service_types, vistoriador_headers, other_vistoriador_headers
    ):
        """Caixa de outra loja responde como inexistente."""
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers
        ).json()

        assert client.get(f"/cash-boxes/{created['id']}", headers=other_vistoriador_headers).status_code == 404
        assert client.delete(f"/cash-boxes/{created['id']}", headers=other_vistoriador_headers).status_code == 404
        assert client.get("/cash-boxes", headers=other_vistoriador_headers).json() == []

    def test_vistoriador_cannot_pick_other_store(
        self, client, service_types, other_store, vistoriador_headers
    ):
        response = client.post(
            "/cash-boxes",
            json=cash_box_payload(service_types, store_id=other_store.id),
            headers=vistoriador_headers,
        )
        assert response.status_code == 403

    def test_admin_creates_for_store(self, client, service_types, store, vistoriador, admin_headers):
        response = client.post(
            "/cash-boxes",
            json=cash_box_payload(service_types, store_id=store.id, vistoriador_id=vistoriador.id),
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["vistoriador_id"] == vistoriador.id

    def test_admin_without_store_rejected(self, client, service_types, admin_headers):
        response = client.post("/cash-boxes", json=cash_box_payload(service_types), headers=admin_headers)
        assert response.status_code == 422

    def test_delete(self, client, db_session, service_types, vistoriador_headers):
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers
        ).json()

        response = client.delete(f"/cash-boxes/{created['id']}", headers=vistoriador_headers)
        assert response.status_code == 204
        assert db_session.query(CashBox).count() == 0
        # recebíveis não pertencem ao caixa
        assert db_session.query(Receivable).count() == 1

    def test_pdf(self, client, service_types, vistoriador_headers):
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers
        ).json()

        response = client.get(f"/cash-boxes/{created['id']}/pdf", headers=vistoriador_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")


class TestReceivablesEndpoints:
    """Testes para /receivables."""

    @pytest.fixture
    def receivable_id(self, client, service_types, vistoriador_headers, db_session):
        client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)
        return db_session.query(Receivable).one().id

    def test_lifecycle(self, client, receivable_id, vistoriador_headers, admin_headers):
        """aberto -> pago_pendente_baixa -> baixado."""
        paid = client.post(
            f"/receivables/{receivable_id}/payments",
            json={"amount_cents": 5000, "method": "pix", "paid_on": "2024-03-10"},
            headers=vistoriador_headers,
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == "pago_pendente_baixa"
        assert paid.json()["payments"][0]["amount_cents"] == 5000

        again = client.post(
            f"/receivables/{receivable_id}/payments",
            json={"amount_cents": 5000},
            headers=vistoriador_headers,
        )
        assert again.status_code == 409

        assert client.post(f"/receivables/{receivable_id}/settle", headers=vistoriador_headers).status_code == 403

        settled = client.post(f"/receivables/{receivable_id}/settle", headers=admin_headers)
        assert settled.status_code == 200
        assert settled.json()["status"] == "baixado"

        # baixados saem da listagem padrão
        assert client.get("/receivables", headers=admin_headers).json() == []
        listed = client.get("/receivables?status=baixado", headers=admin_headers).json()
        assert [r["id"] for r in listed] == [receivable_id]

    def test_settle_requires_payment(self, client, receivable_id, admin_headers):
        assert client.post(f"/receivables/{receivable_id}/settle", headers=admin_headers).status_code == 409

    def test_edit(self, client, receivable_id, vistoriador_headers):
        response = client.put(
            f"/receivables/{receivable_id}",
            json={"customer_name": "Maria Souza", "due_date": "2024-04-01"},
            headers=vistoriador_headers,
        )
        assert response.status_code == 200
        assert response.json()["customer_name"] == "Maria Souza"
        assert response.json()["due_date"] == "2024-04-01"

    def test_edit_cannot_clear_customer_name(self, client, db_session, receivable_id, vistoriador_headers):
        """Nome do cliente nulo ou em branco é rejeitado sem tocar no banco."""
        for value in (None, "   "):
            response = client.put(
                f"/receivables/{receivable_id}",
                json={"customer_name": value},
                headers=vistoriador_headers,
            )
            assert response.status_code == 422

        assert db_session.get(Receivable, receivable_id).customer_name == "Maria"

    def test_edit_can_clear_amount(self, client, receivable_id, vistoriador_headers):
        response = client.put(
            f"/receivables/{receivable_id}",
            json={"original_amount_cents": None},
            headers=vistoriador_headers,
        )
        assert response.status_code == 200
        assert response.json()["original_amount_cents"] is None

    def test_other_store_is_hidden(self, client, receivable_id, other_vistoriador_headers):
        assert client.get("/receivables", headers=other_vistoriador_headers).json() == []
        response = client.post(
            f"/receivables/{receivable_id}/payments",
            json={"amount_cents": 100},
            headers=other_vistoriador_headers,
        )
        assert response.status_code == 404


class TestAdminEndpoints:
    """Testes para /admin."""

    def test_requires_admin(self, client, vistoriador_headers):
        assert client.get("/admin/summary", headers=vistoriador_headers).status_code == 403

    def test_summary(self, client, db_session, store, service_types, vistoriador_headers, admin_headers):
        client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)
        db_session.add(MonthlyExpense(store_id=store.id, month_year=date(2024, 3, 1), title="Aluguel", amount_cents=4000))
        db_session.commit()

        response = client.get("/admin/summary", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert [row["month_key"] for row in data["rows"]] == ["2024-03"]
        row = data["rows"][0]
        assert row["gross"] == 24000
        assert row["net"] == 23200
        assert row["fixed_expenses"] == 4000
        assert row["net_after_fixed"] == 19200
        assert data["total"]["net_after_fixed"] == 19200

    def test_summary_pdf(self, client, service_types, vistoriador_headers, admin_headers):
        client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)

        response = client.get("/admin/summary/pdf", headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_metrics(self, client, service_types, vistoriador_headers, admin_headers):
        client.post("/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers)

        response = client.get("/admin/metrics?start=2024-03-01&end=2024-03-31", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_quantity"] == 2
        assert data["total_value_cents"] == 24000
        assert data["avg_ticket_cents"] == 12000
        assert data["top_by_value"]["code"] == "CARRO"
        assert data["store_ranking"][0]["name"] == "Loja Centro"
        assert [e["name"] for e in data["variable_expenses_top"]] == ["Café"]
        assert data["net_result_cents"] == 23200

        filtered = client.get(
            "/admin/metrics?start=2024-03-01&end=2024-03-31&expense_search=gasolina",
            headers=admin_headers,
        ).json()
        assert filtered["variable_expenses_top"] == []
        assert filtered["total_value_cents"] == 24000

    def test_metrics_empty_period(self, client, admin_headers):
        data = client.get("/admin/metrics?start=2020-01-01&end=2020-01-31", headers=admin_headers).json()
        assert data["total_quantity"] == 0
        assert data["best_period"] is None

    def test_monthly_closure_flow(self, client, db_session, store, admin, service_types, admin_headers):
        """Pré-preenchimento, gravação, leitura e exclusão do fechamento."""
        db_session.add(MonthlyExpense(store_id=store.id, month_year=date(2024, 1, 1), title="Aluguel", amount_cents=150000))
        db_session.commit()

        empty = client.get(f"/admin/monthly-closure?store_id={store.id}&month=2024-01", headers=admin_headers)
        assert empty.status_code == 200
        assert empty.json()["cash_box_id"] is None
        assert empty.json()["uses_default_expenses"] is True
        assert [e["title"] for e in empty.json()["effective_expenses"]] == ["Aluguel"]

        saved = client.put(
            "/admin/monthly-closure",
            json={
                "store_id": store.id,
                "month": "2024-01",
                "services": [
                    {"service_type_id": service_types["CARRO"].id, "quantity": 30},
                    {"service_type_id": service_types["MOTO"].id, "quantity": 0},
                ],
                "expenses": [{"title": "Aluguel", "amount_cents": 150000}],
            },
            headers=admin_headers,
        )
        assert saved.status_code == 200
        cash_box_id = saved.json()["cash_box_id"]

        box = db_session.get(CashBox, cash_box_id)
        assert box.date == date(2024, 1, 14)
        assert box.vistoriador_id == admin.id

        loaded = client.get(f"/admin/monthly-closure?store_id={store.id}&month=2024-01", headers=admin_headers).json()
        assert loaded["cash_box_id"] == cash_box_id
        assert loaded["uses_default_expenses"] is False
        assert [(s["quantity"], s["unit_price_cents"]) for s in loaded["services"]] == [(30, 12000)]

        assert client.delete(f"/admin/monthly-closure/{cash_box_id}", headers=admin_headers).status_code == 204
        assert client.delete(f"/admin/monthly-closure/{cash_box_id}", headers=admin_headers).status_code == 404

    def test_monthly_closure_invalid_month(self, client, store, admin_headers):
        assert client.get(
            f"/admin/monthly-closure?store_id={store.id}&month=2024-13", headers=admin_headers
        ).status_code == 422
        assert client.put(
            "/admin/monthly-closure", json={"store_id": store.id, "month": "2024-13"}, headers=admin_headers
        ).status_code == 422

    def test_monthly_closure_unknown_store(self, client, admin_headers):
        response = client.put(
            "/admin/monthly-closure", json={"store_id": "nao-existe", "month": "2024-01"}, headers=admin_headers
        )
        assert response.status_code == 404

    def test_closure_delete_refuses_daily_box(self, client, service_types, vistoriador_headers, admin_headers):
        created = client.post(
            "/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers
        ).json()
        assert client.delete(f"/admin/monthly-closure/{created['id']}", headers=admin_headers).status_code == 404

    def test_fixed_expenses(self, client, store, admin_headers):
        created = client.post(
            "/admin/fixed-expenses",
            json={"store_id": store.id, "month_year": "2024-02", "title": "Aluguel", "amount_cents": 100000},
            headers=admin_headers,
        )
        assert created.status_code == 200
        expense = created.json()
        assert expense["month_year"] == "2024-02-01"
        assert expense["source"] == "fixa"

        updated = client.post(
            "/admin/fixed-expenses",
            json={"id": expense["id"], "store_id": store.id, "month_year": "2024-02", "title": "Aluguel", "amount_cents": 120000},
            headers=admin_headers,
        )
        assert updated.json()["amount_cents"] == 120000

        listed = client.get("/admin/fixed-expenses?start=2024-02-01&end=2024-02-29", headers=admin_headers).json()
        assert [e["id"] for e in listed] == [expense["id"]]

        assert client.delete(f"/admin/fixed-expenses/{expense['id']}", headers=admin_headers).status_code == 204
        assert client.delete(f"/admin/fixed-expenses/{expense['id']}", headers=admin_headers).status_code == 404

    def test_variable_expenses(self, client, service_types, vistoriador_headers, admin_headers):
        box = client.post(
            "/cash-boxes", json=cash_box_payload(service_types), headers=vistoriador_headers
        ).json()

        created = client.post(
            "/admin/variable-expenses",
            json={"cash_box_id": box["id"], "title": "Gasolina", "amount_cents": 3000},
            headers=admin_headers,
        )
        assert created.status_code == 201
        expense = created.json()
        assert expense["date"] == "2024-03-05"

        updated = client.put(
            f"/admin/variable-expenses/{expense['id']}", json={"amount_cents": 3500}, headers=admin_headers
        )
        assert updated.json()["amount_cents"] == 3500

        listed = client.get("/admin/variable-expenses?start=2024-03-01&end=2024-03-31", headers=admin_headers).json()
        assert sorted(e["title"] for e in listed) == ["Café", "Gasolina"]

        assert client.delete(f"/admin/variable-expenses/{expense['id']}", headers=admin_headers).status_code == 204

    def test_audit_on_closure_save(self, client, db_session, store, service_types, admin_headers):
        client.put(
            "/admin/monthly-closure",
            json={"store_id": store.id, "month": "2024-02", "services": []},
            headers=admin_headers,
        )
        assert db_session.query(AuditLog).filter(AuditLog.action == "monthly_closure_saved").count() == 1
