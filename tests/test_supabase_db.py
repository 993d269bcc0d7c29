from types import SimpleNamespace
from unittest.mock import MagicMock, call, patch

import pytest

from voicemailai.db import SupabaseDB, get_db


def rows(*data):
    return SimpleNamespace(data=list(data))


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return SupabaseDB(client)


def test_get_db_builds_supabase_adapter(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    with patch("voicemailai.db.create_client", return_value=MagicMock()) as create:
        db = get_db()
        assert get_db() is db
    assert isinstance(db, SupabaseDB)
    create.assert_called_once_with("https://example.supabase.co", "service-key")


def test_soft_delete_scopes_to_owner_and_live_rows(client, store):
    table = client.table.return_value
    by_id = table.update.return_value.eq.return_value
    live = by_id.eq.return_value.is_.return_value
    live.execute.return_value = rows({"id": "e1", "deleted_at": "2024-01-01T00:00:00+00:00"})

    deleted = store.soft_delete_agenda_event("e1", "u1")

    assert deleted["id"] == "e1"
    client.table.assert_called_with("agenda_events")
    assert list(table.update.call_args.args[0]) == ["deleted_at"]
    table.update.return_value.eq.assert_called_once_with("id", "e1")
    by_id.eq.assert_called_once_with("user_id", "u1")
    by_id.eq.return_value.is_.assert_called_once_with("deleted_at", "null")


def test_soft_delete_of_foreign_event_returns_none(client, store):
    chain = client.table.return_value.update.return_value.eq.return_value.eq.return_value.is_.return_value
    chain.execute.return_value = rows()
    assert store.soft_delete_agenda_event("e1", "someone-else") is None


def test_create_without_returned_row_raises(client, store):
    client.table.return_value.insert.return_value.execute.return_value = rows()
    with pytest.raises(RuntimeError, match="agenda_events"):
        store.create_agenda_event({"title": "Overleg"})


def profile_lookup(client):
    return client.table.return_value.select.return_value.eq.return_value.limit.return_value


def test_save_new_profile_uses_insert_rpc(client, store):
    profile_lookup(client).execute.return_value = rows()
    table = client.table.return_value
    table.update.return_value.eq.return_value.execute.return_value = rows({"id": "u1", "cal_username": "piet"})

    saved = store.save_profile("u1", {"name": "Piet"}, {"cal_username": "piet"})

    client.rpc.assert_called_once_with("insert_profile", {
        "p_id": "u1",
        "p_name": "Piet",
        "p_company_name": "",
        "p_mobile_number": "",
        "p_information": "",
    })
    table.update.assert_called_once_with({"cal_username": "piet", "cal_api_key": "", "cal_event_type_id": ""})
    table.update.return_value.eq.assert_called_once_with("id", "u1")
    assert saved["cal_username"] == "piet"


def test_save_existing_profile_uses_update_rpc(client, store):
    profile_lookup(client).execute.return_value = rows({"id": "u1"})
    store.save_profile("u1", {"company_name": "Bakkerij"}, {})
    name, params = client.rpc.call_args.args
    assert name == "update_profile"
    assert params["p_company_name"] == "Bakkerij"


def test_latest_subscription_filters_status_and_orders(client, store):
    query = client.table.return_value.select.return_value.eq.return_value
    filtered = query.eq.return_value
    filtered.order.return_value.limit.return_value.execute.return_value = rows({"id": "s1", "status": "active"})

    latest = store.get_latest_subscription("u1", status="active")

    assert latest == {"id": "s1", "status": "active"}
    client.table.assert_called_with("subscriptions")
    client.table.return_value.select.return_value.eq.assert_called_once_with("user_id", "u1")
    query.eq.assert_called_once_with("status", "active")
    filtered.order.assert_called_once_with("created_at", desc=True)
    filtered.order.return_value.limit.assert_called_once_with(1)


def test_latest_subscription_without_status(client, store):
    query = client.table.return_value.select.return_value.eq.return_value
    query.order.return_value.limit.return_value.execute.return_value = rows()
    assert store.get_latest_subscription("u1") is None
    query.eq.assert_not_called()


def test_mark_all_read_only_touches_unread(client, store):
    by_user = client.table.return_value.update.return_value.eq.return_value
    by_user.eq.return_value.execute.return_value = rows({"id": "n1"}, {"id": "n2"})

    assert store.mark_all_notifications_read("u1") == 2
    client.table.return_value.update.assert_called_once_with({"read": True})
    assert client.table.return_value.update.return_value.eq.call_args == call("user_id", "u1")
    by_user.eq.assert_called_once_with("read", False)


def test_exec_sql_calls_rpc(client, store):
    store.exec_sql("SELECT 1")
    client.rpc.assert_called_once_with("exec_sql", {"sql": "SELECT 1"})
    client.rpc.return_value.execute.assert_called_once_with()
