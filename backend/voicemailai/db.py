from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4
import os
import time
from datetime import datetime, timezone

# Lightweight adapter over Supabase client. Keep an in-memory fallback when SUPABASE_URL is missing.
from supabase import create_client, Client


PROFILE_FIELDS = ["name", "company_name", "mobile_number", "information"]
CAL_FIELDS = ["cal_username", "cal_api_key", "cal_event_type_id"]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def first_row(res, table: str) -> Dict[str, Any]:
    if not res.data:
        raise RuntimeError(f"Insert into {table} returned no rows")
    return res.data[0]


class InMemoryDB:
    def __init__(self) -> None:
        self.agenda_events: Dict[str, Dict[str, Any]] = {}
        self.notifications: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.transcriptions: List[Dict[str, Any]] = []
        self.contact_submissions: List[Dict[str, Any]] = []

    # Agenda events
    def list_agenda_events(self, user_id: str) -> List[Dict[str, Any]]:
        items = [e for e in self.agenda_events.values() if e["user_id"] == user_id and not e.get("deleted_at")]
        return sorted(items, key=lambda e: e.get("start_time") or "")

    def create_agenda_event(self, row: Dict[str, Any]) -> Dict[str, Any]:
        obj = dict(row)
        obj["id"] = str(uuid4())
        obj.setdefault("deleted_at", None)
        self.agenda_events[obj["id"]] = obj
        return obj

    def _owned_event(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        obj = self.agenda_events.get(str(event_id))
        if not obj or obj["user_id"] != user_id or obj.get("deleted_at"):
            return None
        return obj

    def update_agenda_event(self, event_id: str, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        obj = self._owned_event(event_id, user_id)
        if obj is None:
            return None
        obj.update(fields)
        return obj

    def soft_delete_agenda_event(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        obj = self._owned_event(event_id, user_id)
        if obj is None:
            return None
        obj["deleted_at"] = utc_now()
        return obj

    # Notifications
    def list_notifications(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        items = [n for n in self.notifications.values() if n["user_id"] == user_id]
        items.sort(key=lambda n: n.get("timestamp") or 0, reverse=True)
        return items[:limit]

    def create_notification(self, row: Dict[str, Any]) -> Dict[str, Any]:
        obj = dict(row)
        self.notifications[obj["id"]] = obj
        return obj

    def mark_notification_read(self, notification_id: str) -> Optional[Dict[str, Any]]:
        obj = self.notifications.get(notification_id)
        if obj is None:
            return None
        obj["read"] = True
        return obj

    def mark_all_notifications_read(self, user_id: str) -> int:
        count = 0
        for n in self.notifications.values():
            if n["user_id"] == user_id and not n.get("read"):
                n["read"] = True
                count += 1
        return count

    def delete_notification(self, notification_id: str) -> bool:
        return self.notifications.pop(notification_id, None) is not None

    # Profiles
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.profiles.get(user_id)

    def save_profile(self, user_id: str, fields: Dict[str, Any], cal_fields: Dict[str, Any]) -> Dict[str, Any]:
        obj = self.profiles.get(user_id)
        if obj is None:
            obj = {"id": user_id, "created_at": utc_now()}
            self.profiles[user_id] = obj
        for k in PROFILE_FIELDS:
            obj[k] = fields.get(k) or ""
        for k in CAL_FIELDS:
            obj[k] = cal_fields.get(k) or ""
        obj["updated_at"] = utc_now()
        return obj

    # Subscriptions
    def list_subscriptions(self) -> List[Dict[str, Any]]:
        return list(self.subscriptions.values())

    def get_latest_subscription(self, user_id: str, status: Optional[str] = None) -> Optional[Dict[str, Any]]:
        items = [s for s in self.subscriptions.values() if s.get("user_id") == user_id]
        if status:
            items = [s for s in items if s.get("status") == status]
        if not items:
            return None
        return max(items, key=lambda s: s.get("created_at") or "")

    def insert_subscriptions(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        created = []
        for row in rows:
            obj = dict(row)
            obj.setdefault("id", str(uuid4()))
            obj.setdefault("created_at", utc_now())
            obj.setdefault("updated_at", obj["created_at"])
            self.subscriptions[obj["id"]] = obj
            created.append(obj)
        return created

    def update_subscription(self, subscription_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        obj = self.subscriptions.get(subscription_id)
        if obj is None:
            return None
        obj.update(fields)
        return obj

    def update_subscriptions_for_user(self, user_id: str, fields: Dict[str, Any], status: Optional[str] = None) -> int:
        count = 0
        for s in self.subscriptions.values():
            if s.get("user_id") != user_id:
                continue
            if status and s.get("status") != status:
                continue
            s.update(fields)
            count += 1
        return count

    # Users
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.get(user_id)

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for u in self.users.values():
            if (u.get("email") or "").lower() == email.lower():
                return u
        return None

    # Transcriptions
    def list_transcriptions(self, client_id: Optional[str] = None) -> List[Dict[str, Any]]:
        if client_id:
            return [t for t in self.transcriptions if t.get("client_id") == client_id]
        return list(self.transcriptions)

    # Contact form
    def create_contact_submission(self, row: Dict[str, Any]) -> Dict[str, Any]:
        obj = dict(row)
        obj["id"] = str(uuid4())
        obj["created_at"] = utc_now()
        self.contact_submissions.append(obj)
        return obj

    def list_contact_submissions(self, limit: int = 5) -> List[Dict[str, Any]]:
        return list(reversed(self.contact_submissions))[:limit]

    def ping(self) -> Tuple[bool, str]:
        return True, "in-memory store"


class SupabaseDB:
    def __init__(self, client: Client) -> None:
        self.client = client

    # Agenda events
    def list_agenda_events(self, user_id: str) -> List[Dict[str, Any]]:
        res = (
            self.client.table("agenda_events").select("*")
            .eq("user_id", user_id)
            .is_("deleted_at", "null")
            .order("start_time", desc=False)
            .execute()
        )
        return res.data or []

    def create_agenda_event(self, row: Dict[str, Any]) -> Dict[str, Any]:
        res = self.client.table("agenda_events").insert(row).execute()
        return first_row(res, "agenda_events")

    def update_agenda_event(self, event_id: str, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        res = (
            self.client.table("agenda_events").update(fields)
            .eq("id", str(event_id))
            .eq("user_id", user_id)
            .is_("deleted_at", "null")
            .execute()
        )
        return (res.data or [None])[0]

    def soft_delete_agenda_event(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self.update_agenda_event(event_id, user_id, {"deleted_at": utc_now()})

    # Notifications
    def list_notifications(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        res = (
            self.client.table("notifications").select("*")
            .eq("user_id", user_id)
            .order("timestamp", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []

    def create_notification(self, row: Dict[str, Any]) -> Dict[str, Any]:
        res = self.client.table("notifications").insert(row).execute()
        return (res.data or [row])[0]

    def mark_notification_read(self, notification_id: str) -> Optional[Dict[str, Any]]:
        res = self.client.table("notifications").update({"read": True}).eq("id", notification_id).execute()
        return (res.data or [None])[0]

    def mark_all_notifications_read(self, user_id: str) -> int:
        res = self.client.table("notifications").update({"read": True}).eq("user_id", user_id).eq("read", False).execute()
        return len(res.data or [])

    def delete_notification(self, notification_id: str) -> bool:
        res = self.client.table("notifications").delete().eq("id", notification_id).execute()
        return bool(res.data)

    # Profiles
    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        res = self.client.table("profiles").select("*").eq("id", user_id).limit(1).execute()
        return (res.data or [None])[0]

    def save_profile(self, user_id: str, fields: Dict[str, Any], cal_fields: Dict[str, Any]) -> Dict[str, Any]:
        params = {"p_id": user_id}
        for k in PROFILE_FIELDS:
            params[f"p_{k}"] = fields.get(k) or ""
        # Core fields go through the stored procedures; Cal.com columns are written separately
        rpc_name = "update_profile" if self.get_profile(user_id) else "insert_profile"
        self.client.rpc(rpc_name, params).execute()
        payload = {k: cal_fields.get(k) or "" for k in CAL_FIELDS}
        res = self.client.table("profiles").update(payload).eq("id", user_id).execute()
        return (res.data or [{"id": user_id}])[0]

    # Subscriptions
    def list_subscriptions(self) -> List[Dict[str, Any]]:
        res = self.client.table("subscriptions").select("*").execute()
        return res.data or []

    def get_latest_subscription(self, user_id: str, status: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = self.client.table("subscriptions").select("*").eq("user_id", user_id)
        if status:
            query = query.eq("status", status)
        res = query.order("created_at", desc=True).limit(1).execute()
        return (res.data or [None])[0]

    def insert_subscriptions(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        res = self.client.table("subscriptions").insert(rows).execute()
        return res.data or []

    def update_subscription(self, subscription_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        res = self.client.table("subscriptions").update(fields).eq("id", subscription_id).execute()
        return (res.data or [None])[0]

    def update_subscriptions_for_user(self, user_id: str, fields: Dict[str, Any], status: Optional[str] = None) -> int:
        query = self.client.table("subscriptions").update(fields).eq("user_id", user_id)
        if status:
            query = query.eq("status", status)
        res = query.execute()
        return len(res.data or [])

    # Users
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        res = self.client.table("users").select("id,email").eq("id", user_id).limit(1).execute()
        return (res.data or [None])[0]

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        res = self.client.table("users").select("id,email").eq("email", email).limit(1).execute()
        return (res.data or [None])[0]

    # Transcriptions
    def list_transcriptions(self, client_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = self.client.table("call_transcriptions").select("*")
        if client_id:
            query = query.eq("client_id", client_id)
        res = query.execute()
        return res.data or []

    # Contact form
    def create_contact_submission(self, row: Dict[str, Any]) -> Dict[str, Any]:
        res = self.client.table("contact_form").insert(row).execute()
        return first_row(res, "contact_form")

    def list_contact_submissions(self, limit: int = 5) -> List[Dict[str, Any]]:
        res = self.client.table("contact_form").select("*").order("created_at", desc=True).limit(limit).execute()
        return res.data or []

    def exec_sql(self, sql: str) -> None:
        self.client.rpc("exec_sql", {"sql": sql}).execute()

    def ping(self) -> Tuple[bool, str]:
        try:
            self.client.table("users").select("id").limit(1).execute()
            return True, "Success or table not found (both OK)"
        except Exception as e:
            return False, f"Query error: {e}"


_client: Optional[Client] = None
_db_instance: Optional[Any] = None


def get_db():
    global _client, _db_instance

    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if url and key:
        if _client is None:
            _client = create_client(url, key)
        if _db_instance is None or not isinstance(_db_instance, SupabaseDB):
            _db_instance = SupabaseDB(_client)
        return _db_instance
    if _db_instance is None or not isinstance(_db_instance, InMemoryDB):
        _db_instance = InMemoryDB()
    return _db_instance


def reset_db() -> None:
    global _client, _db_instance
    _client = None
    _db_instance = None


def now_ms() -> int:
    return int(time.time() * 1000)
