import asyncio
import json
import unittest

import httpx

from chat_session_store.errors import (
    AuthError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RemoteStoreError,
)
from chat_session_store.stores import InMemoryRemoteStore, PostgrestClient, RestRemoteStore, create_http_client
from chat_session_store.stores.remote_store import record_to_row
from tests.sessions.base import make_record

BASE_URL = "https://example.supabase.co/rest/v1"


def _row(session_id: str, updated_at: str = "2024-02-01T00:00:00+00:00", owner: str = "user-1") -> dict:
    return {
        "id": session_id,
        "user_id": owner,
        "name": f"Chat {session_id}",
        "persona": "default",
        "heat_level": 2,
        "messages": [{"id": 1, "content": "hi", "isAI": False}],
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": updated_at,
    }


class RestRemoteStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list = []

    def _store(self, *, read_attempts: int = 1, page_size: int = 1000) -> RestRemoteStore:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            outcome = self.responses.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        client = PostgrestClient(create_http_client(BASE_URL, "anon-key", transport=httpx.MockTransport(handler)))
        return RestRemoteStore(client, read_attempts=read_attempts, backoff_seconds=0, page_size=page_size)

    # -- list_by_owner --

    def test_list_by_owner_filters_and_parses_rows(self) -> None:
        self.responses.append(httpx.Response(200, json=[_row("a"), _row("b")], headers={"Content-Range": "0-1/2"}))

        records = asyncio.run(self._store().list_by_owner("user-1"))

        self.assertEqual(["a", "b"], [r.id for r in records])
        self.assertEqual("user-1", records[0].owner_scope)
        self.assertEqual("2024-02-01T00:00:00+00:00", records[0].last_modified)
        self.assertEqual(2, records[0].heat_level)
        request = self.requests[0]
        self.assertEqual("GET", request.method)
        self.assertTrue(request.url.path.endswith("/rest/v1/chat_sessions"))
        self.assertEqual("eq.user-1", request.url.params["user_id"])
        self.assertEqual("count=exact", request.headers["Prefer"])
        self.assertEqual("anon-key", request.headers["apikey"])

    def test_partial_list_is_a_hard_failure(self) -> None:
        self.responses.append(httpx.Response(206, json=[_row("a")], headers={"Content-Range": "0-0/2"}))
        self.responses.append(httpx.Response(200, json=[], headers={"Content-Range": "*/2"}))
        with self.assertRaises(NetworkError):
            asyncio.run(self._store().list_by_owner("user-1"))

    def test_list_pages_past_server_row_cap(self) -> None:
        self.responses.append(httpx.Response(206, json=[_row("a"), _row("b")], headers={"Content-Range": "0-1/3"}))
        self.responses.append(httpx.Response(206, json=[_row("c")], headers={"Content-Range": "2-2/3"}))

        records = asyncio.run(self._store().list_by_owner("user-1"))

        self.assertEqual(["a", "b", "c"], [r.id for r in records])
        self.assertEqual(["0-999", "2-1001"], [r.headers["Range"] for r in self.requests])

    def test_list_reads_in_pages_of_configured_size(self) -> None:
        self.responses.append(httpx.Response(206, json=[_row("a"), _row("b")], headers={"Content-Range": "0-1/3"}))
        self.responses.append(httpx.Response(206, json=[_row("c")], headers={"Content-Range": "2-2/3"}))

        records = asyncio.run(self._store(page_size=2).list_by_owner("user-1"))

        self.assertEqual(3, len(records))
        self.assertEqual(["0-1", "2-3"], [r.headers["Range"] for r in self.requests])

    def test_total_changing_between_pages_is_a_hard_failure(self) -> None:
        self.responses.append(httpx.Response(206, json=[_row("a")], headers={"Content-Range": "0-0/2"}))
        self.responses.append(httpx.Response(206, json=[_row("b")], headers={"Content-Range": "1-1/3"}))
        with self.assertRaises(NetworkError):
            asyncio.run(self._store().list_by_owner("user-1"))

    def test_malformed_row_is_a_hard_failure(self) -> None:
        broken = _row("b")
        broken["name"] = ""
        self.responses.append(httpx.Response(200, json=[_row("a"), broken]))
        with self.assertRaises(NetworkError):
            asyncio.run(self._store().list_by_owner("user-1"))

    def test_list_retries_transient_failures(self) -> None:
        self.responses.append(httpx.Response(503, json={"message": "unavailable"}))
        self.responses.append(httpx.Response(200, json=[_row("a")], headers={"Content-Range": "0-0/1"}))

        records = asyncio.run(self._store(read_attempts=2).list_by_owner("user-1"))

        self.assertEqual(["a"], [r.id for r in records])
        self.assertEqual(2, len(self.requests))

    def test_list_gives_up_after_read_attempts(self) -> None:
        self.responses.extend([httpx.Response(502), httpx.Response(502)])
        with self.assertRaises(NetworkError):
            asyncio.run(self._store(read_attempts=2).list_by_owner("user-1"))
        self.assertEqual(2, len(self.requests))

    def test_auth_failure_is_not_retried(self) -> None:
        self.responses.append(httpx.Response(401, json={"message": "JWT expired"}))
        with self.assertRaises(AuthError):
            asyncio.run(self._store(read_attempts=3).list_by_owner("user-1"))
        self.assertEqual(1, len(self.requests))

    def test_connect_error_maps_to_network_error(self) -> None:
        self.responses.append(httpx.ConnectError("connection refused"))
        with self.assertRaises(NetworkError):
            asyncio.run(self._store().list_by_owner("user-1"))

    def test_timeout_maps_to_network_error(self) -> None:
        self.responses.append(httpx.ReadTimeout("read timed out"))
        with self.assertRaises(NetworkError):
            asyncio.run(self._store().list_by_owner("user-1"))

    # -- create / upsert --

    def test_create_posts_row_for_owner(self) -> None:
        self.responses.append(httpx.Response(201))
        record = make_record("a", "2024-02-01")

        asyncio.run(self._store().create(record, "user-1"))

        request = self.requests[0]
        self.assertEqual("POST", request.method)
        body = json.loads(request.content)
        self.assertEqual(record_to_row(record, "user-1"), body)
        self.assertEqual("user-1", body["user_id"])
        self.assertEqual("2024-02-01", body["updated_at"])

    def test_create_duplicate_raises_conflict(self) -> None:
        self.responses.append(httpx.Response(409, json={"code": "23505", "message": "duplicate key"}))
        with self.assertRaises(ConflictError) as ctx:
            asyncio.run(self._store().create(make_record("a"), "user-1"))
        self.assertEqual("a", ctx.exception.session_id)

    def test_unique_violation_code_raises_conflict(self) -> None:
        self.responses.append(httpx.Response(400, json={"code": "23505", "message": "duplicate key"}))
        with self.assertRaises(ConflictError):
            asyncio.run(self._store().create(make_record("a"), "user-1"))

    def test_upsert_requests_merge_on_id(self) -> None:
        self.responses.append(httpx.Response(201))

        asyncio.run(self._store().upsert(make_record("a"), "user-1"))

        request = self.requests[0]
        self.assertEqual("id", request.url.params["on_conflict"])
        self.assertIn("resolution=merge-duplicates", request.headers["Prefer"])

    def test_other_client_errors_raise_remote_store_error(self) -> None:
        self.responses.append(httpx.Response(422, json={"message": "bad column"}))
        with self.assertRaises(RemoteStoreError) as ctx:
            asyncio.run(self._store().upsert(make_record("a"), "user-1"))
        self.assertEqual(422, ctx.exception.status_code)

    # -- rename / delete --

    def test_rename_returns_updated_record(self) -> None:
        row = _row("a", updated_at="2024-09-01T00:00:00+00:00")
        row["name"] = "New name"
        self.responses.append(httpx.Response(200, json=[row]))

        renamed = asyncio.run(self._store().rename("a", "New name"))

        self.assertEqual("New name", renamed.name)
        request = self.requests[0]
        self.assertEqual("PATCH", request.method)
        self.assertEqual("eq.a", request.url.params["id"])
        body = json.loads(request.content)
        self.assertEqual("New name", body["name"])
        self.assertIn("updated_at", body)

    def test_rename_missing_raises_not_found(self) -> None:
        self.responses.append(httpx.Response(200, json=[]))
        with self.assertRaises(NotFoundError):
            asyncio.run(self._store().rename("missing", "x"))

    def test_delete_missing_is_noop(self) -> None:
        self.responses.append(httpx.Response(404, json={"message": "not found"}))
        asyncio.run(self._store().delete("missing"))
        self.assertEqual("DELETE", self.requests[0].method)

    def test_delete_server_error_propagates(self) -> None:
        self.responses.append(httpx.Response(500))
        with self.assertRaises(NetworkError):
            asyncio.run(self._store().delete("a"))


class PostgrestClientTests(unittest.TestCase):
    def test_access_token_replaces_bearer_and_falls_back_to_key(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, json=[])

        client = PostgrestClient(create_http_client(BASE_URL, "anon-key", transport=httpx.MockTransport(handler)))

        async def scenario() -> None:
            client.set_access_token("user-jwt")
            await client.request("GET", "/chat_sessions")
            client.set_access_token(None)
            await client.request("GET", "/chat_sessions")
            await client.close()

        asyncio.run(scenario())

        self.assertEqual(["Bearer user-jwt", "Bearer anon-key"], seen)


class InMemoryRemoteStoreTests(unittest.TestCase):
    def test_id_held_by_another_owner_conflicts(self) -> None:
        store = InMemoryRemoteStore()
        store.seed(make_record("a", owner_scope="user-2"))

        with self.assertRaises(ConflictError):
            asyncio.run(store.create(make_record("a"), "user-1"))
        self.assertEqual([], asyncio.run(store.list_by_owner("user-1")))

    def test_create_scopes_record_to_owner(self) -> None:
        store = InMemoryRemoteStore()
        asyncio.run(store.create(make_record("a"), "user-1"))
        self.assertEqual(["user-1"], [r.owner_scope for r in store.all_records()])


if __name__ == "__main__":
    unittest.main()
