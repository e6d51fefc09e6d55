import asyncio
import unittest

import httpx

from chat_session_store.errors import AuthError
from chat_session_store.group_chats import RestGroupChatReader
from chat_session_store.models import GroupChatSummary
from chat_session_store.stores import PostgrestClient, create_http_client


class RestGroupChatReaderTests(unittest.TestCase):
    def _reader(self, handler) -> RestGroupChatReader:
        return RestGroupChatReader(
            PostgrestClient(create_http_client("https://example.test/rest/v1", "key", transport=httpx.MockTransport(handler)))
        )

    def test_lists_active_chats_with_participant_counts(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path.endswith("/group_chat_participants"):
                return httpx.Response(200, json=[{"group_chat_id": "g2"}, {"group_chat_id": "g1"}])
            return httpx.Response(
                200,
                json=[
                    {
                        "id": "g1",
                        "name": "Book club",
                        "persona": "default",
                        "owner_nickname": "sam",
                        "updated_at": "2024-05-01T00:00:00Z",
                        "group_chat_participants": [{"count": 4}],
                    }
                ],
            )

        chats = asyncio.run(self._reader(handler).list_for_user("user-1"))

        self.assertEqual(
            [GroupChatSummary("g1", "Book club", "default", "sam", 4, "2024-05-01T00:00:00Z")],
            chats,
        )
        self.assertEqual("eq.user-1", seen[0].url.params["user_id"])
        self.assertEqual("in.(g1,g2)", seen[1].url.params["id"])
        self.assertEqual("eq.true", seen[1].url.params["is_active"])

    def test_no_participation_returns_empty_without_second_call(self) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json=[])

        self.assertEqual([], asyncio.run(self._reader(handler).list_for_user("user-1")))
        self.assertEqual(1, len(calls))

    def test_auth_failure_propagates(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "forbidden"})

        with self.assertRaises(AuthError):
            asyncio.run(self._reader(handler).list_for_user("user-1"))


if __name__ == "__main__":
    unittest.main()
