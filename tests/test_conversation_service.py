"""Tests for conversation memory and the token ledger."""

import asyncio

from sqlalchemy import text

from zoiner.services import ConversationService, TokenCreationService

from .fakes import temp_database


class TestConversationService:
    """Test storage, retention and user context."""

    def _run(self, tmp_path, scenario, retention=5):
        async def run():
            async with temp_database(tmp_path / "zoiner.db") as db:
                service = ConversationService(db, retention=retention)
                result = await scenario(service, TokenCreationService(db))
                await service.wait_for_cleanup()
                return result

        return asyncio.run(run())

    def test_store_and_read_back(self, tmp_path):
        async def scenario(service, _):
            await service.store_conversation(
                fid=1,
                cast_hash="0x1",
                user_message="@zoiner hi",
                agent_response="hello!",
                action_taken="help",
            )
            return await service.get_recent(1)

        recent = self._run(tmp_path, scenario)
        assert len(recent) == 1
        assert recent[0].agent_response == "hello!"
        assert recent[0].created_at is not None

    def test_duplicate_cast_hash_not_stored(self, tmp_path):
        async def scenario(service, _):
            first = await service.store_conversation(1, "0x1", "a", "b", "help")
            second = await service.store_conversation(1, "0x1", "a", "b", "help")
            return first, second

        first, second = self._run(tmp_path, scenario)
        assert first is not None
        assert second is None

    def test_concurrent_stores_all_kept(self, tmp_path):
        async def scenario(service, _):
            await asyncio.gather(
                *(
                    service.store_conversation(fid, f"0x{fid}", f"msg {fid}", "ok", "help")
                    for fid in range(1, 6)
                )
            )
            return [len(await service.get_recent(fid)) for fid in range(1, 6)]

        assert self._run(tmp_path, scenario) == [1, 1, 1, 1, 1]

    def test_concurrent_stores_same_user(self, tmp_path):
        async def scenario(service, _):
            results = await asyncio.gather(
                *(service.store_conversation(4, f"0x{i}", f"msg {i}", "ok", "help") for i in range(3))
            )
            return results, await service.get_recent(4)

        results, recent = self._run(tmp_path, scenario)
        assert all(r is not None for r in results)
        assert len(recent) == 3

    def test_retention_keeps_newest(self, tmp_path):
        async def scenario(service, _):
            for i in range(8):
                await service.store_conversation(7, f"0x{i}", f"msg {i}", "ok", "encourage")
                await service.wait_for_cleanup()
            await service.store_conversation(8, "0xother", "other user", "ok", "help")
            await service.wait_for_cleanup()
            return await service.get_recent(7, limit=100), await service.get_recent(8)

        mine, theirs = self._run(tmp_path, scenario)
        assert [c.user_message for c in mine] == [f"msg {i}" for i in (7, 6, 5, 4, 3)]
        assert len(theirs) == 1

    def test_cleanup_reports_removed_rows(self, tmp_path):
        async def scenario(service, _):
            for i in range(4):
                await service.store_conversation(3, f"0x{i}", "m", "r", "help")
            await service.wait_for_cleanup()
            service.retention = 1
            return await service.cleanup_user_history(3)

        removed = self._run(tmp_path, scenario, retention=10)
        assert removed == 3

    def test_user_context(self, tmp_path):
        async def scenario(service, ledger):
            await service.store_conversation(5, "0xa", "first", "r", "help")
            await asyncio.sleep(0.01)
            await service.store_conversation(5, "0xb", "second", "r", "create_token")
            for i in range(2):
                await ledger.record(
                    fid=5,
                    token_address=f"0xcoin{i}",
                    token_name=f"Token {i}",
                    token_symbol=f"T{i}",
                    image_url="https://x/y.png",
                    description="d",
                    user_prompt="p",
                )
            return await service.get_user_context(5)

        context = self._run(tmp_path, scenario)
        assert context.creation_count == 2
        assert context.last_action == "create_token"
        assert [c.user_message for c in context.recent] == ["second", "first"]

    def test_new_user_context(self, tmp_path):
        async def scenario(service, _):
            return await service.get_user_context(404)

        context = self._run(tmp_path, scenario)
        assert context.creation_count == 0
        assert context.recent == []
        assert context.last_action is None


class TestTokenCreationService:
    def test_list_newest_first(self, tmp_path):
        async def run():
            async with temp_database(tmp_path / "zoiner.db") as db:
                ledger = TokenCreationService(db)
                for name in ("One", "Two"):
                    await ledger.record(
                        fid=9,
                        token_address=f"0x{name}",
                        token_name=name,
                        token_symbol=name.upper(),
                        image_url="https://x/y.png",
                        description="d",
                        user_prompt="p",
                        zora_url=f"https://zora.co/coin/base:0x{name}",
                    )
                    await asyncio.sleep(0.01)
                return await ledger.list_for_fid(9), await ledger.count_for_fid(9)

        rows, count = asyncio.run(run())
        assert count == 2
        assert [r.token_name for r in rows] == ["Two", "One"]


class TestSchema:
    """Test the indexes SQLite builds for the models."""

    def _indexed_columns(self, tmp_path, table):
        async def run():
            async with temp_database(tmp_path / "zoiner.db") as db:
                async with db.session() as session:
                    indexes = (await session.execute(text(f"PRAGMA index_list('{table}')"))).all()
                    columns = []
                    for index in indexes:
                        info = await session.execute(text(f"PRAGMA index_info('{index[1]}')"))
                        columns.append(tuple(row[2] for row in info.all()))
                    return columns

        return asyncio.run(run())

    def test_conversation_indexes_not_duplicated(self, tmp_path):
        columns = self._indexed_columns(tmp_path, "conversations")
        assert len(columns) == len(set(columns))
        assert columns.count(("cast_hash",)) == 1
        assert ("fid", "created_at") in columns

    def test_image_url_indexed_once(self, tmp_path):
        columns = self._indexed_columns(tmp_path, "image_analyses")
        assert columns.count(("image_url",)) == 1
